import os
import yaml
import pandas as pd


def print_header(s, n=60, f0='*', f1=' '):

    if len(s) > n:
        n = len(s) + 4

    w = n + len(s) % 2
    b = (w - len(s)) // 2 - 1
    print(w * f0)
    print(f0 + b * f1 + s + b * f1 + f0)
    print(w * f0)


def print_dict(d):
    for k, v in d.items():
        if not isinstance(v, dict):
            print(f'  - {k:<25s}: {v}')
        else:
            print(f'  - {k}:')
            for kk, vv in v.items():
                print(f'    - {kk:<23s}: {vv}')


def create_output_directory(name):
    """Create the case directory. An existing directory is reused, it may hold a restart file."""

    os.makedirs(name, exist_ok=True)

    print_header(f"Writing output into: {name}", f0=' ', f1=' ')

    return name


def write_yaml(output_dict, fname):

    with open(fname, 'w') as FILE:
        yaml.dump(output_dict, FILE)


def read_yaml(fname):

    with open(fname, 'r') as FILE:
        return yaml.safe_load(FILE)


def history_to_csv(fname, out):
    df = pd.DataFrame(data=out)
    df.to_csv(fname, index=False)
