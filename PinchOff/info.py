from mpi4py import MPI
import netCDF4
import numpy
import pandas
import yaml
import PinchOff


def show_info():

    print(10 * "=")
    print('PinchOff')
    print(10 * "=")

    print("Version: ", PinchOff.__version__)

    print(10 * "=")
    print('MPI')
    print(10 * "=")

    print('Library: ', MPI.Get_library_version().strip())
    print('Standard: ', '.'.join(str(v) for v in MPI.Get_version()))
    print('Processes: ', MPI.COMM_WORLD.Get_size())

    print(10 * "=")
    print('Python packages')
    print(10 * "=")

    print('numpy: ', numpy.__version__)
    print('pandas: ', pandas.__version__)
    print('PyYAML: ', yaml.__version__)
    print('netCDF4: ', netCDF4.__version__, f'(libnetcdf {netCDF4.__netcdf4libversion__})')


def main():
    show_info()


if __name__ == "__main__":
    main()
