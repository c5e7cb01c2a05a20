from PinchOff.controller import SimulationController
from PinchOff.mock import MockSolver


if __name__ == "__main__":

    # Input (keys as in the parameter file):
    # - case: CaseNo
    # - mesh: MAXlevel, MINlevel, fErr, VelErr, AErr, KErr
    # - time: tmax, dtmax, tsnap
    # - fluids: Oh, Oha, De, Ec, rho2
    # - initial shape: epsilon

    params = {'CaseNo': 1001,
              'MAXlevel': 7,
              'MINlevel': 4,
              'tmax': 0.05,
              'Oh': 1e-2,
              'De': 1.,
              'Ec': 1.,
              'dtmax': 1e-3,
              'tsnap': 1e-2}

    # The mock solver keeps a uniform grid and lets the velocity decay,
    # the run stops as soon as the kinetic energy has vanished
    solver = MockSolver(u0=0.1, rate=-2000.)

    controller = SimulationController.from_dict(params, solver, outdir='c1001')
    controller.run()
