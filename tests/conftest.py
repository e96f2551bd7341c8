import numpy as np
import pytest

from glider_trajopt.collocation import BoundarySpec
from glider_trajopt.dynamics import GliderPhysicalParams
from glider_trajopt.solvers import NLPSolution, NLPSolver


def make_params(h=0.1, **overrides):
    values = dict(
        l_w=0.1,
        l_e=0.05,
        l=0.15,
        s_w=0.02,
        s_e=0.01,
        mass=0.1,
        inertia=0.001,
        h=h,
        Q=np.eye(7),
        R=1.0,
    )
    values.update(overrides)
    return GliderPhysicalParams(**values)


@pytest.fixture
def params():
    return make_params()


@pytest.fixture
def boundary():
    return BoundarySpec(
        velocity=5.0,
        theta=1.0,
        phi=1.0,
        theta_dot=5.0,
        phi_dot=5.0,
        initial_x=(0.0,),
        initial_z=(1.0,),
    )


class RecordingSolver(NLPSolver):
    """Returns the starting point untouched and remembers what it was asked."""

    name = "recording"

    def __init__(self):
        self.problems = []

    def solve(self, problem, settings):
        self.problems.append(problem)
        x = np.asarray(problem.x0, dtype=float).copy()
        return NLPSolution(
            x=x,
            cost=problem.objective(x),
            evaluations=1,
            status="recorded",
            converged=True,
            max_violation=problem.violation(x),
        )


@pytest.fixture
def recording_solver():
    return RecordingSolver()
