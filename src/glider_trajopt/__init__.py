"""
Trajectory optimization for a flat-plate glider perching maneuver.

The package exposes the flat-plate glider dynamics, a trapezoidal collocation
transcription with its cost, a small nonlinear-program interface with COBYLA
and IPOPT backends, and a driver that turns a warm start into an optimized
trajectory.
"""

from .collocation import (
    BoundarySpec,
    collocation_equality_constraints,
    collocation_inequality_constraints,
    decision_bounds,
    max_violation,
)
from .cost import control_effort_objective
from .dynamics import GliderDynamics, GliderPhysicalParams, state_derivative
from .guess import straight_line_guess
from .layout import GliderDecisionLayout
from .parameters import build_parameters, read_parameter_document
from .solvers import (
    CobylaSolver,
    IpoptSolver,
    NLPProblem,
    NLPSolution,
    NLPSolver,
    SolverSettings,
    make_solver,
)
from .trajectory_optimizer import (
    GliderTrajectoryConfig,
    GliderTrajectoryOptimizer,
    TrajectoryResult,
    Transcription,
    solve_trajectory,
)

__version__ = "0.1.0"

__all__ = [
    "BoundarySpec",
    "collocation_equality_constraints",
    "collocation_inequality_constraints",
    "decision_bounds",
    "max_violation",
    "control_effort_objective",
    "GliderDynamics",
    "GliderPhysicalParams",
    "state_derivative",
    "straight_line_guess",
    "GliderDecisionLayout",
    "build_parameters",
    "read_parameter_document",
    "CobylaSolver",
    "IpoptSolver",
    "NLPProblem",
    "NLPSolution",
    "NLPSolver",
    "SolverSettings",
    "make_solver",
    "GliderTrajectoryConfig",
    "GliderTrajectoryOptimizer",
    "TrajectoryResult",
    "Transcription",
    "solve_trajectory",
]
