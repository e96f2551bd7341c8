"""
High-level driver for the glider collocation problem.

The driver turns parameters, boundary limits and a warm start into an
``NLPProblem``, hands it to a solver backend and decodes the best point into
per-knot sequences.  Termination means "best effort", not "feasible": check
``TrajectoryResult.max_violation`` when feasibility matters.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence, Union

import numpy as np

from .collocation import (
    DEFECT_TOLERANCE,
    BoundarySpec,
    collocation_equality_constraints,
    collocation_inequality_constraints,
    decision_bounds,
)
from .cost import control_effort_objective
from .dynamics import STATE_DIM, GliderPhysicalParams
from .layout import GliderDecisionLayout, KNOT_DIM
from .parameters import build_parameters, read_parameter_document
from .solvers import CobylaSolver, NLPProblem, NLPSolver, SolverSettings

logger = logging.getLogger(__name__)


class Transcription(enum.Enum):
    # everything as g(w) <= 0, equalities as tolerance pairs
    INEQUALITY_PAIRS = "inequality"
    # true equality defects plus variable bounds
    NATIVE_EQUALITY = "equality"


@dataclass
class GliderTrajectoryConfig:
    ftol_rel: float = 1e-6
    xtol_rel: float = 1e-4
    max_evaluations: int = 1000
    max_time_sec: float = 0.5
    constraint_tolerance: float = 1e-8
    defect_tolerance: float = DEFECT_TOLERANCE
    transcription: Transcription = Transcription.INEQUALITY_PAIRS
    state_cost: np.ndarray = field(default_factory=lambda: np.eye(STATE_DIM))
    control_cost: float = 1.0

    def solver_settings(self) -> SolverSettings:
        return SolverSettings(
            ftol_rel=self.ftol_rel,
            xtol_rel=self.xtol_rel,
            max_evaluations=self.max_evaluations,
            max_time_sec=self.max_time_sec,
        )


@dataclass
class TrajectoryResult:
    x: np.ndarray = field(default_factory=lambda: np.zeros(0))
    z: np.ndarray = field(default_factory=lambda: np.zeros(0))
    theta: np.ndarray = field(default_factory=lambda: np.zeros(0))
    phi: np.ndarray = field(default_factory=lambda: np.zeros(0))
    vx: np.ndarray = field(default_factory=lambda: np.zeros(0))
    vz: np.ndarray = field(default_factory=lambda: np.zeros(0))
    time_grid: np.ndarray = field(default_factory=lambda: np.zeros(0))
    cost: float = float("nan")
    evaluations: int = 0
    status: str = "not solved"
    max_violation: float = float("nan")
    raw_decision: np.ndarray = field(default_factory=lambda: np.zeros(0))

    @property
    def num_knots(self) -> int:
        return int(self.x.size)

    def is_empty(self) -> bool:
        return self.num_knots == 0

    @classmethod
    def from_decision(cls, decision: np.ndarray, h: float, **metadata) -> "TrajectoryResult":
        layout = GliderDecisionLayout.from_decision_length(np.size(decision))
        knots = layout.knots(decision)
        return cls(
            x=knots[:, 0].copy(),
            z=knots[:, 1].copy(),
            theta=knots[:, 2].copy(),
            phi=knots[:, 3].copy(),
            vx=knots[:, 4].copy(),
            vz=knots[:, 5].copy(),
            time_grid=h * np.arange(layout.num_knots),
            raw_decision=np.array(decision, dtype=float, copy=True),
            **metadata,
        )

    def to_decision_vector(
        self, thetadot: Sequence[float], phidot: Sequence[float]
    ) -> np.ndarray:
        """
        Re-packs the result into a decision vector.

        Pitch rate and elevator rate are not kept in the result, so the caller
        provides them.
        """
        layout = GliderDecisionLayout(self.num_knots)
        states = np.column_stack(
            [self.x, self.z, self.theta, self.phi, self.vx, self.vz, thetadot]
        )
        return layout.join(states, phidot)


def build_problem(
    params: GliderPhysicalParams,
    boundary: BoundarySpec,
    guess: np.ndarray,
    config: GliderTrajectoryConfig,
) -> NLPProblem:
    """Binds the pure evaluators to this solve's immutable context."""
    layout = GliderDecisionLayout.from_decision_length(np.size(guess))
    x0 = np.asarray(guess, dtype=float).copy()

    def objective(w: np.ndarray) -> float:
        return control_effort_objective(w, params, boundary)

    if config.transcription is Transcription.NATIVE_EQUALITY:

        def equality(w: np.ndarray) -> np.ndarray:
            return collocation_equality_constraints(w, params, boundary)

        return NLPProblem(
            objective=objective,
            x0=x0,
            equality=equality,
            equality_dim=layout.equality_dim,
            bounds=decision_bounds(layout, boundary),
        )

    def inequality(w: np.ndarray) -> np.ndarray:
        return collocation_inequality_constraints(
            w, params, boundary, config.defect_tolerance
        )

    return NLPProblem(
        objective=objective,
        x0=x0,
        inequality=inequality,
        inequality_dim=layout.constraint_dim,
        inequality_tolerance=np.full(layout.constraint_dim, config.constraint_tolerance),
    )


def solve_trajectory(
    params: GliderPhysicalParams,
    boundary: BoundarySpec,
    guess: np.ndarray,
    config: Optional[GliderTrajectoryConfig] = None,
    solver: Optional[NLPSolver] = None,
) -> TrajectoryResult:
    config = config or GliderTrajectoryConfig()
    guess = np.asarray(guess, dtype=float)
    if guess.size == 0:
        return TrajectoryResult()

    params.validate()
    boundary.validate()
    solver = solver or CobylaSolver(equality_tolerance=config.defect_tolerance)
    problem = build_problem(params, boundary, guess, config)
    solution = solver.solve(problem, config.solver_settings())

    logger.info("number of evaluations: %d", solution.evaluations)
    if logger.isEnabledFor(logging.DEBUG):
        difference = (solution.x - guess).reshape(-1, KNOT_DIM)
        for i, row in enumerate(difference):
            logger.debug("guess-difference row %d %s", i, np.array2string(row, precision=6))
    logger.info("Optimization completed cost %f (%s)", solution.cost, solution.status)

    return TrajectoryResult.from_decision(
        solution.x,
        params.h,
        cost=solution.cost,
        evaluations=solution.evaluations,
        status=solution.status,
        max_violation=solution.max_violation,
    )


class GliderTrajectoryOptimizer:
    """
    Stateful front end: load parameters, load a guess, optimize.

    Load steps report failure through their boolean return value and leave
    previously stored state untouched.
    """

    def __init__(
        self,
        config: Optional[GliderTrajectoryConfig] = None,
        solver: Optional[NLPSolver] = None,
    ):
        self.config = config or GliderTrajectoryConfig()
        self.solver = solver
        self.params: Optional[GliderPhysicalParams] = None
        self.boundary: Optional[BoundarySpec] = None
        self.guess = np.zeros(0)
        self.num_knots = 0

    def load_parameters(
        self,
        path: Union[str, Path],
        total_sec: float,
        num_knots: int,
        Q: Optional[np.ndarray] = None,
        R: Optional[float] = None,
        initial_x: Sequence[float] = (0.0,),
        initial_z: Sequence[float] = (0.0,),
    ) -> bool:
        document = read_parameter_document(path)
        if document is None:
            return False
        try:
            params, boundary = build_parameters(
                document,
                total_sec,
                num_knots,
                self.config.state_cost if Q is None else Q,
                self.config.control_cost if R is None else R,
                initial_x,
                initial_z,
            )
        except KeyError as e:
            logger.warning("Parameter file %s is missing field %s", path, e)
            return False
        except (TypeError, ValueError) as e:
            logger.warning("Parameter file %s is invalid: %s", path, e)
            return False

        self.params, self.boundary = params, boundary
        logger.info("Parameters loaded")
        return True

    def set_parameters(self, params: GliderPhysicalParams, boundary: BoundarySpec) -> None:
        params.validate()
        boundary.validate()
        self.params, self.boundary = params, boundary

    def load_initial_guess(self, guess: Sequence[float]) -> bool:
        guess = np.asarray(guess, dtype=float).flatten()
        if guess.size % KNOT_DIM:
            logger.warning(
                "guess size %d is not a multiple of %d", guess.size, KNOT_DIM
            )
            return False
        self.guess = guess.copy()
        self.num_knots = guess.size // KNOT_DIM
        logger.info("guess size = %d, N steps = %d", self.guess.size, self.num_knots)
        return True

    def optimize(self) -> TrajectoryResult:
        if self.guess.size == 0:
            return TrajectoryResult()
        if self.params is None or self.boundary is None:
            raise RuntimeError("No parameters loaded... call load_parameters() first.")
        return solve_trajectory(
            self.params, self.boundary, self.guess, self.config, self.solver
        )
