"""
Nonlinear-program backends behind one small interface.

Every backend solves

    minimize    f(w)
    subject to  c_eq(w)  == 0
                c_in(w)  <= 0
                lb <= w <= ub

starting from ``w0``.  The transcription only has to produce an ``NLPProblem``;
which backend runs it is a separate choice.  Objective and constraints are
treated as black boxes, no derivatives are requested from the caller.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

import casadi as ca
import numpy as np
from scipy.optimize import minimize

from .collocation import max_violation

logger = logging.getLogger(__name__)

Objective = Callable[[np.ndarray], float]
Evaluator = Callable[[np.ndarray], np.ndarray]


@dataclass(frozen=True)
class NLPProblem:
    objective: Objective
    x0: np.ndarray
    inequality: Optional[Evaluator] = None
    inequality_dim: int = 0
    equality: Optional[Evaluator] = None
    equality_dim: int = 0
    bounds: Optional[Tuple[np.ndarray, np.ndarray]] = None
    inequality_tolerance: Optional[np.ndarray] = None

    @property
    def dimension(self) -> int:
        return int(np.size(self.x0))

    def feasibility_tolerance(self, default: float = 1e-8) -> float:
        if self.inequality_tolerance is None or np.size(self.inequality_tolerance) == 0:
            return default
        return float(np.max(self.inequality_tolerance))

    def residuals(self, x: np.ndarray, equality_tolerance: float = 0.0) -> np.ndarray:
        """All constraints of the problem stacked as ``<= 0`` rows."""
        parts: List[np.ndarray] = []
        if self.inequality is not None and self.inequality_dim:
            parts.append(np.asarray(self.inequality(x), dtype=float))
        if self.equality is not None and self.equality_dim:
            eq = np.asarray(self.equality(x), dtype=float)
            parts.append(eq - equality_tolerance)
            parts.append(-eq - equality_tolerance)
        if self.bounds is not None:
            lower, upper = self.bounds
            parts.append(np.asarray(lower, dtype=float) - x)
            parts.append(x - np.asarray(upper, dtype=float))
        if not parts:
            return np.zeros(0)
        return np.concatenate(parts)

    def violation(self, x: np.ndarray, equality_tolerance: float = 0.0) -> float:
        return max_violation(self.residuals(np.asarray(x, dtype=float), equality_tolerance))


@dataclass(frozen=True)
class SolverSettings:
    ftol_rel: float = 1e-6
    xtol_rel: float = 1e-4
    max_evaluations: int = 1000
    max_time_sec: float = 0.5


@dataclass
class NLPSolution:
    x: np.ndarray
    cost: float
    evaluations: int
    status: str
    converged: bool
    max_violation: float


class NLPSolver:
    name = "base"

    def solve(self, problem: NLPProblem, settings: SolverSettings) -> NLPSolution:
        raise NotImplementedError


class _SearchStopped(Exception):
    def __init__(self, reason: str, converged: bool = False):
        super().__init__(reason)
        self.converged = converged


class _EvaluationTracker:
    """
    Counts evaluations, enforces the budget and remembers the best point.

    A point is better if it is feasible (within ``tolerance``) and cheaper
    than the best feasible point so far; until a feasible point shows up the
    least violating one is kept.  Non-finite costs never win.
    """

    def __init__(
        self,
        problem: NLPProblem,
        settings: SolverSettings,
        tolerance: float,
        equality_tolerance: float,
    ):
        self.problem = problem
        self.settings = settings
        self.tolerance = tolerance
        self.equality_tolerance = equality_tolerance
        self.evaluations = 0
        self.best_x: Optional[np.ndarray] = None
        self.best_cost = float("inf")
        self.best_violation = float("inf")
        self._start = time.monotonic()
        self._cached_x: Optional[np.ndarray] = None
        self._cached_residuals = np.zeros(0)

    def residuals(self, x: np.ndarray) -> np.ndarray:
        if self._cached_x is None or not np.array_equal(x, self._cached_x):
            self._cached_residuals = self.problem.residuals(x, self.equality_tolerance)
            self._cached_x = np.array(x, copy=True)
        return self._cached_residuals

    def negated_residuals(self, x: np.ndarray) -> np.ndarray:
        # scipy expects c(x) >= 0 for "ineq"
        return -self.residuals(x)

    def objective(self, x: np.ndarray) -> float:
        if self.evaluations >= self.settings.max_evaluations:
            raise _SearchStopped("maximum number of evaluations reached")
        if time.monotonic() - self._start > self.settings.max_time_sec:
            raise _SearchStopped("time limit reached")
        self.evaluations += 1
        cost = float(self.problem.objective(x))
        violation = max_violation(self.residuals(x))
        self._record(x, cost, violation)
        return cost

    def _record(self, x: np.ndarray, cost: float, violation: float) -> None:
        if self.best_x is None:
            self.accept(x, cost, violation)
            return
        if not np.isfinite(cost):
            return
        feasible = violation <= self.tolerance
        best_feasible = self.best_violation <= self.tolerance and np.isfinite(self.best_cost)
        if feasible and best_feasible:
            if cost < self.best_cost:
                previous = self.best_cost
                self.accept(x, cost, violation)
                if abs(previous - cost) <= self.settings.ftol_rel * abs(previous):
                    raise _SearchStopped("relative function tolerance reached", True)
        elif feasible or violation < self.best_violation:
            self.accept(x, cost, violation)

    def accept(self, x: np.ndarray, cost: float, violation: float) -> None:
        self.best_x = np.array(x, copy=True)
        self.best_cost = cost if np.isfinite(cost) else float("inf")
        self.best_violation = violation


class CobylaSolver(NLPSolver):
    """
    Derivative-free local search (SciPy COBYLA).

    COBYLA only supports inequalities, so equalities are relaxed into
    ``|c_eq| <= equality_tolerance`` pairs and variable bounds become extra
    inequality rows.
    """

    name = "cobyla"

    def __init__(self, rhobeg: float = 0.1, equality_tolerance: float = 0.01):
        self.rhobeg = rhobeg
        self.equality_tolerance = equality_tolerance

    def solve(self, problem: NLPProblem, settings: SolverSettings) -> NLPSolution:
        x0 = np.asarray(problem.x0, dtype=float).copy()
        tolerance = problem.feasibility_tolerance()
        tracker = _EvaluationTracker(problem, settings, tolerance, self.equality_tolerance)

        constraints = []
        if tracker.residuals(x0).size:
            constraints.append({"type": "ineq", "fun": tracker.negated_residuals})

        options = {
            "maxiter": int(settings.max_evaluations),
            "rhobeg": self.rhobeg,
            "catol": tolerance,
        }
        step_tol = settings.xtol_rel * max(1.0, float(np.linalg.norm(x0, np.inf)))

        try:
            result = minimize(
                tracker.objective,
                x0,
                method="COBYLA",
                constraints=constraints,
                tol=step_tol,
                options=options,
            )
            status = str(result.message)
            converged = bool(result.success)
        except _SearchStopped as stop:
            status = str(stop)
            converged = stop.converged

        if tracker.best_x is None:
            tracker.accept(
                x0, float(problem.objective(x0)), max_violation(tracker.residuals(x0))
            )

        logger.info("COBYLA stopped after %d evaluations: %s", tracker.evaluations, status)
        return NLPSolution(
            x=tracker.best_x,
            cost=tracker.best_cost,
            evaluations=tracker.evaluations,
            status=status,
            converged=converged,
            max_violation=problem.violation(tracker.best_x, self.equality_tolerance),
        )


class _NumpyCallback(ca.Callback):
    """Exposes a NumPy evaluator to CasADi; derivatives by finite differences."""

    def __init__(self, name: str, fn: Callable, n_in: int, n_out: int):
        ca.Callback.__init__(self)
        self._fn = fn
        self._n_in = n_in
        self._n_out = n_out
        self.calls = 0
        self.construct(name, {"enable_fd": True})

    def get_n_in(self) -> int:
        return 1

    def get_n_out(self) -> int:
        return 1

    def get_sparsity_in(self, i):
        return ca.Sparsity.dense(self._n_in, 1)

    def get_sparsity_out(self, i):
        return ca.Sparsity.dense(self._n_out, 1)

    def eval(self, arg):
        self.calls += 1
        x = np.asarray(arg[0]).flatten()
        return [ca.DM(np.atleast_1d(np.asarray(self._fn(x), dtype=float)))]


class IpoptSolver(NLPSolver):
    """
    Interior point solve through CasADi/IPOPT with native equality support.

    IPOPT counts iterations rather than function evaluations, so
    ``max_evaluations`` caps the iteration count.
    """

    name = "ipopt"

    def __init__(self, print_level: int = 0):
        self.print_level = print_level

    def solve(self, problem: NLPProblem, settings: SolverSettings) -> NLPSolution:
        n = problem.dimension
        x0 = np.asarray(problem.x0, dtype=float).copy()
        w = ca.MX.sym("w", n)

        objective = _NumpyCallback("objective", problem.objective, n, 1)
        blocks = [objective]
        g_parts = []
        lbg: List[np.ndarray] = []
        ubg: List[np.ndarray] = []
        if problem.equality is not None and problem.equality_dim:
            equality = _NumpyCallback("equality", problem.equality, n, problem.equality_dim)
            blocks.append(equality)
            g_parts.append(equality(w))
            lbg.append(np.zeros(problem.equality_dim))
            ubg.append(np.zeros(problem.equality_dim))
        if problem.inequality is not None and problem.inequality_dim:
            inequality = _NumpyCallback(
                "inequality", problem.inequality, n, problem.inequality_dim
            )
            blocks.append(inequality)
            g_parts.append(inequality(w))
            lbg.append(-np.inf * np.ones(problem.inequality_dim))
            ubg.append(np.zeros(problem.inequality_dim))

        nlp = {"x": w, "f": objective(w)}
        args = {"x0": x0}
        if g_parts:
            nlp["g"] = ca.vertcat(*g_parts)
            args["lbg"] = np.concatenate(lbg)
            args["ubg"] = np.concatenate(ubg)
        if problem.bounds is not None:
            args["lbx"], args["ubx"] = problem.bounds

        opts = {
            "ipopt.hessian_approximation": "limited-memory",
            "ipopt.max_iter": int(settings.max_evaluations),
            "ipopt.max_cpu_time": float(settings.max_time_sec),
            "ipopt.tol": settings.ftol_rel,
            "ipopt.print_level": self.print_level,
            "print_time": 0,
        }
        solver = ca.nlpsol("glider_nlp", "ipopt", nlp, opts)
        sol = solver(**args)
        stats = solver.stats()

        x = np.asarray(sol["x"].full()).flatten()
        status = str(stats.get("return_status", "unknown"))
        evaluations = sum(block.calls for block in blocks)
        logger.info("IPOPT finished with status %s", status)
        return NLPSolution(
            x=x,
            cost=float(sol["f"]),
            evaluations=evaluations,
            status=status,
            converged=bool(stats.get("success", False)),
            max_violation=problem.violation(x),
        )


def make_solver(name: str) -> NLPSolver:
    solvers = {"cobyla": CobylaSolver, "ipopt": IpoptSolver}
    try:
        return solvers[name.lower()]()
    except KeyError:
        raise ValueError(
            f"unknown solver '{name}', expected one of {sorted(solvers)}"
        ) from None
