import time

import numpy as np
import pytest

from glider_trajopt.solvers import (
    CobylaSolver,
    IpoptSolver,
    NLPProblem,
    SolverSettings,
    _EvaluationTracker,
    _SearchStopped,
    make_solver,
)


def quadratic(x):
    return float((x[0] - 1.0) ** 2 + (x[1] - 2.0) ** 2)


def half_plane(x):
    # x0 + x1 <= 2
    return np.array([x[0] + x[1] - 2.0])


@pytest.fixture
def inequality_problem():
    return NLPProblem(
        objective=quadratic,
        x0=np.zeros(2),
        inequality=half_plane,
        inequality_dim=1,
        inequality_tolerance=np.array([1e-6]),
    )


@pytest.fixture
def settings():
    return SolverSettings(ftol_rel=1e-10, xtol_rel=1e-8, max_evaluations=2000, max_time_sec=5.0)


@pytest.fixture
def ipopt_settings():
    # finite-difference derivatives limit the attainable KKT accuracy
    return SolverSettings(ftol_rel=1e-6, max_evaluations=200, max_time_sec=10.0)


def test_problem_residuals_stack_everything():
    problem = NLPProblem(
        objective=quadratic,
        x0=np.zeros(2),
        inequality=half_plane,
        inequality_dim=1,
        equality=lambda x: np.array([x[0] - x[1]]),
        equality_dim=1,
        bounds=(np.array([-1.0, -1.0]), np.array([1.0, 1.0])),
    )
    x = np.array([2.0, 0.5])

    residuals = problem.residuals(x)

    np.testing.assert_allclose(residuals, [0.5, 1.5, -1.5, -3.0, -1.5, 1.0, -0.5])
    assert problem.violation(x) == pytest.approx(1.5)


def test_cobyla_inequality(inequality_problem, settings):
    solution = CobylaSolver(rhobeg=0.5).solve(inequality_problem, settings)

    np.testing.assert_allclose(solution.x, [0.5, 1.5], atol=1e-2)
    assert solution.max_violation <= 1e-6
    assert solution.cost == pytest.approx(quadratic(solution.x))
    assert 0 < solution.evaluations <= settings.max_evaluations


def test_cobyla_relaxes_equalities(settings):
    problem = NLPProblem(
        objective=lambda x: float(x[0] ** 2 + x[1] ** 2),
        x0=np.array([2.0, -1.0]),
        equality=lambda x: np.array([x[0] + x[1] - 1.0]),
        equality_dim=1,
    )

    solution = CobylaSolver(rhobeg=0.5, equality_tolerance=1e-4).solve(problem, settings)

    np.testing.assert_allclose(solution.x, [0.5, 0.5], atol=1e-2)
    assert abs(solution.x.sum() - 1.0) <= 1e-4 + 1e-6


def test_cobyla_respects_bounds(settings):
    problem = NLPProblem(
        objective=quadratic,
        x0=np.zeros(2),
        bounds=(np.array([-1.0, -1.0]), np.array([0.5, 0.5])),
    )

    solution = CobylaSolver(rhobeg=0.2).solve(problem, settings)

    np.testing.assert_allclose(solution.x, [0.5, 0.5], atol=1e-2)


def test_cobyla_evaluation_cap(inequality_problem):
    settings = SolverSettings(max_evaluations=6, max_time_sec=5.0)

    solution = CobylaSolver().solve(inequality_problem, settings)

    assert solution.evaluations <= 6
    assert solution.x.shape == (2,)
    assert not solution.converged


def test_cobyla_time_budget():
    def slow_bowl(x):
        time.sleep(0.01)
        return float(np.sum((x - 10.0) ** 2))

    problem = NLPProblem(objective=slow_bowl, x0=np.zeros(10))
    settings = SolverSettings(max_evaluations=10000, max_time_sec=0.05)

    start = time.monotonic()
    solution = CobylaSolver(rhobeg=0.1).solve(problem, settings)

    assert time.monotonic() - start < 1.0
    assert solution.status == "time limit reached"
    assert solution.evaluations < 20


def test_cobyla_never_picks_non_finite_cost(settings):
    def holey(x):
        if x[0] > 0.5:
            return float("nan")
        return quadratic(x)

    problem = NLPProblem(objective=holey, x0=np.zeros(2))
    solution = CobylaSolver(rhobeg=0.2).solve(
        problem, SolverSettings(max_evaluations=200, max_time_sec=5.0)
    )

    assert np.isfinite(solution.cost)
    assert solution.x[0] <= 0.5


def test_cobyla_stops_on_relative_cost_change():
    def offset_bowl(x):
        return float(np.sum((x - 1.0) ** 2) + 1.0)

    problem = NLPProblem(objective=offset_bowl, x0=np.zeros(2))
    settings = SolverSettings(ftol_rel=1e-3, xtol_rel=1e-10, max_evaluations=2000, max_time_sec=5.0)

    solution = CobylaSolver(rhobeg=0.5).solve(problem, settings)

    assert solution.status == "relative function tolerance reached"
    assert solution.converged
    assert solution.evaluations < settings.max_evaluations
    assert solution.cost == pytest.approx(1.0, abs=1e-2)


def test_tracker_relative_stop_compares_feasible_costs():
    problem = NLPProblem(objective=quadratic, x0=np.zeros(2))
    tracker = _EvaluationTracker(problem, SolverSettings(ftol_rel=1e-3), 1e-8, 0.0)

    tracker.objective(np.array([0.0, 0.0]))
    tracker.objective(np.array([1.0, 1.0]))
    with pytest.raises(_SearchStopped) as stop:
        tracker.objective(np.array([1.0, 1.00025]))

    assert stop.value.converged
    np.testing.assert_allclose(tracker.best_x, [1.0, 1.00025])


def nan_at_origin(x):
    if not np.any(x):
        return float("nan")
    return float(np.sum((x - 3.0) ** 2))


def test_tracker_non_finite_start_is_not_a_reference():
    problem = NLPProblem(objective=nan_at_origin, x0=np.zeros(2))
    tracker = _EvaluationTracker(problem, SolverSettings(ftol_rel=1e-6), 1e-8, 0.0)

    tracker.objective(np.zeros(2))
    assert tracker.best_cost == float("inf")
    tracker.objective(np.array([0.5, 0.0]))
    tracker.objective(np.array([1.0, 0.0]))

    np.testing.assert_allclose(tracker.best_x, [1.0, 0.0])
    assert tracker.best_cost == pytest.approx(13.0)


def test_cobyla_non_finite_start_keeps_searching():
    problem = NLPProblem(objective=nan_at_origin, x0=np.zeros(2))
    solution = CobylaSolver(rhobeg=0.5).solve(
        problem, SolverSettings(ftol_rel=1e-6, max_evaluations=500, max_time_sec=5.0)
    )

    assert solution.evaluations > 2
    assert np.isfinite(solution.cost)
    assert solution.cost <= 15.25


def test_cobyla_reports_violation_with_equality_relaxation():
    problem = NLPProblem(
        objective=lambda x: float(x[0] ** 2),
        x0=np.array([0.005]),
        equality=lambda x: np.array([x[0]]),
        equality_dim=1,
    )
    settings = SolverSettings(max_evaluations=1, max_time_sec=5.0)

    solution = CobylaSolver(equality_tolerance=0.01).solve(problem, settings)

    np.testing.assert_allclose(solution.x, [0.005])
    assert solution.max_violation == 0.0


def test_ipopt_inequality(inequality_problem, ipopt_settings):
    solution = IpoptSolver().solve(inequality_problem, ipopt_settings)

    np.testing.assert_allclose(solution.x, [0.5, 1.5], atol=1e-4)
    assert solution.converged
    assert solution.evaluations > 0


def test_ipopt_equality_with_bounds(ipopt_settings):
    problem = NLPProblem(
        objective=lambda x: float(x[0] ** 2 + x[1] ** 2),
        x0=np.array([2.0, -1.0]),
        equality=lambda x: np.array([x[0] + x[1] - 1.0]),
        equality_dim=1,
        bounds=(np.array([-5.0, 0.8]), np.array([5.0, 5.0])),
    )

    solution = IpoptSolver().solve(problem, ipopt_settings)

    np.testing.assert_allclose(solution.x, [0.2, 0.8], atol=1e-4)
    assert solution.max_violation <= 1e-6


def test_make_solver():
    assert isinstance(make_solver("cobyla"), CobylaSolver)
    assert isinstance(make_solver("IPOPT"), IpoptSolver)
    with pytest.raises(ValueError):
        make_solver("snopt")
