"""
Trapezoidal direct collocation for the flat-plate glider.

Two transcriptions of the same problem are provided:

* ``collocation_inequality_constraints`` packs everything into a single
  ``g(w) <= 0`` block.  Equalities become symmetric pairs with a small
  tolerance because COBYLA only understands inequalities.
* ``collocation_equality_constraints`` together with ``decision_bounds``
  expresses the defects as true equalities and the limits as variable bounds,
  for solvers that handle both natively.

References: Kelly, "An introduction to trajectory optimization: how to do your
own direct collocation" (SIAM Review, 2017).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Tuple

import numpy as np

from .dynamics import STATE_DIM, GliderDynamics, GliderPhysicalParams
from .layout import GliderDecisionLayout, KNOT_DIM

DEFECT_TOLERANCE = 0.01
UNBOUNDED_POSITION = 1e8


@dataclass(frozen=True)
class BoundarySpec:
    """
    Path limits and the start-point target.

    All limits are symmetric: ``-bound <= value <= bound``.  ``velocity``
    applies to both velocity components.  Only index 0 of the target
    sequences is used.
    """

    velocity: float
    theta: float
    phi: float
    theta_dot: float
    phi_dot: float
    initial_x: Tuple[float, ...] = field(default_factory=lambda: (0.0,))
    initial_z: Tuple[float, ...] = field(default_factory=lambda: (0.0,))

    def validate(self) -> None:
        for name in ("velocity", "theta", "phi", "theta_dot", "phi_dot"):
            value = getattr(self, name)
            if not np.isfinite(value) or value < 0.0:
                raise ValueError(f"{name} bound must be non-negative, got {value}")
        if len(self.initial_x) == 0 or len(self.initial_z) == 0:
            raise ValueError("initial_x and initial_z need at least one target")

    @property
    def start_target(self) -> np.ndarray:
        return np.array([self.initial_x[0], self.initial_z[0]], dtype=float)

    def box_limits(self) -> np.ndarray:
        """Limits in residual order: theta, phi, xdot, zdot, thetadot, phidot."""
        return np.array(
            [
                self.theta,
                self.phi,
                self.velocity,
                self.velocity,
                self.theta_dot,
                self.phi_dot,
            ]
        )


def set_bounded_constraint(
    result: np.ndarray, index: int, value: float, bound: float, target: float = 0.0
) -> None:
    """Writes the pair ``|value - target| <= bound`` as two ``<= 0`` rows."""
    result[index] = -value + target - bound
    result[index + 1] = value - target - bound


def trapezoidal_defects(decision: np.ndarray, params: GliderPhysicalParams) -> np.ndarray:
    """
    Defect ``x_k - x_{k+1} + h/2 (f_k + f_{k+1})`` for every consecutive
    knot pair, shape ``(N - 1, 7)``.
    """
    layout = GliderDecisionLayout.from_decision_length(np.size(decision))
    states, _ = layout.split(decision)
    derivs = GliderDynamics(params).knot_derivatives(decision)
    return states[:-1] - states[1:] + 0.5 * params.h * (derivs[:-1] + derivs[1:])


def collocation_inequality_constraints(
    decision: np.ndarray,
    params: GliderPhysicalParams,
    boundary: BoundarySpec,
    defect_tolerance: float = DEFECT_TOLERANCE,
) -> np.ndarray:
    """
    Residuals ``g(w)`` such that the trajectory is feasible iff ``g <= 0``.

    Layout for knot ``i`` (26 rows starting at ``26i``):

    * rows 0-13: defect pairs, components 0..6.  The last knot has no
      successor, so its rows stay at zero.
    * rows 14-25: box pairs for theta, phi, xdot, zdot, thetadot, phidot.

    Rows ``26N`` to ``26N + 3`` anchor the first knot's position to the start
    target.
    """
    layout = GliderDecisionLayout.from_decision_length(np.size(decision))
    knots = layout.knots(decision)
    result = np.zeros(layout.constraint_dim)

    defects = trapezoidal_defects(decision, params)
    for i, defect in enumerate(defects):
        offset = layout.knot_offset(i)
        for j in range(STATE_DIM):
            set_bounded_constraint(result, offset + 2 * j, defect[j], defect_tolerance)

    limits = boundary.box_limits()
    for i, knot in enumerate(knots):
        offset = layout.box_offset(i)
        # knot[2:8] = theta, phi, xdot, zdot, thetadot, phidot
        for j, (value, bound) in enumerate(zip(knot[2:KNOT_DIM], limits)):
            set_bounded_constraint(result, offset + 2 * j, value, bound)

    target = boundary.start_target
    set_bounded_constraint(
        result, layout.anchor_offset, knots[0, 0], defect_tolerance, target[0]
    )
    set_bounded_constraint(
        result, layout.anchor_offset + 2, knots[0, 1], defect_tolerance, target[1]
    )
    return result


def collocation_equality_constraints(
    decision: np.ndarray, params: GliderPhysicalParams, boundary: BoundarySpec
) -> np.ndarray:
    """
    Defects followed by the start-position deviation; feasible iff all zero.

    Length is ``7 (N - 1) + 2``.
    """
    defects = trapezoidal_defects(decision, params)
    knots = np.asarray(decision, dtype=float).reshape(-1, KNOT_DIM)
    anchor = knots[0, :2] - boundary.start_target
    return np.concatenate([defects.flatten(), anchor])


def decision_bounds(
    layout: GliderDecisionLayout, boundary: BoundarySpec
) -> Tuple[np.ndarray, np.ndarray]:
    """Per-variable box bounds; positions are left effectively free."""
    per_knot = np.concatenate(
        [[UNBOUNDED_POSITION, UNBOUNDED_POSITION], boundary.box_limits()]
    )
    upper = np.tile(per_knot, layout.num_knots)
    return -upper, upper


def max_violation(residuals: np.ndarray) -> float:
    residuals = np.asarray(residuals, dtype=float)
    if residuals.size == 0:
        return 0.0
    if not np.all(np.isfinite(residuals)):
        return float("inf")
    return float(max(0.0, np.max(residuals)))
