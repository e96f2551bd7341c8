from __future__ import annotations

import logging

import numpy as np

from .collocation import BoundarySpec
from .dynamics import GliderPhysicalParams
from .layout import GliderDecisionLayout

logger = logging.getLogger(__name__)

# Soft version of the start-position anchor, stacked on top of the
# inequality pair in the constraint block.
START_PENALTY_WEIGHT = 1e6


def control_effort_objective(
    decision: np.ndarray, params: GliderPhysicalParams, boundary: BoundarySpec
) -> float:
    """
    Quadratic running cost ``h * sum(x_i^T Q x_i + u_i R u_i)`` plus a large
    L1 penalty on the distance of the first knot from the start target.
    """
    layout = GliderDecisionLayout.from_decision_length(np.size(decision))
    states, controls = layout.split(decision)
    Q = np.asarray(params.Q, dtype=float)

    state_terms = np.einsum("ij,jk,ik->i", states, Q, states)
    input_terms = controls * params.R * controls
    running = float(np.sum(state_terms + input_terms))

    start_error = np.abs(states[0, :2] - boundary.start_target)
    cost = running * params.h + START_PENALTY_WEIGHT * float(np.sum(start_error))
    logger.debug("cost = %f", cost)
    return cost
