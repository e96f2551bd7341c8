from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np

from .dynamics import CONTROL_DIM, STATE_DIM

KNOT_DIM = STATE_DIM + CONTROL_DIM

# Per-knot residual block: 7 defect pairs followed by 6 box pairs.
DEFECT_ROWS = 2 * STATE_DIM
BOX_ROWS = 12
ROWS_PER_KNOT = DEFECT_ROWS + BOX_ROWS
ANCHOR_ROWS = 4


@dataclass(frozen=True)
class GliderDecisionLayout:
    """
    Index bookkeeping for the flattened decision vector and residual array.

    Knot ``i`` occupies ``[8i, 8i + 8)`` of the decision vector and its
    residual block starts at ``26i``.  The anchor pairs follow all knot
    blocks.
    """

    num_knots: int

    @classmethod
    def from_decision_length(cls, length: int) -> "GliderDecisionLayout":
        if length % KNOT_DIM:
            raise ValueError(
                f"decision vector length {length} is not a multiple of {KNOT_DIM}"
            )
        return cls(num_knots=length // KNOT_DIM)

    @property
    def state_dim(self) -> int:
        return STATE_DIM

    @property
    def control_dim(self) -> int:
        return CONTROL_DIM

    @property
    def decision_dim(self) -> int:
        return KNOT_DIM * self.num_knots

    @property
    def constraint_dim(self) -> int:
        return ANCHOR_ROWS + ROWS_PER_KNOT * self.num_knots

    @property
    def equality_dim(self) -> int:
        return STATE_DIM * max(self.num_knots - 1, 0) + 2

    @property
    def anchor_offset(self) -> int:
        return ROWS_PER_KNOT * self.num_knots

    def knot_offset(self, index: int) -> int:
        return ROWS_PER_KNOT * index

    def box_offset(self, index: int) -> int:
        return ROWS_PER_KNOT * index + DEFECT_ROWS

    def knots(self, decision: np.ndarray) -> np.ndarray:
        decision = np.asarray(decision, dtype=float)
        if decision.size != self.decision_dim:
            raise ValueError(
                f"expected {self.decision_dim} decision variables, got {decision.size}"
            )
        return decision.reshape(self.num_knots, KNOT_DIM)

    def split(self, decision: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        knots = self.knots(decision)
        return knots[:, :STATE_DIM], knots[:, STATE_DIM]

    def join(self, states: np.ndarray, controls: np.ndarray) -> np.ndarray:
        states = np.asarray(states, dtype=float).reshape(self.num_knots, STATE_DIM)
        controls = np.asarray(controls, dtype=float).reshape(self.num_knots, CONTROL_DIM)
        return np.hstack([states, controls]).flatten()
