from __future__ import annotations

from typing import Sequence

import numpy as np

from .layout import GliderDecisionLayout


def straight_line_guess(
    start: Sequence[float], end: Sequence[float], num_knots: int, duration: float
) -> np.ndarray:
    """
    Warm start flying a straight segment from ``start`` to ``end`` (x, z).

    Velocities are the constant segment velocity; attitude, elevator and all
    rates are zero.
    """
    if num_knots < 1:
        raise ValueError("num_knots must be >= 1")
    if duration <= 0.0:
        raise ValueError("duration must be positive")

    start = np.asarray(start, dtype=float)
    end = np.asarray(end, dtype=float)
    layout = GliderDecisionLayout(num_knots)

    alphas = np.linspace(0.0, 1.0, num_knots)
    positions = (1 - alphas)[:, None] * start[None, :] + alphas[:, None] * end[None, :]
    velocity = (end - start) / duration

    states = np.zeros((num_knots, layout.state_dim))
    states[:, 0:2] = positions
    states[:, 4:6] = velocity
    return layout.join(states, np.zeros(num_knots))
