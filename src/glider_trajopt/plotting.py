"""Visualization utilities for glider trajectories."""

from __future__ import annotations

from typing import Optional

import matplotlib.pyplot as plt
import numpy as np

from .dynamics import GliderPhysicalParams, surface_kinematics
from .trajectory_optimizer import TrajectoryResult

PLATE_HALF_CHORD = 0.02


def _plate_segment(centroid: np.ndarray, angle: float) -> np.ndarray:
    chord = PLATE_HALF_CHORD * np.array([np.cos(angle), np.sin(angle)])
    return np.array([centroid - chord, centroid + chord])


def plot_trajectory(
    result: TrajectoryResult,
    params: Optional[GliderPhysicalParams] = None,
    show: bool = True,
):
    """Plot the x-z path, with wing and elevator plates when params are given."""
    fig, ax = plt.subplots(figsize=(8, 5))
    ax.plot(result.x, result.z, "-o", markersize=3, linewidth=2, label="Trajectory")
    if not result.is_empty():
        ax.scatter(result.x[0], result.z[0], color="g", marker="o", label="Start")
        ax.scatter(result.x[-1], result.z[-1], color="r", marker="*", label="End")

    if params is not None:
        for i in range(result.num_knots):
            state = np.array(
                [result.x[i], result.z[i], result.theta[i], result.phi[i], result.vx[i], result.vz[i], 0.0]
            )
            x_w, x_e, _, _ = surface_kinematics(state, 0.0, params)
            wing = _plate_segment(x_w, result.theta[i])
            elevator = _plate_segment(x_e, result.theta[i] + result.phi[i])
            ax.plot(wing[:, 0], wing[:, 1], color="k", linewidth=1.5)
            ax.plot(elevator[:, 0], elevator[:, 1], color="tab:orange", linewidth=1.5)

    ax.set_xlabel("x (m)")
    ax.set_ylabel("z (m)")
    ax.set_aspect("equal", adjustable="datalim")
    ax.legend()
    ax.set_title("Glider Trajectory")
    fig.tight_layout()
    if show:
        plt.show()
    return fig


def plot_states(result: TrajectoryResult, show: bool = True):
    fig, axs = plt.subplots(2, 2, figsize=(9, 6), sharex=True)
    series = [
        (result.theta, "theta (rad)"),
        (result.phi, "phi (rad)"),
        (result.vx, "vx (m/s)"),
        (result.vz, "vz (m/s)"),
    ]
    for ax, (values, label) in zip(axs.flatten(), series):
        ax.plot(result.time_grid, values)
        ax.set_ylabel(label)
        ax.grid(True)
    for ax in axs[-1]:
        ax.set_xlabel("t (s)")
    fig.tight_layout()
    if show:
        plt.show()
    return fig
