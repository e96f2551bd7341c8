import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import numpy as np

from glider_trajopt.guess import straight_line_guess
from glider_trajopt.plotting import plot_states, plot_trajectory
from glider_trajopt.trajectory_optimizer import TrajectoryResult


def sample_result(h=0.1):
    decision = straight_line_guess((0.0, 1.0), (1.0, 0.0), 6, 0.6)
    return TrajectoryResult.from_decision(decision, h)


def test_plot_trajectory_draws_plates(params):
    fig = plot_trajectory(sample_result(), params, show=False)
    ax = fig.axes[0]

    # path + one wing and one elevator segment per knot
    assert len(ax.lines) == 1 + 2 * 6
    np.testing.assert_allclose(ax.lines[0].get_xdata(), np.linspace(0.0, 1.0, 6))
    plt.close(fig)


def test_plot_trajectory_without_params():
    fig = plot_trajectory(sample_result(), show=False)

    assert len(fig.axes[0].lines) == 1
    plt.close(fig)


def test_plot_empty_result():
    fig = plot_trajectory(TrajectoryResult(), show=False)

    assert len(fig.axes) == 1
    plt.close(fig)


def test_plot_states():
    fig = plot_states(sample_result(), show=False)

    assert len(fig.axes) == 4
    np.testing.assert_allclose(fig.axes[0].lines[0].get_xdata(), 0.1 * np.arange(6))
    plt.close(fig)
