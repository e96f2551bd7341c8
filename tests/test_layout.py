import numpy as np
import pytest

from glider_trajopt.layout import GliderDecisionLayout


@pytest.mark.parametrize("num_knots", [1, 2, 5, 20])
def test_sizes(num_knots):
    layout = GliderDecisionLayout.from_decision_length(8 * num_knots)

    assert layout.num_knots == num_knots
    assert layout.decision_dim == 8 * num_knots
    assert layout.constraint_dim == 4 + 26 * num_knots
    assert layout.equality_dim == 7 * (num_knots - 1) + 2


@pytest.mark.parametrize("length", [1, 9, 17, 8 * 20 + 1])
def test_rejects_partial_knots(length):
    with pytest.raises(ValueError):
        GliderDecisionLayout.from_decision_length(length)


def test_offsets():
    layout = GliderDecisionLayout(3)

    assert layout.knot_offset(2) == 52
    assert layout.box_offset(0) == 14
    assert layout.box_offset(2) == 66
    assert layout.anchor_offset == 78


def test_split_and_join():
    layout = GliderDecisionLayout(3)
    decision = np.arange(24, dtype=float)

    states, controls = layout.split(decision)

    assert states.shape == (3, 7)
    np.testing.assert_array_equal(controls, [7.0, 15.0, 23.0])
    np.testing.assert_array_equal(layout.join(states, controls), decision)


def test_knots_checks_length():
    with pytest.raises(ValueError):
        GliderDecisionLayout(2).knots(np.zeros(8))
