import pytest

from followcam.trajectory.smoothing import TrajectorySmoother, smooth_trajectory


def test_jump_rejection_drops_single_outlier() -> None:
    s = TrajectorySmoother(window_size=3, max_deviation=40.0)
    out = s.reject_jumps([(0, 0), (1, 1), (2, 0), (100, 100), (3, 1)])
    assert out == [(0.0, 0.0), (1.0, 1.0), (2.0, 0.0), None, (3.0, 1.0)]


def test_first_point_always_accepted() -> None:
    s = TrajectorySmoother(window_size=3, max_deviation=1.0)
    assert s.reject_jumps([None, (500, 500)]) == [None, (500.0, 500.0)]


def test_sustained_move_accepted_once_window_ages_out() -> None:
    s = TrajectorySmoother(window_size=2, max_deviation=10.0)
    out = s.reject_jumps([(0, 0), (0, 0), (100, 0), (100, 0), (100, 0)])
    # rejected entries fill the window, then the new position is the only reference left
    assert out[:4] == [(0.0, 0.0), (0.0, 0.0), None, None]
    assert out[4] == (100.0, 0.0)


def test_linear_interpolation_fills_inner_gap() -> None:
    s = TrajectorySmoother()
    assert s.interpolate([0, None, None, 6]).tolist() == [0.0, 2.0, 4.0, 6.0]
    assert s.interpolate([0, None, None, 0]).tolist() == [0.0, 0.0, 0.0, 0.0]


def test_edge_gaps_zero_vs_clamp() -> None:
    values = [None, 5, None, 7, None]
    assert TrajectorySmoother(edge_mode="zero").interpolate(values).tolist() == [0.0, 5.0, 6.0, 7.0, 0.0]
    assert TrajectorySmoother(edge_mode="clamp").interpolate(values).tolist() == [5.0, 5.0, 6.0, 7.0, 7.0]


def test_all_absent_interpolates_to_zeros() -> None:
    assert TrajectorySmoother().interpolate([None, None, None]).tolist() == [0.0, 0.0, 0.0]


def test_median_suppresses_spike() -> None:
    s = TrajectorySmoother(kernel_size=3)
    assert s.median([1, 1, 1, 9, 1, 1, 1]).tolist() == [1.0] * 7


def test_median_window_clipped_at_edges() -> None:
    s = TrajectorySmoother(kernel_size=5)
    assert s.median([5, 1, 2]).tolist() == [2.0, 2.0, 2.0]


def test_constant_sequence_is_unchanged() -> None:
    pts = [(3.5, -2.0)] * 8
    assert smooth_trajectory(pts, kernel_size=5) == pts


def test_output_length_matches_input() -> None:
    pts = [(0, 0), None, (2, 2), None, None, (5, 5)]
    assert len(smooth_trajectory(pts)) == len(pts)
    assert smooth_trajectory([]) == []


@pytest.mark.parametrize("kwargs", [{"kernel_size": 4}, {"kernel_size": 0}, {"window_size": 0}, {"edge_mode": "mirror"}])
def test_invalid_parameters_rejected(kwargs) -> None:
    with pytest.raises(ValueError):
        TrajectorySmoother(**kwargs)
