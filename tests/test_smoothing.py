import numpy as np
import pytest

from dstat_plot.smoothing import (
    SMOOTH_SAMPLES,
    InvalidTransformConfigError,
    SmoothingAlgorithm,
    apply_smoothing,
)


def test_algorithm_names_are_the_fixed_set():
    assert SmoothingAlgorithm.names() == [
        "unique",
        "frequency",
        "cumulative",
        "cnormal",
        "kdensity",
        "unwrap",
        "csplines",
        "acsplines",
        "mcsplines",
        "bezier",
        "sbezier",
    ]


def test_parse_rejects_unknown_name_with_listing():
    with pytest.raises(InvalidTransformConfigError) as excinfo:
        SmoothingAlgorithm.parse("lowess")
    assert "lowess" in str(excinfo.value)
    assert "mcsplines" in str(excinfo.value)
    assert SmoothingAlgorithm.parse(" CSplines ") is SmoothingAlgorithm.CSPLINES


def test_unique_frequency_cumulative_cnormal():
    x = np.array([2.0, 1.0, 2.0, 3.0])
    y = np.array([4.0, 1.0, 6.0, 3.0])

    ux, uy = apply_smoothing(x, y, "unique")
    assert list(ux) == [1.0, 2.0, 3.0]
    assert list(uy) == [1.0, 5.0, 3.0]

    fx, fy = apply_smoothing(x, y, SmoothingAlgorithm.FREQUENCY)
    assert list(fy) == [1.0, 10.0, 3.0]

    _, cy = apply_smoothing(x, y, "cumulative")
    assert list(cy) == [1.0, 11.0, 14.0]

    _, ny = apply_smoothing(x, y, "cnormal")
    assert ny[-1] == pytest.approx(1.0)
    assert np.all(np.diff(ny) >= 0)


def test_nan_points_are_dropped():
    x = np.array([0.0, 1.0, 2.0])
    y = np.array([1.0, np.nan, 3.0])
    ux, uy = apply_smoothing(x, y, "unique")
    assert list(ux) == [0.0, 2.0]
    assert list(uy) == [1.0, 3.0]


def test_splines_pass_through_knots():
    x = np.arange(6, dtype=float)
    y = np.array([0.0, 2.0, 1.0, 4.0, 3.0, 5.0])

    for name in ("csplines", "mcsplines"):
        sx, sy = apply_smoothing(x, y, name)
        assert len(sx) >= SMOOTH_SAMPLES
        assert sx[0] == pytest.approx(0.0) and sx[-1] == pytest.approx(5.0)
        assert sy[0] == pytest.approx(0.0) and sy[-1] == pytest.approx(5.0)


def test_mcsplines_keeps_monotone_data_monotone():
    x = np.arange(8, dtype=float)
    y = np.array([0.0, 0.0, 1.0, 5.0, 5.0, 6.0, 9.0, 9.0])
    _, sy = apply_smoothing(x, y, "mcsplines")
    assert np.all(np.diff(sy) >= -1e-9)


def test_acsplines_returns_finite_curve():
    x = np.linspace(0.0, 10.0, 30)
    y = np.sin(x) + 0.1 * np.cos(7 * x)
    sx, sy = apply_smoothing(x, y, "acsplines")
    assert len(sx) == len(sy) >= SMOOTH_SAMPLES
    assert np.all(np.isfinite(sy))


def test_bezier_endpoints_match_first_and_last_points():
    x = np.array([0.0, 1.0, 2.0, 3.0])
    y = np.array([10.0, 30.0, -5.0, 20.0])
    for name in ("bezier", "sbezier"):
        bx, by = apply_smoothing(x, y, name)
        assert bx[0] == pytest.approx(0.0) and by[0] == pytest.approx(10.0)
        assert bx[-1] == pytest.approx(3.0) and by[-1] == pytest.approx(20.0)
        # Convex hull property
        assert by.min() >= -5.0 - 1e-9 and by.max() <= 30.0 + 1e-9


def test_kdensity_is_non_negative_over_data_range():
    x = np.array([0.0, 1.0, 2.0, 3.0, 4.0])
    y = np.array([1.0, 2.0, 3.0, 2.0, 1.0])
    kx, ky = apply_smoothing(x, y, "kdensity")
    assert len(kx) == len(ky)
    assert kx[0] == pytest.approx(0.0) and kx[-1] == pytest.approx(4.0)
    assert np.all(ky >= 0.0)


def test_unwrap():
    x = np.array([0.0, 1.0, 2.0])
    # Second jump is larger than pi and gets folded back by 2*pi
    y = np.array([0.0, 3.0, 6.5])
    _, uy = apply_smoothing(x, y, "unwrap")
    assert uy[0] == 0.0
    assert uy[1] == pytest.approx(3.0)
    assert uy[2] == pytest.approx(6.5 - 2 * np.pi)


def test_single_point_is_returned_unchanged():
    for name in ("csplines", "acsplines", "mcsplines", "kdensity", "bezier"):
        sx, sy = apply_smoothing(np.array([1.0]), np.array([2.0]), name)
        assert list(sx) == [1.0] and list(sy) == [2.0]
