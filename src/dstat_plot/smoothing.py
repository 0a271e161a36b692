"""
Curve smoothing applied by the renderer before a series is drawn.

The algorithm names are the ones gnuplot accepts for `plot ... smooth <name>`, so
existing dstat plotting habits keep working. Every function takes and returns a
pair of float arrays (x, y) and never modifies its inputs.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable

import numpy as np
import pandas as pd
import statsmodels.api as sm
from scipy.interpolate import CubicSpline, PchipInterpolator, UnivariateSpline
from scipy.stats import binom

logger = logging.getLogger(__name__)

# Minimum number of points on an interpolated curve (gnuplot's default `set samples`).
SMOOTH_SAMPLES = 100


class InvalidTransformConfigError(ValueError):
    """Raised for unknown smoothing algorithms and invalid transform parameters."""

    pass


class SmoothingAlgorithm(Enum):
    UNIQUE = "unique"
    FREQUENCY = "frequency"
    CUMULATIVE = "cumulative"
    CNORMAL = "cnormal"
    KDENSITY = "kdensity"
    UNWRAP = "unwrap"
    CSPLINES = "csplines"
    ACSPLINES = "acsplines"
    MCSPLINES = "mcsplines"
    BEZIER = "bezier"
    SBEZIER = "sbezier"

    @classmethod
    def names(cls) -> list[str]:
        return [a.value for a in cls]

    @classmethod
    def parse(cls, name: str | "SmoothingAlgorithm") -> "SmoothingAlgorithm":
        """Case-insensitive lookup by name; raises InvalidTransformConfigError."""
        if isinstance(name, cls):
            return name
        try:
            return cls(str(name).strip().lower())
        except ValueError:
            raise InvalidTransformConfigError(
                f"{name} is not a valid option as an algorithm. "
                f"Allowed algorithms: {cls.names()}"
            ) from None


def _finite_points(x: np.ndarray, y: np.ndarray) -> pd.DataFrame:
    frame = pd.DataFrame({"x": np.asarray(x, dtype=float), "y": np.asarray(y, dtype=float)})
    return frame.dropna()


def _grouped(x: np.ndarray, y: np.ndarray, how: str) -> tuple[np.ndarray, np.ndarray]:
    grouped = _finite_points(x, y).groupby("x", sort=True)["y"].agg(how)
    return grouped.index.to_numpy(dtype=float), grouped.to_numpy(dtype=float)


def _grid(x: np.ndarray, samples: int) -> np.ndarray:
    return np.linspace(x[0], x[-1], max(samples, len(x)))


def smooth_unique(x, y, samples=SMOOTH_SAMPLES):
    return _grouped(x, y, "mean")


def smooth_frequency(x, y, samples=SMOOTH_SAMPLES):
    return _grouped(x, y, "sum")


def smooth_cumulative(x, y, samples=SMOOTH_SAMPLES):
    ux, freq = _grouped(x, y, "sum")
    return ux, np.cumsum(freq)


def smooth_cnormal(x, y, samples=SMOOTH_SAMPLES):
    ux, cum = smooth_cumulative(x, y)
    if len(cum) == 0 or cum[-1] == 0:
        return ux, cum
    return ux, cum / cum[-1]


def smooth_kdensity(x, y, samples=SMOOTH_SAMPLES):
    """Sum of Gaussians centred on each x, each with area y (negative y clipped to 0)."""
    pts = _finite_points(x, y)
    if pts["x"].nunique() < 2:
        return pts["x"].to_numpy(), pts["y"].to_numpy()
    weights = pts["y"].clip(lower=0.0).to_numpy()
    total = float(weights.sum())
    grid_size = max(samples, len(pts))
    if total == 0.0:
        grid = np.linspace(pts["x"].min(), pts["x"].max(), grid_size)
        return grid, np.zeros_like(grid)

    kde = sm.nonparametric.KDEUnivariate(pts["x"].to_numpy())
    kde.fit(
        kernel="gau",
        bw="normal_reference",
        fft=False,
        weights=weights,
        gridsize=grid_size,
        cut=0,
    )
    return np.asarray(kde.support, dtype=float), np.asarray(kde.density) * total


def smooth_unwrap(x, y, samples=SMOOTH_SAMPLES):
    pts = _finite_points(x, y)
    return pts["x"].to_numpy(), np.unwrap(pts["y"].to_numpy())


def smooth_csplines(x, y, samples=SMOOTH_SAMPLES):
    ux, uy = _grouped(x, y, "mean")
    if len(ux) < 2:
        return ux, uy
    grid = _grid(ux, samples)
    return grid, CubicSpline(ux, uy, bc_type="natural")(grid)


def smooth_acsplines(x, y, samples=SMOOTH_SAMPLES):
    ux, uy = _grouped(x, y, "mean")
    if len(ux) < 2:
        return ux, uy
    grid = _grid(ux, samples)
    spline = UnivariateSpline(ux, uy, k=min(3, len(ux) - 1))
    return grid, spline(grid)


def smooth_mcsplines(x, y, samples=SMOOTH_SAMPLES):
    ux, uy = _grouped(x, y, "mean")
    if len(ux) < 2:
        return ux, uy
    grid = _grid(ux, samples)
    return grid, PchipInterpolator(ux, uy)(grid)


def smooth_bezier(x, y, samples=SMOOTH_SAMPLES):
    """Bezier curve of degree n-1 using every point as a control point."""
    pts = _finite_points(x, y)
    px, py = pts["x"].to_numpy(), pts["y"].to_numpy()
    if len(px) < 2:
        return px, py
    degree = len(px) - 1
    t = np.linspace(0.0, 1.0, max(samples, len(px)))
    # Bernstein basis b_{i,n}(t) equals the binomial pmf; stays finite for large n
    basis = binom.pmf(np.arange(degree + 1)[None, :], degree, t[:, None])
    return basis @ px, basis @ py


def smooth_sbezier(x, y, samples=SMOOTH_SAMPLES):
    ux, uy = _grouped(x, y, "mean")
    return smooth_bezier(ux, uy, samples)


_SMOOTHERS: dict[SmoothingAlgorithm, Callable] = {
    SmoothingAlgorithm.UNIQUE: smooth_unique,
    SmoothingAlgorithm.FREQUENCY: smooth_frequency,
    SmoothingAlgorithm.CUMULATIVE: smooth_cumulative,
    SmoothingAlgorithm.CNORMAL: smooth_cnormal,
    SmoothingAlgorithm.KDENSITY: smooth_kdensity,
    SmoothingAlgorithm.UNWRAP: smooth_unwrap,
    SmoothingAlgorithm.CSPLINES: smooth_csplines,
    SmoothingAlgorithm.ACSPLINES: smooth_acsplines,
    SmoothingAlgorithm.MCSPLINES: smooth_mcsplines,
    SmoothingAlgorithm.BEZIER: smooth_bezier,
    SmoothingAlgorithm.SBEZIER: smooth_sbezier,
}


def apply_smoothing(
    x: np.ndarray,
    y: np.ndarray,
    algorithm: SmoothingAlgorithm | str,
    samples: int = SMOOTH_SAMPLES,
) -> tuple[np.ndarray, np.ndarray]:
    """
    Return a smoothed copy of the curve (x, y).

    NaN points are dropped before smoothing. Interpolating algorithms return at
    least `samples` points spread evenly over the x range.
    """
    algo = SmoothingAlgorithm.parse(algorithm)
    sx, sy = _SMOOTHERS[algo](np.asarray(x, dtype=float), np.asarray(y, dtype=float), samples)
    logger.debug(f"smoothing={algo.value}: {len(x)} -> {len(sx)} points")
    return np.asarray(sx, dtype=float), np.asarray(sy, dtype=float)
