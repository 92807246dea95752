"""
Parametric waveform fits over the recent samples of a curve.

Three models are supported:

- Sine: ``y = A*sin(w*x) + B*cos(w*x) + C``, solved by linear least squares
  for each candidate ``w`` around a period estimated from local maxima.
- Triangle: amplitude and offset from the peak-to-peak range, period from
  local maxima, phase anchored at the left edge of the visible range.
- Square: high/low levels split at the mid-range threshold, period from
  rising transitions, duty cycle from the fraction of high samples.

Every fit degrades to an empty result instead of raising when the data
cannot support it.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

import numpy as np
from loguru import logger
from numba import njit

from pyserialplot.liveplot.curve_registry import MIN_FIT_WINDOW, Curve, FitType

# --- Constants ---
FIT_MIN_POINTS = MIN_FIT_WINDOW  # fewer usable samples than this => no fit
FIT_SAMPLES = 400  # points in the rendered fit curve
PERIOD_MIN_POINTS = 10  # samples needed before looking for maxima
PERIOD_EPSILON = 1e-12
SINGULAR_PIVOT = 1e-15  # pivot magnitude treated as singular
OMEGA_SEARCH_STEPS = 10  # candidates on each side of the estimate
OMEGA_SEARCH_STEP = 0.02  # relative step between candidate frequencies
DUTY_BOUNDS = (0.05, 0.95)


@dataclass(frozen=True)
class FitResult:
    """Sampled fit curve plus the model parameters that produced it."""

    fit_type: FitType
    x: np.ndarray
    y: np.ndarray
    params: Dict[str, float] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return self.x.size == 0

    @classmethod
    def empty(cls, fit_type: FitType) -> "FitResult":
        return cls(
            fit_type, np.empty(0, dtype=np.float64), np.empty(0, dtype=np.float64)
        )


@njit
def _local_maxima_x_numba(x: np.ndarray, y: np.ndarray) -> np.ndarray:
    """X positions of samples strictly greater than both neighbours."""
    out = np.empty(len(x), dtype=np.float64)
    count = 0
    for i in range(1, len(x) - 1):
        if y[i] > y[i - 1] and y[i] > y[i + 1]:
            out[count] = x[i]
            count += 1
    return out[:count]


@njit
def _sine_normal_equations_numba(
    x: np.ndarray, y: np.ndarray, omega: float
) -> np.ndarray:
    """
    Augmented 3x4 normal-equation matrix for ``A*sin + B*cos + C`` at ``omega``.

    Parameters
    ----------
    x : np.ndarray
        Sample positions (float64).
    y : np.ndarray
        Sample values (float64).
    omega : float
        Angular frequency.

    Returns
    -------
    np.ndarray
        Rows [[ss, sc, s, ys], [sc, cc, c, yc], [s, c, n, y]].
    """
    m = np.zeros((3, 4), dtype=np.float64)
    for i in range(len(x)):
        s = np.sin(omega * x[i])
        c = np.cos(omega * x[i])
        m[0, 0] += s * s
        m[0, 1] += s * c
        m[0, 2] += s
        m[1, 1] += c * c
        m[1, 2] += c
        m[0, 3] += y[i] * s
        m[1, 3] += y[i] * c
        m[2, 3] += y[i]
    m[1, 0] = m[0, 1]
    m[2, 0] = m[0, 2]
    m[2, 1] = m[1, 2]
    m[2, 2] = len(x)
    return m


@njit
def _solve3_numba(augmented: np.ndarray) -> Tuple[bool, np.ndarray]:
    """Gauss-Jordan elimination with partial pivoting on a 3x4 augmented matrix."""
    a = augmented.copy()
    for col in range(3):
        piv = col
        for r in range(col + 1, 3):
            if abs(a[r, col]) > abs(a[piv, col]):
                piv = r
        if abs(a[piv, col]) < SINGULAR_PIVOT:
            return False, np.zeros(3, dtype=np.float64)
        if piv != col:
            for k in range(4):
                tmp = a[piv, k]
                a[piv, k] = a[col, k]
                a[col, k] = tmp
        div = a[col, col]
        for k in range(col, 4):
            a[col, k] /= div
        for r in range(3):
            if r == col:
                continue
            f = a[r, col]
            for k in range(col, 4):
                a[r, k] -= f * a[col, k]
    return True, a[:, 3].copy()


def _as_float_arrays(x: np.ndarray, y: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    return (
        np.ascontiguousarray(x, dtype=np.float64),
        np.ascontiguousarray(y, dtype=np.float64),
    )


def _mean_positive_spacing(positions: np.ndarray) -> float:
    """Average of the positive gaps between successive positions, 0 if none."""
    if positions.size < 2:
        return 0.0
    gaps = np.diff(positions)
    gaps = gaps[gaps > 0]
    if gaps.size == 0:
        return 0.0
    return float(np.mean(gaps))


def select_fit_window(
    points: np.ndarray, fit_window: int, x_min: float, x_max: float
) -> np.ndarray:
    """
    Samples a fit should use.

    Takes the newest ``max(20, fit_window)`` rows and narrows them to the
    visible X range when at least 20 rows remain inside it.

    Parameters
    ----------
    points : np.ndarray
        Samples of shape (n, 2), oldest first.
    fit_window : int
        Requested number of most recent samples.
    x_min, x_max : float
        Visible X range.

    Returns
    -------
    np.ndarray
        Selected rows of shape (m, 2); ``m`` may be below 20.
    """
    n = max(FIT_MIN_POINTS, int(fit_window))
    window = points[-n:]
    if len(window) < FIT_MIN_POINTS:
        return window
    mask = (window[:, 0] >= x_min) & (window[:, 0] <= x_max)
    if np.count_nonzero(mask) >= FIT_MIN_POINTS:
        return window[mask]
    return window


def estimate_period_from_maxima(x: np.ndarray, y: np.ndarray) -> float:
    """Mean spacing between local maxima; 0.0 when it cannot be estimated."""
    if len(x) < PERIOD_MIN_POINTS:
        return 0.0
    x, y = _as_float_arrays(x, y)
    peaks = _local_maxima_x_numba(x, y)
    return _mean_positive_spacing(peaks)


def estimate_period_from_rising_edges(x: np.ndarray, high: np.ndarray) -> float:
    """Mean spacing between low-to-high transitions; 0.0 when fewer than two."""
    if len(x) < 2:
        return 0.0
    rising = ~high[:-1] & high[1:]
    return _mean_positive_spacing(np.asarray(x)[1:][rising])


def fit_sine_at_omega(
    x: np.ndarray, y: np.ndarray, omega: float
) -> Optional[Tuple[float, float, float, float]]:
    """
    Least-squares ``A*sin(wx) + B*cos(wx) + C`` for a fixed ``w``.

    Returns
    -------
    Optional[Tuple[float, float, float, float]]
        (A, B, C, SSE), or None when the normal equations are singular.
    """
    x, y = _as_float_arrays(x, y)
    ok, sol = _solve3_numba(_sine_normal_equations_numba(x, y, float(omega)))
    if not ok:
        return None
    a, b, c = (float(v) for v in sol)
    residual = y - (a * np.sin(omega * x) + b * np.cos(omega * x) + c)
    return a, b, c, float(np.sum(residual * residual))


def _sample_grid(x_min: float, x_max: float, samples: int) -> np.ndarray:
    if samples < 2:
        raise ValueError(f"samples must be >= 2, got {samples}")
    return np.linspace(x_min, x_max, samples)


def fit_sine(
    x: np.ndarray,
    y: np.ndarray,
    x_min: float,
    x_max: float,
    samples: int = FIT_SAMPLES,
) -> FitResult:
    """
    Fit ``A*sin(wx) + B*cos(wx) + C`` and sample it across [x_min, x_max].

    The period is estimated from local maxima (falling back to the visible
    span), then 21 frequencies ``w0*(1 + 0.02k)``, k in [-10, 10], are tried;
    the one with the lowest sum of squared errors wins.

    Parameters
    ----------
    x, y : np.ndarray
        Window samples.
    x_min, x_max : float
        Visible X range the result is sampled over.
    samples : int, default=400
        Number of output points.

    Returns
    -------
    FitResult
        Sampled curve with params ``A``, ``B``, ``C``, ``omega``, ``sse``;
        empty if the data cannot support a fit.
    """
    if len(x) < FIT_MIN_POINTS:
        return FitResult.empty(FitType.SINE)
    span = x_max - x_min
    if span <= PERIOD_EPSILON:
        return FitResult.empty(FitType.SINE)

    period = estimate_period_from_maxima(x, y)
    if period <= PERIOD_EPSILON:
        period = span
    omega0 = 2.0 * np.pi / period

    best: Optional[Tuple[float, float, float, float]] = None
    best_omega = omega0
    for k in range(-OMEGA_SEARCH_STEPS, OMEGA_SEARCH_STEPS + 1):
        omega = omega0 * (1.0 + OMEGA_SEARCH_STEP * k)
        if omega <= 0:
            continue
        candidate = fit_sine_at_omega(x, y, omega)
        if candidate is None:
            continue
        if best is None or candidate[3] < best[3]:
            best = candidate
            best_omega = omega

    if best is None:
        logger.debug("Sine fit: normal equations singular for every candidate")
        return FitResult.empty(FitType.SINE)

    a, b, c, sse = best
    xs = _sample_grid(x_min, x_max, samples)
    ys = a * np.sin(best_omega * xs) + b * np.cos(best_omega * xs) + c
    return FitResult(
        FitType.SINE,
        xs,
        ys,
        {"A": a, "B": b, "C": c, "omega": best_omega, "sse": sse},
    )


def triangle_wave(
    x: np.ndarray, x0: float, period: float, amplitude: float, offset: float
) -> np.ndarray:
    """Triangle starting at ``offset`` at ``x0``, peaking a quarter period later."""
    ph = (np.asarray(x, dtype=np.float64) - x0) / period
    ph = ph - np.floor(ph)
    v = np.where(ph < 0.25, ph * 4.0, np.where(ph < 0.75, 2.0 - ph * 4.0, ph * 4.0 - 4.0))
    return offset + amplitude * v


def square_wave(
    x: np.ndarray, x0: float, period: float, duty: float, high: float, low: float
) -> np.ndarray:
    """Step waveform: ``high`` for the first ``duty`` of each period from ``x0``."""
    ph = (np.asarray(x, dtype=np.float64) - x0) / period
    ph = ph - np.floor(ph)
    return np.where(ph < duty, high, low)


def fit_triangle(
    x: np.ndarray,
    y: np.ndarray,
    x_min: float,
    x_max: float,
    samples: int = FIT_SAMPLES,
) -> FitResult:
    """Triangle fit: half peak-to-peak amplitude, mid-range offset, maxima period."""
    if len(x) < FIT_MIN_POINTS:
        return FitResult.empty(FitType.TRIANGLE)

    y = np.asarray(y, dtype=np.float64)
    y_min = float(np.min(y))
    y_max = float(np.max(y))
    amplitude = 0.5 * (y_max - y_min)
    offset = 0.5 * (y_max + y_min)

    period = estimate_period_from_maxima(x, y)
    if period <= PERIOD_EPSILON:
        period = x_max - x_min
    if period <= PERIOD_EPSILON:
        logger.debug("Triangle fit: non-positive period")
        return FitResult.empty(FitType.TRIANGLE)

    xs = _sample_grid(x_min, x_max, samples)
    ys = triangle_wave(xs, x_min, period, amplitude, offset)
    return FitResult(
        FitType.TRIANGLE,
        xs,
        ys,
        {"amplitude": amplitude, "offset": offset, "period": period},
    )


def fit_square(
    x: np.ndarray,
    y: np.ndarray,
    x_min: float,
    x_max: float,
    samples: int = FIT_SAMPLES,
    duty_bounds: Tuple[float, float] = DUTY_BOUNDS,
) -> FitResult:
    """
    Square fit from a mid-range threshold.

    Samples at or above the threshold are high. The levels are the class
    means, the period is the mean spacing of low-to-high transitions and the
    duty cycle is the high fraction clamped to ``duty_bounds``.
    """
    if len(x) < FIT_MIN_POINTS:
        return FitResult.empty(FitType.SQUARE)

    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    y_min = float(np.min(y))
    y_max = float(np.max(y))
    threshold = 0.5 * (y_max + y_min)

    high_mask = y >= threshold
    n_high = int(np.count_nonzero(high_mask))
    n_low = len(y) - n_high
    high = float(np.mean(y[high_mask])) if n_high > 0 else y_max
    low = float(np.mean(y[~high_mask])) if n_low > 0 else y_min

    period = estimate_period_from_rising_edges(x, high_mask)
    if period <= PERIOD_EPSILON:
        period = x_max - x_min
    if period <= PERIOD_EPSILON:
        logger.debug("Square fit: non-positive period")
        return FitResult.empty(FitType.SQUARE)

    duty_min, duty_max = duty_bounds
    duty = float(np.clip(n_high / len(y), duty_min, duty_max))

    xs = _sample_grid(x_min, x_max, samples)
    ys = square_wave(xs, x_min, period, duty, high, low)
    return FitResult(
        FitType.SQUARE,
        xs,
        ys,
        {
            "high": high,
            "low": low,
            "period": period,
            "duty": duty,
            "threshold": threshold,
        },
    )


_FITTERS = {
    FitType.SINE: fit_sine,
    FitType.TRIANGLE: fit_triangle,
    FitType.SQUARE: fit_square,
}


def compute_fit(
    curve: Curve, x_min: float, x_max: float, samples: int = FIT_SAMPLES
) -> FitResult:
    """
    Fit a curve's recent samples with its configured model.

    Parameters
    ----------
    curve : Curve
        Source curve; its ``fit_type`` and ``fit_window`` are used.
    x_min, x_max : float
        Visible X range.
    samples : int, default=400
        Number of output points.

    Returns
    -------
    FitResult
        Empty when the fit type is None or there are fewer than 20 samples.
    """
    fitter = _FITTERS.get(curve.fit_type)
    if fitter is None:
        return FitResult.empty(curve.fit_type)

    window = select_fit_window(curve.points.data, curve.fit_window, x_min, x_max)
    if len(window) < FIT_MIN_POINTS:
        logger.debug(f"{curve.name}: {len(window)} samples, not enough to fit")
        return FitResult.empty(curve.fit_type)
    return fitter(window[:, 0], window[:, 1], x_min, x_max, samples)
