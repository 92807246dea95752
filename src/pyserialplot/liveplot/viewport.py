from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np
from loguru import logger

# --- Constants ---
SLIDER_MAX = 1000  # scrollbar resolution when scrolling is possible
WINDOW_FRACTION = 0.20  # visible window as a fraction of the total X span
MIN_WINDOW_FRACTION = 1.0 / 50.0
Y_MARGIN_FRACTION = 0.08
SPAN_EPSILON = 1e-9
SCROLL_EPSILON = 1e-12
Y_SPAN_EPSILON = 1e-12
DEFAULT_RANGE = (0.0, 1.0)


@dataclass
class ViewportState:
    """Visible X/Y ranges and scrollbar mapping of the live view."""

    pinned_to_right: bool = True
    view_x_start: float = DEFAULT_RANGE[0]
    view_x_end: float = DEFAULT_RANGE[1]
    window_span: float = 1.0
    slider_value: int = 0
    slider_max: int = 0
    y_min: float = DEFAULT_RANGE[0]
    y_max: float = DEFAULT_RANGE[1]
    has_data: bool = False

    @property
    def x_range(self) -> Tuple[float, float]:
        return self.view_x_start, self.view_x_end

    @property
    def y_range(self) -> Tuple[float, float]:
        return self.y_min, self.y_max

    @property
    def can_scroll(self) -> bool:
        return self.slider_max > 0

    def range_label(self) -> str:
        if not self.has_data:
            return "No data"
        return f"X:[{self.view_x_start:.6g}, {self.view_x_end:.6g}]"


def global_x_extent(
    xs: Sequence[np.ndarray],
) -> Tuple[float, float, bool]:
    """
    Min/max X across several sample arrays.

    Returns
    -------
    Tuple[float, float, bool]
        (x_min, x_max, any_data). Defaults to (0, 1) when all arrays are empty.
    """
    non_empty = [x for x in xs if x.size > 0]
    if not non_empty:
        return DEFAULT_RANGE[0], DEFAULT_RANGE[1], False
    x_min = min(float(np.min(x)) for x in non_empty)
    x_max = max(float(np.max(x)) for x in non_empty)
    return x_min, x_max, True


def y_extent_in_range(
    curves_xy: Sequence[Tuple[np.ndarray, np.ndarray]], x0: float, x1: float
) -> Tuple[float, float]:
    """Min/max Y of all samples with X in [x0, x1]; (0, 1) if there are none."""
    y_min = np.inf
    y_max = -np.inf
    for x, y in curves_xy:
        if x.size == 0:
            continue
        mask = (x >= x0) & (x <= x1)
        if not np.any(mask):
            continue
        y_min = min(y_min, float(np.min(y[mask])))
        y_max = max(y_max, float(np.max(y[mask])))
    if not np.isfinite(y_min) or not np.isfinite(y_max):
        return DEFAULT_RANGE
    return y_min, y_max


def window_span_for(span: float) -> float:
    """Visible X width for a total data span: 20% of it, capped at the span."""
    if span <= 0:
        return 1.0
    if span <= SPAN_EPSILON:
        return span
    return min(span, max(span * WINDOW_FRACTION, span * MIN_WINDOW_FRACTION))


class ViewportEngine:
    """
    Maps the global data extent and a scrollbar position to visible ranges.

    While pinned to the right the view follows the newest sample. Once the
    user scrolls away, the visible X range stays put as new data arrives until
    the next scroll.
    """

    def __init__(self, slider_max: int = SLIDER_MAX):
        self.max_slider = slider_max
        self.state = ViewportState()
        self._scrolled = False

    def on_scroll(self, value: int) -> ViewportState:
        """
        Record a user scrollbar move.

        The value is clamped to the current slider range and the pinned state
        follows whether the slider sits at its maximum. The view itself is
        recomputed on the next ``update``.
        """
        st = self.state
        st.slider_value = int(min(max(int(value), 0), st.slider_max))
        st.pinned_to_right = st.slider_max <= 0 or st.slider_value >= st.slider_max
        self._scrolled = True
        logger.debug(
            f"Scroll to {st.slider_value}/{st.slider_max}, pinned={st.pinned_to_right}"
        )
        return st

    def reset(self) -> ViewportState:
        self.state = ViewportState()
        self._scrolled = False
        return self.state

    def _start_from_slider(self, gx0: float, max_start: float) -> float:
        st = self.state
        if st.slider_max <= 0:
            return gx0
        t = st.slider_value / st.slider_max
        return gx0 + t * (max_start - gx0)

    def _slider_from_start(self, start: float, gx0: float, max_start: float) -> int:
        st = self.state
        if st.slider_max <= 0:
            return 0
        t = (start - gx0) / (max_start - gx0)
        return int(round(min(max(t, 0.0), 1.0) * st.slider_max))

    def update(
        self,
        curves_xy: Sequence[Tuple[np.ndarray, np.ndarray]],
        follow_latest: bool = True,
    ) -> ViewportState:
        """
        Recompute the visible ranges from the current samples.

        Parameters
        ----------
        curves_xy : Sequence[Tuple[np.ndarray, np.ndarray]]
            (x, y) sample arrays for every curve.
        follow_latest : bool, default=True
            Allow a pinned view to jump to the newest data.

        Returns
        -------
        ViewportState
            The updated state (also kept on ``self.state``).
        """
        st = self.state
        gx0, gx1, any_data = global_x_extent([x for x, _ in curves_xy])

        if not any_data:
            st.has_data = False
            st.view_x_start, st.view_x_end = DEFAULT_RANGE
            st.y_min, st.y_max = DEFAULT_RANGE
            st.window_span = 1.0
            st.slider_max = 0
            st.slider_value = 0
            self._scrolled = False
            return st

        span = gx1 - gx0
        if span <= 0:
            span = 1.0
        window = window_span_for(span)
        max_start = gx1 - window
        can_scroll = max_start > gx0 + SCROLL_EPSILON

        had_view = st.has_data
        st.has_data = True
        st.window_span = window
        st.slider_max = self.max_slider if can_scroll else 0

        if not can_scroll:
            st.slider_value = 0
            st.pinned_to_right = True
            start = gx0
        elif st.pinned_to_right:
            if follow_latest:
                st.slider_value = st.slider_max
            st.slider_value = min(st.slider_value, st.slider_max)
            start = self._start_from_slider(gx0, max_start)
        elif had_view and not self._scrolled:
            # hold the view still; only the slider position is re-derived
            start = st.view_x_start
            window = st.view_x_end - st.view_x_start
            st.window_span = window
            st.slider_value = self._slider_from_start(start, gx0, max_start)
        else:
            st.slider_value = min(st.slider_value, st.slider_max)
            start = self._start_from_slider(gx0, max_start)

        end = start + window
        if end < start + SPAN_EPSILON:
            end = start + 1.0
        st.view_x_start = start
        st.view_x_end = end
        self._scrolled = False

        y0, y1 = y_extent_in_range(curves_xy, start, end)
        y_span = y1 - y0
        if y_span <= Y_SPAN_EPSILON:
            y_span = 1.0
        pad = y_span * Y_MARGIN_FRACTION
        st.y_min = y0 - pad
        st.y_max = y1 + pad
        return st
