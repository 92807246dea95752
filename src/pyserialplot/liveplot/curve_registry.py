from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple

import numpy as np
from loguru import logger
from matplotlib.colors import hsv_to_rgb, to_hex

# --- Constants ---
DEFAULT_FIT_WINDOW = 200  # most recent samples considered for fitting
DEFAULT_MAX_POINTS = 2000  # rolling buffer capacity per curve
MIN_FIT_WINDOW = 20
MIN_MAX_POINTS = 100
COLOR_HUE_STEP = 47  # degrees between successive default curve colours
COLOR_SATURATION = 200 / 255
COLOR_VALUE = 220 / 255


class _ChoiceEnum(str, Enum):
    @classmethod
    def coerce(cls, value: Any) -> "_ChoiceEnum":
        """Accept a member or its display name (case-insensitive)."""
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower()
        for member in cls:
            if member.value.lower() == text:
                return member
        choices = ", ".join(m.value for m in cls)
        raise ValueError(f"Unknown {cls.__name__} '{value}'. Expected one of: {choices}")


class RenderMode(_ChoiceEnum):
    POINTS = "Points"
    LINES = "Lines"
    FIT = "Fit"


class FitType(_ChoiceEnum):
    NONE = "None"
    SINE = "Sine"
    TRIANGLE = "Triangle"
    SQUARE = "Square"


def default_color_for_index(idx: int) -> str:
    """Distinct default colour for the ``idx``-th curve, as a hex string."""
    hue = (idx * COLOR_HUE_STEP) % 360
    return to_hex(hsv_to_rgb((hue / 360.0, COLOR_SATURATION, COLOR_VALUE)))


def clamp_fit_window(n: int) -> int:
    value = int(n)
    if value < MIN_FIT_WINDOW:
        logger.warning(f"Fit window {value} below minimum, using {MIN_FIT_WINDOW}")
        return MIN_FIT_WINDOW
    return value


def clamp_max_points(n: int) -> int:
    value = int(n)
    if value < MIN_MAX_POINTS:
        logger.warning(f"Buffer capacity {value} below minimum, using {MIN_MAX_POINTS}")
        return MIN_MAX_POINTS
    return value


class PointBuffer:
    """
    Fixed-capacity FIFO of (x, y) samples backed by a numpy ring.

    Pushing into a full buffer overwrites the oldest row. ``data`` always
    returns rows ordered from oldest to newest.
    """

    def __init__(self, capacity: int):
        if capacity <= 0:
            raise ValueError(f"capacity must be > 0, got {capacity}")
        self._data = np.empty((capacity, 2), dtype=np.float64)
        self._head = 0  # next insert position
        self._size = 0

    @property
    def capacity(self) -> int:
        return self._data.shape[0]

    def __len__(self) -> int:
        return self._size

    def push(self, x: float, y: float) -> None:
        self._data[self._head, 0] = x
        self._data[self._head, 1] = y
        self._head = (self._head + 1) % self.capacity
        self._size = min(self._size + 1, self.capacity)

    @property
    def data(self) -> np.ndarray:
        """Copy of the valid rows, shape (n, 2), oldest first."""
        if self._size < self.capacity:
            return self._data[: self._size].copy()
        return np.concatenate((self._data[self._head :], self._data[: self._head]))

    @property
    def x(self) -> np.ndarray:
        return self.data[:, 0]

    @property
    def y(self) -> np.ndarray:
        return self.data[:, 1]

    def last(self, n: int) -> np.ndarray:
        """Newest ``n`` rows, oldest first."""
        if n <= 0:
            return np.empty((0, 2), dtype=np.float64)
        return self.data[-n:]

    def resize(self, capacity: int) -> None:
        """Change capacity, keeping the newest rows that still fit."""
        if capacity <= 0:
            raise ValueError(f"capacity must be > 0, got {capacity}")
        if capacity == self.capacity:
            return
        kept = self.data[-capacity:]
        self._data = np.empty((capacity, 2), dtype=np.float64)
        self._data[: len(kept)] = kept
        self._size = len(kept)
        self._head = self._size % capacity

    def clear(self) -> None:
        self._head = 0
        self._size = 0


@dataclass(eq=False)
class RenderSeries:
    """One renderable primitive series (scatter, line or fit) of a curve."""

    name: str
    x: np.ndarray = field(default_factory=lambda: np.empty(0, dtype=np.float64))
    y: np.ndarray = field(default_factory=lambda: np.empty(0, dtype=np.float64))
    visible: bool = False

    def set_data(self, x: np.ndarray, y: np.ndarray) -> None:
        self.x = np.array(x, dtype=np.float64)
        self.y = np.array(y, dtype=np.float64)

    def snapshot(self) -> "RenderSeries":
        """Independent copy that later renders do not touch."""
        return RenderSeries(self.name, self.x.copy(), self.y.copy(), self.visible)

    def clear(self) -> None:
        self.x = np.empty(0, dtype=np.float64)
        self.y = np.empty(0, dtype=np.float64)

    def __len__(self) -> int:
        return len(self.x)


@dataclass
class CurveDefaults:
    """Settings copied into every newly created curve."""

    render_mode: RenderMode = RenderMode.LINES
    fit_type: FitType = FitType.NONE
    show_raw_points_in_fit: bool = True
    fit_window: int = DEFAULT_FIT_WINDOW
    max_points: int = DEFAULT_MAX_POINTS


@dataclass(eq=False)
class Curve:
    """
    One independently configured data series tied to a channel id.

    The curve exclusively owns its sample buffer and its three render series.
    """

    channel_id: int
    color: str
    render_mode: RenderMode = RenderMode.LINES
    fit_type: FitType = FitType.NONE
    show_raw_points_in_fit: bool = True
    fit_window: int = DEFAULT_FIT_WINDOW
    max_points: int = DEFAULT_MAX_POINTS
    name: str = ""
    points: PointBuffer = field(init=False, repr=False)
    scatter: RenderSeries = field(init=False, repr=False)
    line: RenderSeries = field(init=False, repr=False)
    fit_line: RenderSeries = field(init=False, repr=False)

    def __post_init__(self):
        if not self.name:
            self.name = f"CH:{self.channel_id}"
        self.render_mode = RenderMode.coerce(self.render_mode)
        self.fit_type = FitType.coerce(self.fit_type)
        self.fit_window = clamp_fit_window(self.fit_window)
        self.max_points = clamp_max_points(self.max_points)
        self.points = PointBuffer(self.max_points)
        self.scatter = RenderSeries(f"{self.name} (pts)")
        self.line = RenderSeries(self.name)
        self.fit_line = RenderSeries(f"{self.name} (fit)")

    @property
    def series(self) -> Tuple[RenderSeries, RenderSeries, RenderSeries]:
        return self.scatter, self.line, self.fit_line

    def append(self, x: float, y: float) -> None:
        self.points.push(x, y)

    def set_fit_window(self, n: int) -> int:
        self.fit_window = clamp_fit_window(n)
        return self.fit_window

    def set_max_points(self, n: int) -> int:
        """Set the buffer capacity, dropping the oldest samples if it shrinks."""
        self.max_points = clamp_max_points(n)
        self.points.resize(self.max_points)
        return self.max_points

    def clear(self) -> None:
        self.points.clear()
        for s in self.series:
            s.clear()

    def settings(self) -> Dict[str, Any]:
        return {
            "channel_id": self.channel_id,
            "name": self.name,
            "color": self.color,
            "render_mode": self.render_mode,
            "fit_type": self.fit_type,
            "show_raw_points_in_fit": self.show_raw_points_in_fit,
            "fit_window": self.fit_window,
            "max_points": self.max_points,
        }


class CurveRegistry:
    """
    Ordered collection of curves keyed by channel id.

    Curves are created lazily the first time a channel appears. The registry
    also tracks the active curve, which receives points that carry no channel
    and is the target of single-curve configuration changes.
    """

    def __init__(self, defaults: Optional[CurveDefaults] = None):
        self.defaults = defaults if defaults is not None else CurveDefaults()
        self._curves: List[Curve] = []
        self._active_index = -1

    def __len__(self) -> int:
        return len(self._curves)

    def __iter__(self) -> Iterator[Curve]:
        return iter(self._curves)

    def __getitem__(self, index: int) -> Curve:
        self._validate_index(index)
        return self._curves[index]

    def _validate_index(self, index: int) -> None:
        if index < 0 or index >= len(self._curves):
            raise ValueError(
                f"Invalid curve index: {index}. Must be between 0 and {len(self._curves) - 1}."
            )

    @property
    def channel_ids(self) -> List[int]:
        return [c.channel_id for c in self._curves]

    def index_of(self, channel_id: int) -> int:
        for i, c in enumerate(self._curves):
            if c.channel_id == channel_id:
                return i
        return -1

    def find(self, channel_id: int) -> Optional[Curve]:
        idx = self.index_of(channel_id)
        return self._curves[idx] if idx >= 0 else None

    def ensure_curve(self, channel_id: int) -> Curve:
        """Return the curve for ``channel_id``, creating it from the defaults if needed."""
        existing = self.find(channel_id)
        if existing is not None:
            return existing

        d = self.defaults
        curve = Curve(
            channel_id=channel_id,
            color=default_color_for_index(len(self._curves)),
            render_mode=d.render_mode,
            fit_type=d.fit_type,
            show_raw_points_in_fit=d.show_raw_points_in_fit,
            fit_window=d.fit_window,
            max_points=d.max_points,
        )
        self._curves.append(curve)
        if self._active_index < 0:
            self._active_index = 0
        logger.info(f"Created curve {curve.name} (colour {curve.color})")
        return curve

    def next_free_channel(self) -> int:
        used = set(self.channel_ids)
        ch = 0
        while ch in used:
            ch += 1
        return ch

    def add_curve(self) -> Curve:
        """Create a curve on the next unused non-negative channel and make it active."""
        curve = self.ensure_curve(self.next_free_channel())
        self._active_index = len(self._curves) - 1
        return curve

    def append(self, point: Tuple[float, float], channel: Optional[int] = None) -> Curve:
        """
        Append a point, routing it by channel or to the active curve.

        Parameters
        ----------
        point : Tuple[float, float]
            The (x, y) sample.
        channel : Optional[int], default=None
            Explicit channel id. ``None`` or a negative id routes the point to
            the active curve (or to channel 0 if no curve exists yet).

        Returns
        -------
        Curve
            The curve that received the point.
        """
        if channel is not None and channel >= 0:
            curve = self.ensure_curve(channel)
        else:
            curve = self.active
            if curve is None:
                curve = self.ensure_curve(0)
        curve.append(point[0], point[1])
        return curve

    def remove(self, index: int) -> bool:
        """Remove the curve at ``index``. Refused while only one curve remains."""
        self._validate_index(index)
        if len(self._curves) == 1:
            logger.warning("Cannot remove the last remaining curve")
            return False

        curve = self._curves.pop(index)
        curve.clear()
        if index < self._active_index:
            self._active_index -= 1
        elif self._active_index >= len(self._curves):
            self._active_index = len(self._curves) - 1
        logger.info(f"Removed curve {curve.name}")
        return True

    @property
    def active_index(self) -> int:
        return self._active_index

    @property
    def active(self) -> Optional[Curve]:
        if 0 <= self._active_index < len(self._curves):
            return self._curves[self._active_index]
        return None

    def set_active(self, index: int) -> Curve:
        self._validate_index(index)
        self._active_index = index
        return self._curves[index]

    def clear_points(self) -> None:
        for c in self._curves:
            c.clear()

    def reset_curves(self) -> None:
        """Destroy every curve and recreate the default curve on channel 0."""
        for c in self._curves:
            c.clear()
        self._curves = []
        self._active_index = -1
        self.ensure_curve(0)
        logger.info("Curve registry reset")
