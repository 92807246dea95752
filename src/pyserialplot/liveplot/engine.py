from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import numpy as np
from loguru import logger
from matplotlib.colors import to_hex

from pyserialplot.liveplot.curve_registry import (
    Curve,
    CurveDefaults,
    CurveRegistry,
    FitType,
    RenderMode,
    RenderSeries,
)
from pyserialplot.liveplot.fitting import FIT_SAMPLES, FitResult, compute_fit
from pyserialplot.liveplot.scheduler import DEFAULT_INTERVAL_MS, RenderScheduler
from pyserialplot.liveplot.viewport import ViewportEngine, ViewportState
from pyserialplot.telemetry.line_parser import ParsedLine, parse_line
from pyserialplot.telemetry.metadata import MetadataStore


@dataclass
class CurveFrame:
    """
    Renderable output of one curve for a single tick.

    The series are snapshots, so a kept frame does not change on later ticks.
    """

    channel_id: int
    name: str
    color: str
    render_mode: RenderMode
    fit_type: FitType
    scatter: RenderSeries
    line: RenderSeries
    fit_line: RenderSeries
    fit: FitResult

    @property
    def series(self) -> Tuple[RenderSeries, RenderSeries, RenderSeries]:
        return self.scatter, self.line, self.fit_line


@dataclass
class RenderFrame:
    """Everything a UI shell needs to redraw after a dirty tick."""

    curves: List[CurveFrame] = field(default_factory=list)
    x_range: Tuple[float, float] = (0.0, 1.0)
    y_range: Tuple[float, float] = (0.0, 1.0)
    slider_max: int = 0
    slider_value: int = 0
    pinned_to_right: bool = True
    range_label: str = "No data"
    metadata_text: str = ""

    def curve(self, channel_id: int) -> Optional[CurveFrame]:
        for cf in self.curves:
            if cf.channel_id == channel_id:
                return cf
        return None


class LivePlotEngine:
    """
    Streaming multi-curve plot engine.

    Owns the curve registry, metadata store, viewport and render scheduler.
    Text lines are fed in with ``feed_line``; UI actions map onto the
    ``set_*``/``add_curve``/``remove_curve``/``on_scroll``/``clear_all``
    methods. All of them only mutate state and mark the engine dirty; the
    recomputation happens in ``tick`` at the scheduler's cadence.
    """

    def __init__(
        self,
        defaults: Optional[CurveDefaults] = None,
        interval_ms: int = DEFAULT_INTERVAL_MS,
        fit_samples: int = FIT_SAMPLES,
        on_new_metadata_keys: Optional[Callable[[List[str]], None]] = None,
        on_metadata_text: Optional[Callable[[str], None]] = None,
    ):
        """
        Initialise the engine with one default curve on channel 0.

        Parameters
        ----------
        defaults : Optional[CurveDefaults], default=None
            Settings for newly created curves. If None, the built-in defaults
            (Lines mode, no fit, window 200, capacity 2000) are used.
        interval_ms : int, default=33
            Render tick period the host timer should use.
        fit_samples : int, default=400
            Points per rendered fit curve.
        on_new_metadata_keys : Optional[Callable[[List[str]], None]], default=None
            Called with keys seen for the first time.
        on_metadata_text : Optional[Callable[[str], None]], default=None
            Called with the metadata summary after every metadata update.
        """
        self.curves = CurveRegistry(defaults)
        self.metadata = MetadataStore()
        self.viewport = ViewportEngine()
        self.scheduler: RenderScheduler[RenderFrame] = RenderScheduler(
            self.render, interval_ms
        )
        self.fit_samples = fit_samples
        self.on_new_metadata_keys = on_new_metadata_keys
        self.on_metadata_text = on_metadata_text
        self.last_frame: Optional[RenderFrame] = None

        self.curves.ensure_curve(0)
        self.scheduler.mark_dirty()

    def feed_line(self, line: str) -> ParsedLine:
        """
        Ingest one complete text line.

        Metadata is recorded first, then the point (if any) is routed to its
        channel's curve or to the active curve.
        """
        parsed = parse_line(line)

        if parsed.kv:
            new_keys = self.metadata.observe(parsed.kv)
            if new_keys and self.on_new_metadata_keys is not None:
                self.on_new_metadata_keys(new_keys)
            self._publish_metadata()

        if parsed.has_channel and parsed.channel >= 0:
            if self.curves.find(parsed.channel) is None:
                self.curves.ensure_curve(parsed.channel)
                self.scheduler.mark_dirty()

        if parsed.has_point:
            channel = parsed.channel if parsed.has_channel else None
            self.curves.append(parsed.point, channel)
            self.scheduler.mark_dirty()
        return parsed

    def feed_lines(self, lines: Iterable[str]) -> int:
        """Ingest several lines. Returns how many of them carried a point."""
        n_points = 0
        for line in lines:
            if self.feed_line(line).has_point:
                n_points += 1
        return n_points

    def _publish_metadata(self) -> None:
        if self.on_metadata_text is not None:
            self.on_metadata_text(self.metadata.render_display())

    @property
    def active_curve(self) -> Curve:
        curve = self.curves.active
        if curve is None:
            # the registry is only empty transiently during a reset
            curve = self.curves.ensure_curve(0)
        return curve

    def add_curve(self) -> Curve:
        curve = self.curves.add_curve()
        self.scheduler.mark_dirty()
        return curve

    def remove_curve(self, index: Optional[int] = None) -> bool:
        """Remove the curve at ``index`` (the active curve by default)."""
        if index is None:
            index = self.curves.active_index
        removed = self.curves.remove(index)
        if removed:
            self._sync_defaults_from(self.active_curve)
            self.scheduler.mark_dirty()
        return removed

    def set_active_curve(self, index: int) -> Dict[str, Any]:
        """
        Make the curve at ``index`` the target of single-curve actions.

        Returns
        -------
        Dict[str, Any]
            The curve's settings, for the UI to display.
        """
        curve = self.curves.set_active(index)
        self._sync_defaults_from(curve)
        return curve.settings()

    def curve_settings(self, index: Optional[int] = None) -> Dict[str, Any]:
        if index is None:
            return self.active_curve.settings()
        return self.curves[index].settings()

    def _sync_defaults_from(self, curve: Curve) -> None:
        d = self.curves.defaults
        d.render_mode = curve.render_mode
        d.fit_type = curve.fit_type
        d.show_raw_points_in_fit = curve.show_raw_points_in_fit
        d.fit_window = curve.fit_window
        d.max_points = curve.max_points

    def set_curve_color(self, color: Any) -> str:
        """
        Set the active curve's colour.

        Parameters
        ----------
        color : Any
            Any matplotlib colour specification.

        Returns
        -------
        str
            The stored hex colour.

        Raises
        ------
        ValueError
            If ``color`` is not a valid colour.
        """
        hex_color = to_hex(color)
        curve = self.active_curve
        curve.color = hex_color
        logger.info(f"{curve.name} colour set to {hex_color}")
        self.scheduler.mark_dirty()
        return hex_color

    def set_render_mode(self, mode: Any) -> RenderMode:
        value = RenderMode.coerce(mode)
        self.active_curve.render_mode = value
        self.curves.defaults.render_mode = value
        self.scheduler.mark_dirty()
        return value

    def set_fit_type(self, fit_type: Any) -> FitType:
        value = FitType.coerce(fit_type)
        self.active_curve.fit_type = value
        self.curves.defaults.fit_type = value
        self.scheduler.mark_dirty()
        return value

    def set_show_raw_points(self, show: bool) -> None:
        self.active_curve.show_raw_points_in_fit = bool(show)
        self.curves.defaults.show_raw_points_in_fit = bool(show)
        self.scheduler.mark_dirty()

    def set_fit_window(self, n: int) -> int:
        value = self.active_curve.set_fit_window(n)
        self.curves.defaults.fit_window = value
        self.scheduler.mark_dirty()
        return value

    def set_max_points(self, n: int) -> int:
        value = self.active_curve.set_max_points(n)
        self.curves.defaults.max_points = value
        self.scheduler.mark_dirty()
        return value

    @property
    def metadata_text(self) -> str:
        return self.metadata.render_display()

    def select_metadata_keys(self, keys: Iterable[str]) -> int:
        added = self.metadata.select(keys)
        self._publish_metadata()
        self.scheduler.mark_dirty()
        return added

    def deselect_metadata_keys(self, keys: Iterable[str]) -> int:
        removed = self.metadata.deselect(keys)
        self._publish_metadata()
        self.scheduler.mark_dirty()
        return removed

    def on_scroll(self, value: int) -> ViewportState:
        state = self.viewport.on_scroll(value)
        self.scheduler.mark_dirty()
        return state

    def clear_all(self, drop_curves: bool = False) -> None:
        """
        Full reset: clear every curve, all metadata and the viewport.

        Parameters
        ----------
        drop_curves : bool, default=False
            Also destroy every curve and start again from a single ``CH:0``.
        """
        if drop_curves:
            self.curves.reset_curves()
        else:
            self.curves.clear_points()
        self.metadata.reset()
        self.viewport.reset()
        self._publish_metadata()
        self.scheduler.mark_dirty()
        logger.info("Cleared all curves and metadata")

    def tick(self) -> Optional[RenderFrame]:
        """Render tick; returns a new frame only if something changed."""
        return self.scheduler.tick()

    @staticmethod
    def _update_raw_series(curve: Curve, x: np.ndarray, y: np.ndarray) -> None:
        mode = curve.render_mode
        show_scatter = mode is RenderMode.POINTS or (
            mode is RenderMode.FIT and curve.show_raw_points_in_fit
        )
        show_line = mode is RenderMode.LINES

        if show_scatter:
            curve.scatter.set_data(x, y)
        else:
            curve.scatter.clear()
        if show_line:
            curve.line.set_data(x, y)
        else:
            curve.line.clear()

        curve.scatter.visible = show_scatter
        curve.line.visible = show_line
        curve.fit_line.visible = mode is RenderMode.FIT and curve.fit_type is not FitType.NONE

    def render(self) -> RenderFrame:
        """
        One full render pass.

        Pushes raw samples to each curve's series, refreshes the viewport
        (following the newest data when pinned) and recomputes fits for curves
        in Fit mode over the visible X range.
        """
        samples = []
        for curve in self.curves:
            data = curve.points.data
            x, y = data[:, 0], data[:, 1]
            self._update_raw_series(curve, x, y)
            samples.append((x, y))

        state = self.viewport.update(samples, follow_latest=True)

        frames = []
        for curve in self.curves:
            if curve.fit_line.visible:
                fit = compute_fit(
                    curve, state.view_x_start, state.view_x_end, self.fit_samples
                )
            else:
                fit = FitResult.empty(curve.fit_type)
            if fit.is_empty:
                curve.fit_line.clear()
            else:
                curve.fit_line.set_data(fit.x, fit.y)

            frames.append(
                CurveFrame(
                    channel_id=curve.channel_id,
                    name=curve.name,
                    color=curve.color,
                    render_mode=curve.render_mode,
                    fit_type=curve.fit_type,
                    scatter=curve.scatter.snapshot(),
                    line=curve.line.snapshot(),
                    fit_line=curve.fit_line.snapshot(),
                    fit=fit,
                )
            )

        frame = RenderFrame(
            curves=frames,
            x_range=state.x_range,
            y_range=state.y_range,
            slider_max=state.slider_max,
            slider_value=state.slider_value,
            pinned_to_right=state.pinned_to_right,
            range_label=state.range_label(),
            metadata_text=self.metadata.render_display(),
        )
        self.last_frame = frame
        return frame
