from typing import Dict, List, Optional, Tuple

import matplotlib.pyplot as plt
from loguru import logger
from matplotlib.lines import Line2D
from matplotlib.widgets import Slider

from .curve_registry import CurveDefaults
from .engine import CurveFrame, LivePlotEngine, RenderFrame
from .viewport import SLIDER_MAX


class LivePlot:
    """
    matplotlib front end for a ``LivePlotEngine``.

    A canvas timer drives the engine's render tick; each new frame is applied
    to one Axes (three artists per curve), a horizontal Slider acting as the
    scrollbar and a side panel with the metadata summary. The engine itself
    stays free of any matplotlib state.
    """

    # Default styling constants
    DEFAULT_TITLE = "Waveform Plot"
    DEFAULT_FIGSIZE = (10, 5)
    DEFAULT_MARKER_SIZE = 6.0
    DEFAULT_LINE_WIDTH = 1.6
    DEFAULT_FIT_LINE_WIDTH = 2.2

    def __init__(
        self,
        engine: Optional[LivePlotEngine] = None,
        title: str = DEFAULT_TITLE,
        figsize: Tuple[float, float] = DEFAULT_FIGSIZE,
        marker_size: float = DEFAULT_MARKER_SIZE,
        line_width: float = DEFAULT_LINE_WIDTH,
        fit_line_width: float = DEFAULT_FIT_LINE_WIDTH,
        defaults: Optional[CurveDefaults] = None,
    ):
        """
        Initialise the live plot.

        Parameters
        ----------
        engine : Optional[LivePlotEngine], default=None
            Engine to display. If None, a new engine is created with ``defaults``.
        title : str, default="Waveform Plot"
            Axes title.
        figsize : Tuple[float, float], default=(10, 5)
            Figure size in inches.
        marker_size : float, default=6.0
            Marker size for raw sample scatter.
        line_width : float, default=1.6
            Line width for the connected raw samples.
        fit_line_width : float, default=2.2
            Line width for fit curves.
        defaults : Optional[CurveDefaults], default=None
            Curve defaults for a newly created engine; ignored when ``engine`` is given.
        """
        self.engine = engine if engine is not None else LivePlotEngine(defaults)
        self.title = title
        self.figsize = figsize
        self.marker_size = marker_size
        self.line_width = line_width
        self.fit_line_width = fit_line_width

        self.fig = None
        self.ax = None
        self.ax_slider = None
        self.ax_meta = None
        self.slider: Optional[Slider] = None
        self._meta_text = None
        self._range_text = None
        self._legend = None
        self._last_legend_labels: List[str] = []
        self._artists: Dict[int, Tuple[Line2D, Line2D, Line2D]] = {}
        self._timer = None
        self._updating = False

    def render(self) -> None:
        """Create the figure and widgets. Must be called before ``apply``."""
        if self.fig is not None:
            logger.warning("Plot already rendered.")
            return

        logger.info("Rendering live plot...")
        self.fig = plt.figure(figsize=self.figsize)
        gs = self.fig.add_gridspec(2, 2, height_ratios=[12, 1], width_ratios=[5, 1])
        self.ax = self.fig.add_subplot(gs[0, 0])
        self.ax_meta = self.fig.add_subplot(gs[0, 1])
        self.ax_slider = self.fig.add_subplot(gs[1, 0])

        self.ax.set_title(self.title)
        self.ax.set_xlabel("X")
        self.ax.set_ylabel("Y")
        self._range_text = self.ax.text(
            0.01, 0.98, "No data", transform=self.ax.transAxes, va="top", ha="left"
        )

        self.ax_meta.set_axis_off()
        self._meta_text = self.ax_meta.text(
            0.0, 1.0, "", transform=self.ax_meta.transAxes, va="top", ha="left",
            family="monospace",
        )

        self.slider = Slider(
            self.ax_slider, "Scroll", 0, SLIDER_MAX, valinit=0, valstep=1
        )
        self.slider.on_changed(self._on_slider_changed)

        self.engine.scheduler.mark_dirty()
        self._on_timer()

    def _ensure_artists(self, cf: CurveFrame) -> Tuple[Line2D, Line2D, Line2D]:
        artists = self._artists.get(cf.channel_id)
        if artists is not None:
            return artists

        (scatter,) = self.ax.plot(
            [], [], linestyle="none", marker="o", markersize=self.marker_size,
            color=cf.color, label=cf.scatter.name,
        )
        (line,) = self.ax.plot(
            [], [], linewidth=self.line_width, color=cf.color, label=cf.line.name
        )
        (fit_line,) = self.ax.plot(
            [], [], linewidth=self.fit_line_width, color=cf.color, label=cf.fit_line.name
        )
        artists = (scatter, line, fit_line)
        self._artists[cf.channel_id] = artists
        logger.debug(f"Created artists for {cf.name}")
        return artists

    def _drop_artists(self, channel_id: int) -> None:
        for artist in self._artists.pop(channel_id):
            artist.remove()
        logger.debug(f"Removed artists for CH:{channel_id}")

    def _update_legend(self) -> None:
        """Rebuild the legend from visible artists, only when its content changed."""
        handles = []
        labels = []
        for artists in self._artists.values():
            for artist in artists:
                if artist.get_visible():
                    handles.append(artist)
                    labels.append(artist.get_label())

        if labels == self._last_legend_labels:
            return
        if self._legend is not None:
            self._legend.remove()
            self._legend = None
        if handles:
            self._legend = self.ax.legend(handles, labels, loc="lower right")
        self._last_legend_labels = labels

    def apply(self, frame: RenderFrame) -> None:
        """Push one render frame to the matplotlib artists and widgets."""
        if self.ax is None:
            raise RuntimeError("Plot must be rendered before applying frames.")

        self._updating = True
        try:
            present = set()
            for cf in frame.curves:
                present.add(cf.channel_id)
                for artist, series in zip(self._ensure_artists(cf), cf.series):
                    artist.set_data(series.x, series.y)
                    artist.set_visible(series.visible)
                    artist.set_color(cf.color)
            for channel_id in [ch for ch in self._artists if ch not in present]:
                self._drop_artists(channel_id)

            self.ax.set_xlim(*frame.x_range)
            self.ax.set_ylim(*frame.y_range)

            self.slider.set_active(frame.slider_max > 0)
            self.slider.set_val(frame.slider_value if frame.slider_max > 0 else 0)

            self._range_text.set_text(frame.range_label)
            self._meta_text.set_text(frame.metadata_text)
            self._update_legend()
        finally:
            self._updating = False
        self.fig.canvas.draw_idle()

    def _on_slider_changed(self, value: float) -> None:
        if self._updating:
            return
        self.engine.on_scroll(int(round(value)))

    def _on_timer(self) -> None:
        frame = self.engine.tick()
        if frame is not None:
            self.apply(frame)

    def refresh(self) -> None:
        """Force a render pass now, regardless of the dirty flag."""
        if self.fig is None:
            logger.warning("Plot not rendered yet. Cannot refresh.")
            return
        self.engine.scheduler.mark_dirty()
        self._on_timer()

    def start(self) -> None:
        """Start the render timer on the figure canvas."""
        if self.fig is None:
            self.render()
        if self._timer is not None:
            return
        self._timer = self.fig.canvas.new_timer(interval=self.engine.scheduler.interval_ms)
        self._timer.add_callback(self._on_timer)
        self._timer.start()
        logger.info(f"Render timer started ({self.engine.scheduler.interval_ms} ms)")

    def stop(self) -> None:
        if self._timer is not None:
            self._timer.stop()
            self._timer = None

    def save(self, filepath: str) -> None:
        """Render the current state and save the figure."""
        if self.fig is None:
            self.render()
        self.refresh()
        self.fig.savefig(filepath)
        logger.info(f"Live plot saved to {filepath}")

    def close(self) -> None:
        self.stop()
        if self.fig is not None:
            plt.close(self.fig)
            self.fig = None
            self.ax = None
            self.slider = None
            self._artists = {}
            self._legend = None
            self._last_legend_labels = []

    def show(self) -> None:
        """Display the plot and keep it updating until the window closes."""
        self.start()
        plt.show()
