import sys
from typing import Iterable, List, Optional

from loguru import logger

from pyserialplot.liveplot.curve_registry import CurveDefaults
from pyserialplot.liveplot.engine import LivePlotEngine
from pyserialplot.liveplot.plot import LivePlot
from pyserialplot.telemetry.io import read_lines


def configure_logging(log_level: str = "INFO") -> None:
    """
    Configure loguru logging with specified level.

    Parameters
    ----------
    log_level : str, default="INFO"
        Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL.
    """
    logger.remove()
    logger.add(
        sys.stderr,
        level=log_level.upper(),
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>",
        colorize=True,
    )


def _auto_select(engine: LivePlotEngine, wanted: Iterable[str]) -> None:
    """Select wanted metadata keys as soon as they are first seen."""
    wanted_set = set(wanted)

    def on_new_keys(keys: List[str]) -> None:
        matching = [k for k in keys if k in wanted_set]
        if matching:
            engine.select_metadata_keys(matching)

    engine.on_new_metadata_keys = on_new_keys


def replay_capture(
    name: str,
    data_path: Optional[str] = None,
    lines_per_tick: int = 50,
    defaults: Optional[CurveDefaults] = None,
    select_keys: Optional[List[str]] = None,
    crop: Optional[List[int]] = None,
    title: str = LivePlot.DEFAULT_TITLE,
    show_plots: bool = False,
    save_path: Optional[str] = None,
) -> LivePlotEngine:
    """
    Play a telemetry capture file through a live plot engine.

    Parameters
    ----------
    name : str
        Filename of the capture.
    data_path : str, optional
        Directory containing the capture.
    lines_per_tick : int, default=50
        Lines ingested between render ticks, emulating line arrival rate.
    defaults : Optional[CurveDefaults], default=None
        Settings for curves created during the replay.
    select_keys : Optional[List[str]], default=None
        Metadata keys to display once they appear.
    crop : List[int], optional
        Line index range [start, end] of the capture to replay.
    title : str, default="Waveform Plot"
        Plot title.
    show_plots : bool, default=False
        Play the capture back live in a matplotlib window.
    save_path : str, optional
        Save the final plot to this path.

    Returns
    -------
    LivePlotEngine
        The engine after the whole capture has been ingested (when
        ``show_plots`` is True, after the window has closed).
    """
    if lines_per_tick <= 0:
        raise ValueError(f"lines_per_tick must be > 0, got {lines_per_tick}")

    lines = read_lines(name, data_path=data_path, crop=crop)
    engine = LivePlotEngine(defaults)
    if select_keys:
        _auto_select(engine, select_keys)

    if show_plots:
        plot = LivePlot(engine, title=title)
        plot.render()
        cursor = 0

        def feed_batch() -> None:
            nonlocal cursor
            if cursor >= len(lines):
                return
            engine.feed_lines(lines[cursor : cursor + lines_per_tick])
            cursor += lines_per_tick

        feeder = plot.fig.canvas.new_timer(interval=engine.scheduler.interval_ms)
        feeder.add_callback(feed_batch)
        feeder.start()
        plot.show()
        feeder.stop()
        # anything the window did not get to before it closed
        if cursor < len(lines):
            engine.feed_lines(lines[cursor:])
        engine.tick()
        return engine

    n_points = 0
    for start in range(0, len(lines), lines_per_tick):
        n_points += engine.feed_lines(lines[start : start + lines_per_tick])
        engine.tick()
    logger.info(
        f"Replayed {len(lines)} lines ({n_points} points) into {len(engine.curves)} curves"
    )

    if save_path is not None:
        plot = LivePlot(engine, title=title)
        plot.save(save_path)
        plot.close()
    return engine
