"""
PySerialPlot: live telemetry plotting and waveform fitting

Streams line-oriented telemetry text into rolling per-channel curves, keeps a
scrollable windowed view of them and fits sine, triangle and square models to
the visible data.
"""

# Import from liveplot subpackage
from pyserialplot.liveplot.curve_registry import (
    Curve,
    CurveDefaults,
    CurveRegistry,
    FitType,
    RenderMode,
)
from pyserialplot.liveplot.engine import LivePlotEngine, RenderFrame
from pyserialplot.liveplot.fitting import FitResult, compute_fit
from pyserialplot.liveplot.plot import LivePlot
from pyserialplot.liveplot.scheduler import RenderScheduler
from pyserialplot.liveplot.viewport import ViewportEngine, ViewportState

# Import from telemetry subpackage
from pyserialplot.replay import configure_logging, replay_capture
from pyserialplot.telemetry.io import read_lines
from pyserialplot.telemetry.line_parser import ParsedLine, parse_line
from pyserialplot.telemetry.metadata import MetadataStore

__all__ = [
    # Live plotting
    "LivePlot",
    "LivePlotEngine",
    "RenderFrame",
    "RenderScheduler",
    "Curve",
    "CurveDefaults",
    "CurveRegistry",
    "RenderMode",
    "FitType",
    "ViewportEngine",
    "ViewportState",
    "FitResult",
    "compute_fit",
    # Telemetry input
    "parse_line",
    "ParsedLine",
    "MetadataStore",
    "read_lines",
    "replay_capture",
    "configure_logging",
]
