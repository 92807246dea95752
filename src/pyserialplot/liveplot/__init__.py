"""
Live multi-curve plotting components for PySerialPlot.

This package holds the curve registry, viewport mapping, waveform fits, the
render scheduler and the engine that ties them together, plus a matplotlib
front end.
"""

from pyserialplot.liveplot.curve_registry import CurveRegistry
from pyserialplot.liveplot.engine import LivePlotEngine
from pyserialplot.liveplot.plot import LivePlot
from pyserialplot.liveplot.scheduler import RenderScheduler
from pyserialplot.liveplot.viewport import ViewportEngine

__all__ = [
    "LivePlot",
    "LivePlotEngine",
    "CurveRegistry",
    "ViewportEngine",
    "RenderScheduler",
]
