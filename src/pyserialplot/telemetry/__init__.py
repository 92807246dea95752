"""
Telemetry text input for PySerialPlot.

This package turns raw telemetry lines into structured records and keeps the
latest metadata values.
"""

from pyserialplot.telemetry.io import read_lines
from pyserialplot.telemetry.line_parser import ParsedLine, parse_line
from pyserialplot.telemetry.metadata import MetadataStore

__all__ = [
    "parse_line",
    "ParsedLine",
    "MetadataStore",
    "read_lines",
]
