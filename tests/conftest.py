import matplotlib

matplotlib.use("Agg")

import pytest

from pyserialplot.liveplot.engine import LivePlotEngine


@pytest.fixture
def engine():
    return LivePlotEngine()

