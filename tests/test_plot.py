import matplotlib.pyplot as plt
import numpy as np
import pytest

from pyserialplot.liveplot.engine import LivePlotEngine
from pyserialplot.liveplot.plot import LivePlot
from pyserialplot.liveplot.viewport import SLIDER_MAX


@pytest.fixture
def live_plot():
    plot = LivePlot(LivePlotEngine())
    yield plot
    plot.close()
    plt.close("all")


def test_apply_before_render_raises(live_plot):
    with pytest.raises(RuntimeError):
        live_plot.apply(live_plot.engine.render())


def test_render_creates_widgets(live_plot):
    live_plot.render()
    assert live_plot.fig is not None
    assert live_plot.slider is not None
    assert 0 in live_plot._artists
    assert live_plot._range_text.get_text() == "No data"


def test_frames_drive_artists_and_limits(live_plot):
    live_plot.render()
    engine = live_plot.engine
    engine.feed_lines(f"[{i},{i / 10}]" for i in range(100))
    engine.feed_line("CH:1,[50,3]")
    live_plot.refresh()

    scatter, line, fit_line = live_plot._artists[0]
    assert line.get_visible()
    assert len(line.get_xdata()) == 100
    assert not scatter.get_visible()
    assert not fit_line.get_visible()
    assert 1 in live_plot._artists

    assert live_plot.ax.get_xlim() == pytest.approx((79.2, 99.0))
    assert live_plot.slider.val == SLIDER_MAX
    assert live_plot._range_text.get_text() == "X:[79.2, 99]"


def test_slider_scrolls_engine(live_plot):
    live_plot.render()
    live_plot.engine.feed_lines(f"[{i},{i}]" for i in range(100))
    live_plot.refresh()

    live_plot.slider.set_val(500)
    assert not live_plot.engine.viewport.state.pinned_to_right
    live_plot._on_timer()
    assert live_plot.ax.get_xlim() == pytest.approx((39.6, 59.4))


def test_removed_curve_drops_artists(live_plot):
    live_plot.render()
    engine = live_plot.engine
    engine.add_curve()
    live_plot.refresh()
    assert set(live_plot._artists) == {0, 1}

    engine.remove_curve(1)
    live_plot.refresh()
    assert set(live_plot._artists) == {0}


def test_metadata_panel_and_fit_line(live_plot):
    live_plot.render()
    engine = live_plot.engine
    engine.set_render_mode("Fit")
    engine.set_fit_type("Sine")
    x = np.arange(400) * np.pi / 100
    engine.feed_lines(f"[{xi},{np.sin(2 * xi)}],gain:2" for xi in x)
    engine.select_metadata_keys(["gain"])
    live_plot.refresh()

    _, _, fit_line = live_plot._artists[0]
    assert fit_line.get_visible()
    assert len(fit_line.get_xdata()) == engine.fit_samples
    assert live_plot._meta_text.get_text() == "gain=2"


def test_save(live_plot, tmp_path):
    live_plot.engine.feed_line("[0,0]")
    out = tmp_path / "plot.png"
    live_plot.save(str(out))
    assert out.exists()
