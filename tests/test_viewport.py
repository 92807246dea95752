import numpy as np
import pytest

from pyserialplot.liveplot.viewport import (
    SLIDER_MAX,
    ViewportEngine,
    global_x_extent,
    window_span_for,
    y_extent_in_range,
)


def _ramp(n, start=0):
    x = np.arange(start, start + n, dtype=np.float64)
    return x, x / 10.0


def test_no_data_uses_default_ranges():
    vp = ViewportEngine()
    st = vp.update([(np.empty(0), np.empty(0))])
    assert st.x_range == (0.0, 1.0)
    assert st.y_range == (0.0, 1.0)
    assert st.slider_max == 0
    assert not st.can_scroll
    assert st.range_label() == "No data"


def test_helpers():
    assert global_x_extent([np.array([3.0, 1.0]), np.empty(0), np.array([7.0])]) == (
        1.0,
        7.0,
        True,
    )
    assert window_span_for(100.0) == pytest.approx(20.0)
    assert window_span_for(0.0) == 1.0
    x = np.arange(10.0)
    assert y_extent_in_range([(x, x * 2)], 2.0, 4.0) == (4.0, 8.0)
    assert y_extent_in_range([(x, x * 2)], 50.0, 60.0) == (0.0, 1.0)


def test_single_point_cannot_scroll():
    vp = ViewportEngine()
    st = vp.update([(np.array([5.0]), np.array([2.0]))])
    assert not st.can_scroll
    assert st.view_x_start == 5.0
    assert st.view_x_end == pytest.approx(5.2)
    assert st.y_min == pytest.approx(2.0 - 0.08)
    assert st.y_max == pytest.approx(2.0 + 0.08)


def test_pinned_view_follows_newest_data():
    vp = ViewportEngine()
    st = vp.update([_ramp(100)])
    assert st.pinned_to_right
    assert st.slider_value == SLIDER_MAX
    assert st.view_x_start == pytest.approx(79.2)
    assert st.view_x_end == pytest.approx(99.0)
    assert st.range_label() == "X:[79.2, 99]"

    st = vp.update([_ramp(200)])
    assert st.view_x_end == pytest.approx(199.0)
    assert st.view_x_start == pytest.approx(159.2)


def test_y_range_is_padded_over_visible_samples():
    vp = ViewportEngine()
    st = vp.update([_ramp(100)])
    # visible x in [79.2, 99] -> y in [8.0, 9.9]
    pad = (9.9 - 8.0) * 0.08
    assert st.y_min == pytest.approx(8.0 - pad)
    assert st.y_max == pytest.approx(9.9 + pad)


def test_unpinned_view_holds_under_new_data():
    vp = ViewportEngine()
    vp.update([_ramp(100)])
    st = vp.on_scroll(500)
    assert not st.pinned_to_right

    st = vp.update([_ramp(100)])
    assert st.view_x_start == pytest.approx(39.6)
    assert st.view_x_end == pytest.approx(59.4)

    st = vp.update([_ramp(200)])
    assert st.view_x_start == pytest.approx(39.6)
    assert st.view_x_end == pytest.approx(59.4)
    assert 0 < st.slider_value < SLIDER_MAX
    assert not st.pinned_to_right


def test_scroll_back_to_max_pins_again():
    vp = ViewportEngine()
    vp.update([_ramp(100)])
    vp.on_scroll(0)
    st = vp.update([_ramp(100)])
    assert st.view_x_start == pytest.approx(0.0)

    st = vp.on_scroll(SLIDER_MAX)
    assert st.pinned_to_right
    st = vp.update([_ramp(300)])
    assert st.view_x_end == pytest.approx(299.0)


def test_scroll_is_clamped():
    vp = ViewportEngine()
    vp.update([_ramp(100)])
    assert vp.on_scroll(5000).slider_value == SLIDER_MAX
    assert vp.on_scroll(-5).slider_value == 0


def test_global_extent_spans_all_curves():
    vp = ViewportEngine()
    st = vp.update([_ramp(10), _ramp(10, start=90)])
    assert st.view_x_end == pytest.approx(99.0)
    assert st.window_span == pytest.approx(99.0 * 0.2)


def test_reset_restores_pinned_defaults():
    vp = ViewportEngine()
    vp.update([_ramp(100)])
    vp.on_scroll(100)
    st = vp.reset()
    assert st.pinned_to_right
    assert st.x_range == (0.0, 1.0)
    assert st.y_range == (0.0, 1.0)


def test_view_repins_when_scrolling_becomes_impossible():
    vp = ViewportEngine()
    vp.update([_ramp(100)])
    vp.on_scroll(0)
    st = vp.update([_ramp(100)])
    assert not st.pinned_to_right

    st = vp.update([(np.array([5.0]), np.array([1.0]))])
    assert not st.can_scroll
    assert st.pinned_to_right

    st = vp.update([_ramp(300)])
    assert st.view_x_end == pytest.approx(299.0)
