import numpy as np
import pytest

from pyserialplot.liveplot.curve_registry import (
    MIN_FIT_WINDOW,
    MIN_MAX_POINTS,
    Curve,
    CurveDefaults,
    CurveRegistry,
    FitType,
    PointBuffer,
    RenderMode,
    default_color_for_index,
)


class TestPointBuffer:
    def test_overflow_drops_oldest(self):
        buf = PointBuffer(3)
        for i in range(5):
            buf.push(i, 10 * i)
        assert len(buf) == 3
        np.testing.assert_array_equal(buf.x, [2, 3, 4])
        np.testing.assert_array_equal(buf.y, [20, 30, 40])

    def test_never_exceeds_capacity_and_keeps_newest(self):
        buf = PointBuffer(100)
        for i in range(1234):
            buf.push(i, -i)
            assert len(buf) <= 100
            assert tuple(buf.data[-1]) == (i, -i)

    def test_last(self):
        buf = PointBuffer(10)
        for i in range(4):
            buf.push(i, i)
        np.testing.assert_array_equal(buf.last(2)[:, 0], [2, 3])
        assert buf.last(0).shape == (0, 2)

    def test_resize_keeps_newest_rows(self):
        buf = PointBuffer(5)
        for i in range(7):
            buf.push(i, i)
        buf.resize(3)
        np.testing.assert_array_equal(buf.x, [4, 5, 6])

        buf.resize(6)
        buf.push(7, 7)
        np.testing.assert_array_equal(buf.x, [4, 5, 6, 7])

    def test_clear_and_invalid_capacity(self):
        buf = PointBuffer(2)
        buf.push(1, 1)
        buf.clear()
        assert len(buf) == 0
        assert buf.data.shape == (0, 2)
        with pytest.raises(ValueError):
            PointBuffer(0)


def test_default_colors_are_distinct_hex():
    colors = [default_color_for_index(i) for i in range(7)]
    assert len(set(colors)) == len(colors)
    assert all(c.startswith("#") and len(c) == 7 for c in colors)
    assert default_color_for_index(0) == "#dc2f2f"


def test_choice_enums_coerce_names():
    assert RenderMode.coerce("fit") is RenderMode.FIT
    assert FitType.coerce(" Square ") is FitType.SQUARE
    assert FitType.coerce(FitType.SINE) is FitType.SINE
    with pytest.raises(ValueError):
        RenderMode.coerce("bars")


class TestCurve:
    def test_names_of_render_series(self):
        curve = Curve(2, "#000000")
        assert curve.name == "CH:2"
        assert curve.scatter.name == "CH:2 (pts)"
        assert curve.line.name == "CH:2"
        assert curve.fit_line.name == "CH:2 (fit)"

    def test_settings_are_clamped(self):
        curve = Curve(0, "#000000", fit_window=0, max_points=-5)
        assert curve.fit_window == MIN_FIT_WINDOW
        assert curve.max_points == MIN_MAX_POINTS
        assert curve.points.capacity == MIN_MAX_POINTS
        assert curve.set_fit_window(5) == MIN_FIT_WINDOW
        assert curve.set_fit_window(500) == 500

    def test_lowering_capacity_trims_immediately(self):
        curve = Curve(0, "#000000", max_points=200)
        for i in range(150):
            curve.append(i, i)
        assert curve.set_max_points(100) == 100
        assert len(curve.points) == 100
        assert curve.points.x[0] == 50
        assert curve.points.x[-1] == 149


class TestCurveRegistry:
    def test_ensure_curve_is_idempotent(self):
        reg = CurveRegistry()
        first = reg.ensure_curve(3)
        second = reg.ensure_curve(3)
        assert first is second
        assert len(reg) == 1
        assert reg.active_index == 0

    def test_new_curves_copy_defaults(self):
        reg = CurveRegistry(
            CurveDefaults(render_mode=RenderMode.FIT, fit_type=FitType.SINE, fit_window=50)
        )
        curve = reg.ensure_curve(0)
        assert curve.render_mode is RenderMode.FIT
        assert curve.fit_type is FitType.SINE
        assert curve.fit_window == 50

    def test_append_routes_by_channel_or_active(self):
        reg = CurveRegistry()
        reg.append((0.0, 1.0), channel=2)
        assert reg.channel_ids == [2]
        reg.append((1.0, 2.0))
        reg.append((2.0, 3.0), channel=-1)
        assert len(reg.find(2).points) == 3

    def test_append_without_curves_creates_channel_zero(self):
        reg = CurveRegistry()
        curve = reg.append((0.0, 0.0))
        assert curve.channel_id == 0

    def test_add_curve_picks_next_unused_channel(self):
        reg = CurveRegistry()
        reg.ensure_curve(0)
        reg.ensure_curve(2)
        curve = reg.add_curve()
        assert curve.channel_id == 1
        assert reg.active is curve
        assert reg.add_curve().channel_id == 3

    def test_remove_refuses_last_curve(self):
        reg = CurveRegistry()
        reg.ensure_curve(0)
        assert reg.remove(0) is False
        assert len(reg) == 1

    def test_remove_clamps_active_index(self):
        reg = CurveRegistry()
        for ch in range(3):
            reg.ensure_curve(ch)
        reg.set_active(2)
        assert reg.remove(2) is True
        assert reg.active_index == 1
        assert reg.channel_ids == [0, 1]

    def test_removing_a_lower_index_keeps_the_active_curve(self):
        reg = CurveRegistry()
        for ch in range(3):
            reg.ensure_curve(ch)
        reg.set_active(1)
        assert reg.remove(0) is True
        assert reg.active.channel_id == 1
        reg.append((5.0, 5.0))
        assert len(reg.find(1).points) == 1
        assert len(reg.find(2).points) == 0

    def test_invalid_index(self):
        reg = CurveRegistry()
        reg.ensure_curve(0)
        with pytest.raises(ValueError, match="Invalid curve index"):
            reg.set_active(4)
        with pytest.raises(ValueError):
            reg.remove(-1)

    def test_reset_curves(self):
        reg = CurveRegistry()
        for ch in (0, 5, 9):
            reg.append((1.0, 1.0), channel=ch)
        reg.reset_curves()
        assert reg.channel_ids == [0]
        assert len(reg[0].points) == 0
        assert reg.active_index == 0

    def test_clear_points_keeps_curves(self):
        reg = CurveRegistry()
        reg.append((1.0, 1.0), channel=0)
        reg.append((1.0, 1.0), channel=1)
        reg.clear_points()
        assert reg.channel_ids == [0, 1]
        assert all(len(c.points) == 0 for c in reg)
