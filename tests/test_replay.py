import numpy as np
import pytest

from pyserialplot.liveplot.curve_registry import CurveDefaults, FitType, RenderMode
from pyserialplot.replay import configure_logging, replay_capture


@pytest.fixture
def capture(tmp_path):
    x = np.arange(300) * 0.05
    lines = []
    for i, xi in enumerate(x):
        lines.append(f"CH:0,[{xi:.4f},{np.sin(xi):.5f}],freq:1.0")
        if i % 3 == 0:
            lines.append(f"CH:1,[{xi:.4f},{1.0 if (i // 30) % 2 else 0.0}]")
        if i % 50 == 0:
            lines.append("# status line without data")
    fp = tmp_path / "capture.txt"
    fp.write_text("\n".join(lines) + "\n")
    return fp


def test_replay_headless(capture):
    engine = replay_capture(capture.name, data_path=str(capture.parent), lines_per_tick=25)
    assert engine.curves.channel_ids == [0, 1]
    assert len(engine.curves.find(0).points) == 300
    assert len(engine.curves.find(1).points) == 100
    assert engine.metadata.latest == {"freq": "1.0"}
    assert engine.last_frame is not None


def test_replay_selects_keys_and_fits(capture):
    defaults = CurveDefaults(render_mode=RenderMode.FIT, fit_type=FitType.SINE)
    engine = replay_capture(
        str(capture), defaults=defaults, select_keys=["freq", "absent"]
    )
    assert engine.metadata_text == "freq=1.0"
    assert not engine.last_frame.curve(0).fit.is_empty


def test_replay_crop_and_save(capture, tmp_path):
    out = tmp_path / "replay.png"
    engine = replay_capture(str(capture), crop=[0, 10], save_path=str(out))
    assert len(engine.curves.find(0).points) <= 10
    assert out.exists()


def test_replay_rejects_bad_batch_size(capture):
    with pytest.raises(ValueError):
        replay_capture(str(capture), lines_per_tick=0)


def test_configure_logging_accepts_lowercase():
    configure_logging("debug")
    configure_logging("INFO")
