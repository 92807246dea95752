from pyserialplot.telemetry.metadata import MetadataStore


def test_observe_reports_only_new_keys():
    store = MetadataStore()
    assert store.observe({"freq": "10", "temp": "20"}) == ["freq", "temp"]
    assert store.observe({"temp": "21", "gain": "2"}) == ["gain"]
    assert store.latest == {"freq": "10", "temp": "21", "gain": "2"}
    assert store.seen_keys == ["freq", "temp", "gain"]


def test_reserved_channel_key_is_ignored():
    store = MetadataStore()
    assert store.observe({"CH": "1", "ch": "2"}) == []
    assert store.latest == {}


def test_select_only_accepts_seen_keys():
    store = MetadataStore()
    store.observe({"a": "1"})
    assert store.select(["a", "missing"]) == 1
    assert store.selected_keys == {"a"}
    assert store.select(["a"]) == 0


def test_render_display_sorts_case_insensitively():
    store = MetadataStore()
    store.observe({"b": "2", "A": "1", "c": "3", "hidden": "x"})
    store.select(["c", "b", "A"])
    assert store.render_display() == "A=1\nb=2\nc=3"


def test_render_display_uses_latest_value():
    store = MetadataStore()
    store.observe({"temp": "20"})
    store.select(["temp"])
    store.observe({"temp": "22"})
    assert store.render_display() == "temp=22"


def test_deselect():
    store = MetadataStore()
    store.observe({"a": "1", "b": "2"})
    store.select(["a", "b"])
    assert store.deselect(["a", "zzz"]) == 1
    assert store.render_display() == "b=2"


def test_reset_clears_everything():
    store = MetadataStore()
    store.observe({"a": "1"})
    store.select(["a"])
    store.reset()
    assert store.latest == {}
    assert store.selected_keys == set()
    assert store.seen_keys == []
    assert not store.is_seen("a")
    assert store.render_display() == ""
