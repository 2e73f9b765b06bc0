import json
from pathlib import Path

from solarverify.core.debug import (
    JsonDebugWriter,
    JsonlDebugWriter,
    ListDebugCollector,
    NullDebugCollector,
    ScopedDebugCollector,
    build_debug_collector,
)


def test_list_collector_records_events(tmp_path):
    collector = ListDebugCollector()
    collector.emit("stage1", {"b": 2, "a": 1}, ts="2025-01-01T00:00:00Z", device="dev1", window="w1")
    assert len(collector.events) == 1
    event = collector.events[0]
    assert event["stage"] == "stage1"
    assert event["device"] == "dev1"
    assert event["window"] == "w1"
    # payload should be key-sorted for determinism
    assert list(event["payload"].keys()) == ["a", "b"]
    assert collector.last("stage1") is event
    assert collector.last("missing") is None


def test_jsonl_writer(tmp_path):
    path = tmp_path / "debug.jsonl"
    writer = JsonlDebugWriter(path)
    writer.emit("stage1", {"z": 1, "y": {"b": 1, "a": 2}}, ts=1)
    writer.emit("stage2", {"b": [2, 1]}, ts=2, device="d", window="w")
    writer.close()

    lines = path.read_text().splitlines()
    assert len(lines) == 2
    events = [json.loads(line) for line in lines]
    assert events[0]["stage"] == "stage1"
    assert list(events[0]["payload"]["y"].keys()) == ["a", "b"]
    assert events[1]["device"] == "d"


def test_json_writer_writes_single_array(tmp_path):
    path = tmp_path / "nested" / "debug.json"
    writer = build_debug_collector(path)
    assert isinstance(writer, JsonDebugWriter)
    writer.emit("a", {"x": 1}, ts=None)
    writer.emit("b", {"x": 2}, ts=None)
    writer.finalize()
    events = json.loads(path.read_text())
    assert [e["stage"] for e in events] == ["a", "b"]


def test_factory_defaults(tmp_path):
    assert isinstance(build_debug_collector(None), NullDebugCollector)
    assert isinstance(build_debug_collector(tmp_path / "x.jsonl"), JsonlDebugWriter)


def test_scoped_collector_injects_context():
    inner = ListDebugCollector()
    scoped = ScopedDebugCollector(inner, device="dev")
    scoped.emit("s", {}, ts=None)
    scoped.emit("s", {}, ts=None, device="other", window="w")
    assert inner.events[0]["device"] == "dev"
    assert inner.events[1]["device"] == "other"
    assert inner.events[1]["window"] == "w"


def test_null_collector_noop():
    NullDebugCollector().emit("stage", {"x": 1}, ts=0)
