from __future__ import annotations

import json
from pathlib import Path

from sui_ptb_resolver.logging import ResolutionTrace, default_run_id


def test_trace_writes_files(tmp_path: Path) -> None:
    trace = ResolutionTrace(base_dir=tmp_path, run_id="run1")
    trace.write_run_metadata({"network": "localnet"})
    trace.event("lookup_resolved", semantic_key="coin", value=b"\x01\xff")

    meta = json.loads(trace.paths.run_metadata.read_text())
    assert meta["network"] == "localnet"

    (row,) = trace.read_events()
    assert row["event"] == "lookup_resolved"
    assert row["value"] == "0x01ff"
    assert isinstance(row["t"], int)


def test_run_id_is_sanitized(tmp_path: Path) -> None:
    trace = ResolutionTrace(base_dir=tmp_path, run_id="a/b c")
    assert trace.run_id == "a_b_c"
    assert trace.paths.root.parent == tmp_path


def test_no_events_yet(tmp_path: Path) -> None:
    assert ResolutionTrace(base_dir=tmp_path).read_events() == []


def test_default_run_id_is_unique() -> None:
    a = default_run_id()
    assert a.startswith("resolve_")
    assert a != default_run_id()
