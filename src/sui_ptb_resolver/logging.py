from __future__ import annotations

import json
import os
import secrets
import time
from dataclasses import dataclass
from pathlib import Path


def _now_unix() -> int:
    return int(time.time())


def _safe_filename(s: str) -> str:
    out = []
    for ch in s:
        if ch.isalnum() or ch in ("-", "_", "."):
            out.append(ch)
        else:
            out.append("_")
    return "".join(out)[:120]


def default_run_id(*, prefix: str = "resolve") -> str:
    """Unique run id from timestamp, PID and a random suffix."""
    ts = time.strftime("%Y%m%d_%H%M%S", time.gmtime())
    pid = os.getpid()
    rand = secrets.token_hex(3)
    return f"{prefix}_{ts}_pid{pid}_{rand}"


@dataclass(frozen=True)
class TracePaths:
    root: Path
    run_metadata: Path
    events: Path


class ResolutionTrace:
    """
    Per-session trace:
    - run_metadata.json: one JSON object describing the session
    - events.jsonl: one row per state-machine step (session_started, round_started,
      lookup_requested, lookup_resolved, resolved, failed)
    """

    def __init__(self, *, base_dir: Path, run_id: str | None = None) -> None:
        self.run_id = _safe_filename(run_id or default_run_id())
        root = base_dir / self.run_id
        root.mkdir(parents=True, exist_ok=True)
        self.paths = TracePaths(
            root=root,
            run_metadata=root / "run_metadata.json",
            events=root / "events.jsonl",
        )

    def write_run_metadata(self, obj: dict) -> None:
        self.paths.run_metadata.write_text(json.dumps(obj, indent=2, sort_keys=True) + "\n")

    def event(self, name: str, **fields: object) -> None:
        """
        Append an event row. Every row has ``t`` (Unix seconds) and ``event``;
        bytes values are written as 0x-hex.
        """
        row = {"t": _now_unix(), "event": name, **{k: _jsonable(v) for k, v in fields.items()}}
        with self.paths.events.open("a", encoding="utf-8") as f:
            f.write(json.dumps(row, sort_keys=True) + "\n")

    def read_events(self) -> list[dict]:
        if not self.paths.events.exists():
            return []
        return [json.loads(line) for line in self.paths.events.read_text(encoding="utf-8").splitlines() if line]


def _jsonable(value: object) -> object:
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    return value
