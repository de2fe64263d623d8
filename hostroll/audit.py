"""HostRoll audit logging functions."""

from __future__ import annotations

import json
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from .utils import ensure_parent_dir, utc_now_iso


def append_jsonl(path: Path, record: dict[str, Any]) -> None:
    """Append a JSON record to a JSONL file."""
    ensure_parent_dir(path)
    with path.open("a", encoding="utf-8") as f:
        f.write(json.dumps(record, sort_keys=True) + "\n")


def deploy_record(
    *,
    actor: str,
    host: str,
    target_host: str,
    mode: str,
    stages: Sequence[str],
    ok: bool,
    error: str | None = None,
    result_path: str | None = None,
) -> dict[str, Any]:
    """Build the audit record for one host's deploy outcome."""
    return {
        "ts": utc_now_iso(),
        "actor": actor,
        "action": "host.deploy",
        "host": host,
        "target_host": target_host,
        "ok": ok,
        "error": error,
        "parameters": {
            "mode": mode,
            "stages": list(stages),
            "result_path": result_path,
        },
    }
