"""HostRoll utility functions."""

from __future__ import annotations

import datetime as dt
import os
from pathlib import Path

from .constants import AUDIT_DIR_NAME, AUDIT_FILE_NAME


def utc_now_iso() -> str:
    """Return current UTC time in ISO format without microseconds."""
    return dt.datetime.now(dt.UTC).replace(microsecond=0).isoformat()


def format_elapsed_time(seconds: float) -> str:
    """Format elapsed time in human-readable format.

    Args:
        seconds: Elapsed time in seconds

    Returns:
        Formatted string like "1m25s", "45s", or "1h05m30s"
    """
    total_seconds = int(seconds)
    hours, remainder = divmod(total_seconds, 3600)
    minutes, secs = divmod(remainder, 60)

    if hours:
        return f"{hours}h{minutes:02d}m{secs:02d}s"
    if minutes:
        return f"{minutes}m{secs:02d}s"
    return f"{secs}s"


def ensure_parent_dir(p: Path) -> None:
    """Create parent directory of path if it doesn't exist."""
    p.parent.mkdir(parents=True, exist_ok=True)


def infer_actor() -> str:
    """Infer the actor (user) performing the operation."""
    return (
        os.environ.get("HOSTROLL_ACTOR")
        or os.environ.get("SUDO_USER")
        or os.environ.get("USER")
        or "unknown"
    )


def default_audit_log_path() -> Path:
    """Return default path for audit log file."""
    home = Path(os.path.expanduser("~"))
    return home / AUDIT_DIR_NAME / AUDIT_FILE_NAME


def resolve_local_path(path: str, base_dir: Path) -> Path:
    """Resolve a possibly relative local path against base_dir."""
    p = Path(path).expanduser()
    if p.is_absolute():
        return p
    return base_dir / p


def parse_kv_lines(output: str) -> dict[str, str]:
    """Parse key=value lines from string output."""
    d: dict[str, str] = {}
    for line in output.splitlines():
        if "=" in line:
            k, v = line.split("=", 1)
            d[k.strip()] = v.strip()
    return d
