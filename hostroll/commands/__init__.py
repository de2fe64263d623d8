"""HostRoll command implementations."""

from __future__ import annotations

from .check_health import cmd_check_health
from .deploy import cmd_deploy

__all__ = [
    "cmd_check_health",
    "cmd_deploy",
]
