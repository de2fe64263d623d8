"""
HostRoll - build NixOS host configurations once, roll them out one host at a time.

Design goals:
- No server required (CLI-only).
- Uses your existing SSH client/config (so ProxyJump, bastions, agents work).
- Sequential and explicit: a failing health check stops the rollout.
"""

from __future__ import annotations

from .cli import main
from .exceptions import HostRollError, UserError

__all__ = [
    "HostRollError",
    "UserError",
    "main",
]
