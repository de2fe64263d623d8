"""Type definitions for CLI command arguments."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class DeployArgs:
    """Arguments for deploy command."""

    deployment: str
    mode: str
    dry_run: bool
    on: str
    every: int
    skip: int
    limit: int | None
    passwd: bool
    skip_health_checks: bool
    health_check_timeout: int
    ssh_option: list[str] | None
    connect_timeout: int
    audit_log: str | None


@dataclass
class CheckHealthArgs:
    """Arguments for check-health command."""

    deployment: str
    timeout: int
    on: str
    every: int
    skip: int
    limit: int | None
    ssh_option: list[str] | None
    connect_timeout: int
