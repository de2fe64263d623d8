"""Shared pytest fixtures for HostRoll tests."""

from __future__ import annotations

import json
import tempfile
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest
from hostroll.cli_types import CheckHealthArgs, DeployArgs
from hostroll.models import Host


@pytest.fixture
def tmp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as d:
        yield Path(d)


@pytest.fixture
def tmp_audit_log(tmp_dir: Path) -> Path:
    """Create a temporary audit log path."""
    return tmp_dir / ".hostroll" / "audit.jsonl"


@pytest.fixture
def read_audit() -> Callable[[Path], list[dict[str, Any]]]:
    """Return a reader for JSONL audit logs."""

    def _read(path: Path) -> list[dict[str, Any]]:
        if not path.exists():
            return []
        lines = path.read_text(encoding="utf-8").splitlines()
        return [json.loads(line) for line in lines if line.strip()]

    return _read


def host_entry(name: str, **overrides: Any) -> dict[str, Any]:
    """One inventory entry as produced by the deployment evaluation."""
    entry: dict[str, Any] = {
        "name": name,
        "targetHost": f"{name}.example.com",
        "targetUser": None,
        "secrets": {},
        "healthChecks": {"cmd": [], "http": []},
        "vault": {
            "enable": False,
            "destinationFile": {
                "path": "/var/secrets/vault.env",
                "owner": {"user": "root", "group": "root"},
                "permissions": "0400",
            },
        },
    }
    entry.update(overrides)
    return entry


@pytest.fixture
def make_entry() -> Callable[..., dict[str, Any]]:
    """Factory for raw inventory entries."""
    return host_entry


@pytest.fixture
def make_host() -> Callable[..., Host]:
    """Factory for Host objects built through the inventory parser."""

    def _make(name: str, **overrides: Any) -> Host:
        return Host.from_dict(host_entry(name, **overrides))

    return _make


@pytest.fixture
def deployment_file(tmp_dir: Path) -> Path:
    """A deployment file next to a static secret."""
    path = tmp_dir / "deployment.nix"
    path.write_text("{ }\n")
    (tmp_dir / "secrets").mkdir()
    (tmp_dir / "secrets" / "db.key").write_text("s3cret\n")
    return path


@pytest.fixture
def mock_args_deploy(deployment_file: Path, tmp_audit_log: Path) -> DeployArgs:
    """Create Args object for deploy command."""
    return DeployArgs(
        deployment=str(deployment_file),
        mode="switch",
        dry_run=False,
        on="*",
        every=1,
        skip=0,
        limit=None,
        passwd=False,
        skip_health_checks=False,
        health_check_timeout=0,
        ssh_option=None,
        connect_timeout=10,
        audit_log=str(tmp_audit_log),
    )


@pytest.fixture
def mock_args_check_health(deployment_file: Path) -> CheckHealthArgs:
    """Create Args object for check-health command."""
    return CheckHealthArgs(
        deployment=str(deployment_file),
        timeout=0,
        on="*",
        every=1,
        skip=0,
        limit=None,
        ssh_option=None,
        connect_timeout=10,
    )
