"""Nix evaluation, build and closure transfer."""

from __future__ import annotations

import json
import logging
import os
import shlex
import shutil
import subprocess
import time
from collections.abc import Sequence
from pathlib import Path

from .constants import REQUIRED_EXECUTABLES, RESULT_LINK_NAME
from .exceptions import BuildError, EvaluationError, MissingDependencyError, TransferError
from .models import Host

logger = logging.getLogger("hostroll")


def validate_environment(executables: Sequence[str] = REQUIRED_EXECUTABLES) -> None:
    """Fail before any work starts if required executables are missing."""
    missing = [exe for exe in executables if shutil.which(exe) is None]
    if missing:
        raise MissingDependencyError("Missing dependencies: " + ", ".join(missing))


def _run(cmd: list[str], *, capture: bool = True, env: dict[str, str] | None = None):
    logger.debug("Running: %s", shlex.join(cmd))
    start_time = time.time()
    p = subprocess.run(
        cmd,
        stdout=subprocess.PIPE if capture else None,
        stderr=subprocess.PIPE if capture else None,
        env=env,
        check=False,
    )
    logger.debug("%s completed in %.2fs (rc=%d)", cmd[0], time.time() - start_time, p.returncode)
    return p


def get_machines(eval_path: Path, deployment_path: Path) -> list[Host]:
    """Evaluate the deployment file into the full host inventory."""
    cmd = [
        "nix-instantiate",
        "--eval",
        "--strict",
        "--json",
        str(eval_path),
        "--arg",
        "networkExpr",
        str(deployment_path),
        "-A",
        "info.machineList",
    ]
    p = _run(cmd)
    if p.returncode != 0:
        raise EvaluationError(
            f"evaluating {deployment_path} failed (rc={p.returncode}):\n"
            + p.stderr.decode("utf-8", "replace").strip()
        )
    try:
        data = json.loads(p.stdout)
    except json.JSONDecodeError as e:
        raise EvaluationError(f"invalid JSON from nix-instantiate: {e}") from e
    if not isinstance(data, list):
        raise EvaluationError("expected a list of machines from the deployment evaluation")
    return [Host.from_dict(entry) for entry in data]


def build_machines(
    eval_path: Path, deployment_path: Path, hosts: Sequence[Host], out_dir: Path
) -> Path:
    """Build the system closures of ``hosts``; return the result directory."""
    names = "[ " + " ".join(json.dumps(h.name) for h in hosts) + " ]"
    out_link = out_dir / RESULT_LINK_NAME
    cmd = [
        "nix-build",
        str(eval_path),
        "--arg",
        "networkExpr",
        str(deployment_path),
        "--arg",
        "names",
        names,
        "-A",
        "machines",
        "--out-link",
        str(out_link),
    ]
    # stderr is left attached so build progress reaches the operator
    logger.debug("Running: %s", shlex.join(cmd))
    p = subprocess.run(cmd, stdout=subprocess.PIPE, check=False)
    if p.returncode != 0:
        raise BuildError(f"nix-build failed (rc={p.returncode})")
    lines = p.stdout.decode("utf-8", "replace").strip().splitlines()
    if not lines:
        raise BuildError("nix-build did not report a result path")
    return Path(lines[-1])


def get_nix_system_path(host: Host, result_path: Path) -> Path:
    """Return the store path of the system closure built for ``host``."""
    link = result_path / host.name
    if not link.exists():
        raise BuildError(f"no system closure for {host.name} in {result_path}")
    return link.resolve()


def get_paths_to_push(host: Host, result_path: Path) -> list[Path]:
    return [get_nix_system_path(host, result_path)]


def push(host: Host, paths: Sequence[Path], ssh_options: Sequence[str]) -> None:
    """Copy store paths (and their closure) to ``host``."""
    env = dict(os.environ)
    env["NIX_SSHOPTS"] = " ".join(shlex.quote(o) for o in ssh_options)
    cmd = ["nix-copy-closure", "--to", host.ssh_target] + [str(p) for p in paths]
    p = _run(cmd, capture=False, env=env)
    if p.returncode != 0:
        raise TransferError(f"pushing paths to {host.target_host} failed (rc={p.returncode})")
