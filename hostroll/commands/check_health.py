"""HostRoll check-health command implementation."""

from __future__ import annotations

import tempfile
import time
from pathlib import Path
from typing import TYPE_CHECKING

import click

from .. import healthchecks, nix
from ..assets import unpack_assets
from ..constants import EVAL_MACHINES_ASSET
from ..exceptions import CommandFailureError, HealthCheckError
from ..rollout import load_hosts
from ..ssh import SshRunner, build_ssh_options
from ..utils import format_elapsed_time

if TYPE_CHECKING:
    from ..cli_types import CheckHealthArgs


def cmd_check_health(args: CheckHealthArgs) -> None:
    """Run health checks for every selected host; never stops early."""
    nix.validate_environment(("nix-instantiate", "ssh"))
    deployment_path = Path(args.deployment).resolve()
    runner = SshRunner(build_ssh_options(args.connect_timeout, args.ssh_option))

    with tempfile.TemporaryDirectory(prefix="hostroll-") as tmp:
        eval_path = unpack_assets(Path(tmp)) / EVAL_MACHINES_ASSET
        hosts = load_hosts(
            eval_path,
            deployment_path,
            pattern=args.on,
            skip=args.skip,
            every=args.every,
            limit=args.limit,
        )

    failed: list[str] = []
    start_time = time.monotonic()
    for host in hosts:
        try:
            healthchecks.perform(host, args.timeout, runner=runner)
        except HealthCheckError as e:
            click.echo(f"ERROR: {e}", err=True)
            failed.append(host.name)

    duration = format_elapsed_time(time.monotonic() - start_time)
    print(
        f"\nSummary: total={len(hosts)} healthy={len(hosts) - len(failed)} "
        f"failed={len(failed)} duration={duration}"
    )
    if failed:
        raise CommandFailureError(rc=1)
