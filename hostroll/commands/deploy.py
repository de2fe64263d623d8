"""HostRoll deploy command implementation."""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

import click

from .. import nix
from ..assets import unpack_assets
from ..constants import EVAL_MACHINES_ASSET, HEALTH_HALT_EXIT_CODE
from ..exceptions import CommandFailureError
from ..plan import ActivationMode, resolve_plan
from ..rollout import RolloutContext, RolloutResult, load_hosts, run_rollout
from ..ssh import SshRunner, build_ssh_options
from ..utils import default_audit_log_path, infer_actor

if TYPE_CHECKING:
    from ..cli_types import DeployArgs


def ask_for_sudo_password() -> str:
    """Prompt once per invocation; the password is only ever held in memory."""
    password = click.prompt(
        "Please enter remote sudo password",
        hide_input=True,
        default="",
        show_default=False,
    )
    print()
    return password


def report_halt(result: RolloutResult) -> None:
    outcome = result.halted
    click.echo("", err=True)
    click.echo(f"Health checks failed on {outcome.host.name}: {outcome.health_error}", err=True)
    click.echo(
        "Not deploying to additional hosts, since a host health check failed.", err=True
    )


def cmd_deploy(args: DeployArgs) -> RolloutResult:
    """Build once, then roll the result out host by host."""
    mode = ActivationMode(args.mode)
    plan = resolve_plan(mode, dry_run=args.dry_run, ask_password=args.passwd)
    nix.validate_environment()

    deployment_path = Path(args.deployment).resolve()
    ssh_opts = build_ssh_options(args.connect_timeout, args.ssh_option)
    audit_log = None
    if not args.dry_run:
        audit_log = Path(args.audit_log) if args.audit_log else default_audit_log_path()

    with tempfile.TemporaryDirectory(prefix="hostroll-") as tmp:
        temp_dir = Path(tmp)
        eval_path = unpack_assets(temp_dir) / EVAL_MACHINES_ASSET

        hosts = load_hosts(
            eval_path,
            deployment_path,
            pattern=args.on,
            skip=args.skip,
            every=args.every,
            limit=args.limit,
        )
        result_path = nix.build_machines(eval_path, deployment_path, hosts, temp_dir)
        print(f"nix result path: {result_path}")
        print()

        sudo_password = ask_for_sudo_password() if plan.ask_sudo_password else ""

        ctx = RolloutContext(
            plan=plan,
            mode=mode,
            result_path=result_path,
            deployment_dir=deployment_path.parent,
            temp_dir=temp_dir,
            runner=SshRunner(ssh_opts),
            ssh_options=ssh_opts,
            sudo_password=sudo_password,
            skip_health_checks=args.skip_health_checks,
            health_check_timeout=args.health_check_timeout,
            audit_log=audit_log,
            actor=infer_actor(),
        )
        result = run_rollout(ctx, hosts)

    if result.halted:
        report_halt(result)
        raise CommandFailureError(rc=HEALTH_HALT_EXIT_CODE)
    return result
