"""HostRoll CLI using Click."""

from __future__ import annotations

import logging
import sys
from importlib.metadata import version

import click

from .cli_types import CheckHealthArgs, DeployArgs
from .commands import cmd_check_health, cmd_deploy
from .exceptions import CommandFailureError, HostRollError, UserError
from .plan import ActivationMode

# Module logger
logger = logging.getLogger("hostroll")


def setup_logging(debug: bool = False) -> None:
    """Configure logging for the CLI."""
    level = logging.DEBUG if debug else logging.WARNING
    logger.setLevel(level)
    if any(
        isinstance(h, logging.StreamHandler) and getattr(h, "stream", None) is sys.stderr
        for h in logger.handlers
    ):
        return
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    logger.addHandler(handler)


def selection_options(func):
    """Decorator to add host selection options."""
    func = click.option(
        "--limit",
        type=click.IntRange(min=0),
        default=None,
        help="Select at most n hosts.",
    )(func)
    func = click.option(
        "--skip",
        type=click.IntRange(min=0),
        default=0,
        show_default=True,
        help="Skip first n hosts.",
    )(func)
    func = click.option(
        "--every",
        type=click.IntRange(min=1),
        default=1,
        show_default=True,
        help="Select every n hosts.",
    )(func)
    func = click.option(
        "--on",
        "on",
        default="*",
        show_default=True,
        help="Glob for selecting servers in the deployment.",
    )(func)
    return func


def ssh_options(func):
    """Decorator to add ssh connection options."""
    func = click.option(
        "--ssh-option",
        multiple=True,
        help="Extra ssh options, e.g. '--ssh-option \"-J bastion\"' (repeatable).",
    )(func)
    func = click.option(
        "--connect-timeout",
        type=int,
        default=10,
        show_default=True,
        help="SSH connect timeout seconds.",
    )(func)
    return func


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=version("hostroll"), prog_name="hostroll")
@click.option(
    "--debug",
    "-d",
    is_flag=True,
    help="Enable debug logging to stderr.",
)
@click.pass_context
def cli(ctx: click.Context, debug: bool):
    """HostRoll: build NixOS host configurations once and roll them out host by host."""
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug
    setup_logging(debug=debug)


@cli.command("deploy")
@click.argument("deployment", type=click.Path(exists=True, dir_okay=False))
@click.argument(
    "mode",
    metavar="SWITCH_ACTION",
    type=click.Choice([m.value for m in ActivationMode]),
)
@click.option(
    "--dry-run",
    is_flag=True,
    help="Don't change any host; eval, build and run health checks only.",
)
@selection_options
@click.option(
    "--passwd",
    is_flag=True,
    help="Ask interactively for the remote sudo password.",
)
@click.option(
    "--skip-health-checks",
    is_flag=True,
    help="Do not run health checks after activation.",
)
@click.option(
    "--health-check-timeout",
    type=click.IntRange(min=0),
    default=0,
    show_default=True,
    help="Seconds to wait for all health checks on a host to pass (0: single attempt).",
)
@ssh_options
@click.option(
    "--audit-log",
    type=click.Path(),
    help="Path to local JSONL audit log (default: ~/.hostroll/audit.jsonl).",
)
def deploy(
    deployment: str,
    mode: str,
    dry_run: bool,
    on: str,
    every: int,
    skip: int,
    limit: int | None,
    passwd: bool,
    skip_health_checks: bool,
    health_check_timeout: int,
    ssh_option: tuple[str, ...],
    connect_timeout: int,
    audit_log: str | None,
):
    """Deploy machines.

    SWITCH_ACTION is one of build|push|dry-activate|test|switch|boot. Hosts are
    deployed one at a time; a failing health check stops the rollout.
    """
    args = DeployArgs(
        deployment=deployment,
        mode=mode,
        dry_run=dry_run,
        on=on,
        every=every,
        skip=skip,
        limit=limit,
        passwd=passwd,
        skip_health_checks=skip_health_checks,
        health_check_timeout=health_check_timeout,
        ssh_option=list(ssh_option) if ssh_option else None,
        connect_timeout=connect_timeout,
        audit_log=audit_log,
    )
    cmd_deploy(args)


@cli.command("check-health")
@click.argument("deployment", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--timeout",
    type=click.IntRange(min=0),
    default=0,
    show_default=True,
    help="Seconds to wait for all health checks on a host to pass (0: single attempt).",
)
@selection_options
@ssh_options
def check_health(
    deployment: str,
    timeout: int,
    on: str,
    every: int,
    skip: int,
    limit: int | None,
    ssh_option: tuple[str, ...],
    connect_timeout: int,
):
    """Run health checks on every selected host."""
    args = CheckHealthArgs(
        deployment=deployment,
        timeout=timeout,
        on=on,
        every=every,
        skip=skip,
        limit=limit,
        ssh_option=list(ssh_option) if ssh_option else None,
        connect_timeout=connect_timeout,
    )
    cmd_check_health(args)


def main():
    """Main entry point for the CLI."""
    try:
        cli()
    except CommandFailureError as e:
        # Command already printed its error message, just exit
        sys.exit(e.rc)
    except UserError as e:
        click.echo(f"ERROR: {e}", err=True)
        sys.exit(e.rc)
    except HostRollError as e:
        click.echo(f"ERROR: {e}", err=True)
        sys.exit(2)
    except KeyboardInterrupt:
        click.echo("ERROR: Interrupted", err=True)
        sys.exit(130)
