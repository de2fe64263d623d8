"""Rollout driver: the ordered, per-host deploy loop.

Hosts are processed strictly one at a time in selection order. Per host the
stages are push, Vault token rekey, secret upload and activation, each only
when the activation plan enables it, followed by the health gate unless it is
skipped. Push, upload and activation failures raise and end the invocation;
a failed health gate is a deliberate halt reported through RolloutResult.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from . import healthchecks, nix, provisioning, vault
from .audit import append_jsonl, deploy_record
from .exceptions import HealthCheckError, HostRollError
from .models import Host
from .plan import ActivationMode, ActivationPlan
from .selection import format_selection, select_hosts

if TYPE_CHECKING:
    import hvac

    from .ssh import SshRunner

logger = logging.getLogger("hostroll")


@dataclass
class RolloutContext:
    """State shared by every host of one invocation."""

    plan: ActivationPlan
    mode: ActivationMode
    result_path: Path
    deployment_dir: Path
    temp_dir: Path
    runner: SshRunner
    ssh_options: list[str]
    sudo_password: str = ""
    skip_health_checks: bool = False
    health_check_timeout: int = 0
    audit_log: Path | None = None
    actor: str = "unknown"
    _vault_client: hvac.Client | None = field(default=None, repr=False)

    def vault_session(self) -> hvac.Client | None:
        """Get-or-create the Vault session.

        A working session is kept for the rest of the invocation; while none
        exists, every call attempts setup again.
        """
        if self._vault_client is None:
            self._vault_client = vault.open_session()
        return self._vault_client

    @property
    def health_gate_enabled(self) -> bool:
        return not self.skip_health_checks


@dataclass(frozen=True)
class HostOutcome:
    host: Host
    stages: tuple[str, ...]
    health_error: HealthCheckError | None = None

    @property
    def halted(self) -> bool:
        return self.health_error is not None


@dataclass(frozen=True)
class RolloutResult:
    completed: tuple[HostOutcome, ...]
    halted: HostOutcome | None = None

    @property
    def ok(self) -> bool:
        return self.halted is None


def load_hosts(
    eval_path: Path,
    deployment_path: Path,
    *,
    pattern: str = "*",
    skip: int = 0,
    every: int = 1,
    limit: int | None = None,
) -> list[Host]:
    """Evaluate the inventory, narrow it and print the selection summary."""
    inventory = nix.get_machines(eval_path, deployment_path)
    selection = select_hosts(inventory, pattern, skip=skip, every=every, limit=limit)
    print(format_selection(selection))
    print()
    return list(selection.selected)


def deploy_host(ctx: RolloutContext, host: Host, stages: list[str]) -> HealthCheckError | None:
    """Run the enabled stages for one host, appending each completed stage.

    Returns the health gate failure, if any. Fatal stage errors propagate.
    """
    if ctx.plan.push:
        paths = nix.get_paths_to_push(host, ctx.result_path)
        print(f"Pushing paths to {host.target_host}:")
        for path in paths:
            print(f"\t* {path}")
        nix.push(host, paths, ctx.ssh_options)
        stages.append("pushed")
    print()

    if ctx.plan.upload_secrets and host.wants_dynamic_credential:
        rekeyed = provisioning.rekey_dynamic_credential(
            ctx.vault_session(), host, ctx.sudo_password, ctx.temp_dir, runner=ctx.runner
        )
        if rekeyed:
            stages.append("credential_rekeyed")

    if ctx.plan.upload_secrets:
        provisioning.upload_static_secrets(
            host, ctx.sudo_password, ctx.deployment_dir, runner=ctx.runner
        )
        stages.append("secrets_uploaded")

    if ctx.plan.activate:
        print(f"Executing '{ctx.mode}' on {host.target_host}:")
        system_path = nix.get_nix_system_path(host, ctx.result_path)
        ctx.runner.activate(host, str(system_path), ctx.mode, ctx.sudo_password)
        stages.append("activated")
        print()

    if ctx.health_gate_enabled:
        try:
            healthchecks.perform(host, ctx.health_check_timeout, runner=ctx.runner)
        except HealthCheckError as e:
            return e
        stages.append("health_checked")

    print(f"Done: {host.name}")
    return None


def _audit(ctx: RolloutContext, host: Host, stages: Sequence[str], error: Exception | None) -> None:
    if ctx.audit_log is None:
        return
    append_jsonl(
        ctx.audit_log,
        deploy_record(
            actor=ctx.actor,
            host=host.name,
            target_host=host.target_host,
            mode=str(ctx.mode),
            stages=stages,
            ok=error is None,
            error=str(error) if error else None,
            result_path=str(ctx.result_path),
        ),
    )


def run_rollout(ctx: RolloutContext, hosts: Sequence[Host]) -> RolloutResult:
    """Deploy ``hosts`` in order, stopping at the first failed health gate."""
    completed: list[HostOutcome] = []
    for host in hosts:
        stages: list[str] = []
        try:
            health_error = deploy_host(ctx, host, stages)
        except HostRollError as e:
            logger.debug("Fatal error on %s after stages %s", host.name, stages)
            _audit(ctx, host, stages, e)
            raise
        _audit(ctx, host, stages, health_error)

        outcome = HostOutcome(host=host, stages=tuple(stages), health_error=health_error)
        if outcome.halted:
            return RolloutResult(completed=tuple(completed), halted=outcome)
        completed.append(outcome)
    return RolloutResult(completed=tuple(completed))
