"""Mapping from the requested activation mode to the steps that run."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ActivationMode(str, Enum):
    BUILD = "build"
    PUSH = "push"
    DRY_ACTIVATE = "dry-activate"
    TEST = "test"
    SWITCH = "switch"
    BOOT = "boot"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class ActivationPlan:
    """Which per-host steps are enabled for this invocation."""

    push: bool = False
    ask_sudo_password: bool = False
    upload_secrets: bool = False
    activate: bool = False


# (push, password-capable, upload_secrets, activate)
_PLAN_TABLE: dict[ActivationMode, tuple[bool, bool, bool, bool]] = {
    ActivationMode.BUILD: (False, False, False, False),
    ActivationMode.PUSH: (True, False, False, False),
    ActivationMode.DRY_ACTIVATE: (True, True, False, True),
    ActivationMode.TEST: (True, True, True, True),
    ActivationMode.SWITCH: (True, True, True, True),
    ActivationMode.BOOT: (True, True, True, True),
}


def resolve_plan(
    mode: ActivationMode | str, *, dry_run: bool, ask_password: bool
) -> ActivationPlan:
    """Return the immutable plan for ``mode``.

    ``dry_run`` disables every step: the invocation only evaluates and builds.
    """
    if dry_run:
        return ActivationPlan()
    push, password_capable, upload_secrets, activate = _PLAN_TABLE[ActivationMode(mode)]
    return ActivationPlan(
        push=push,
        ask_sudo_password=password_capable and ask_password,
        upload_secrets=upload_secrets,
        activate=activate,
    )
