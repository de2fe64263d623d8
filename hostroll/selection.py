"""Host selection: glob matching followed by a skip/every/limit window."""

from __future__ import annotations

import fnmatch
from collections.abc import Sequence
from dataclasses import dataclass

from .exceptions import InvalidPatternError, UserError
from .models import Host


@dataclass(frozen=True)
class Selection:
    """Result of narrowing the inventory, with counts for the operator."""

    all_hosts: tuple[Host, ...]
    matched: tuple[Host, ...]
    selected: tuple[Host, ...]

    @property
    def name_filtered(self) -> int:
        return len(self.all_hosts) - len(self.matched)

    @property
    def limit_filtered(self) -> int:
        return len(self.matched) - len(self.selected)


def validate_pattern(pattern: str) -> None:
    """Raise InvalidPatternError for empty globs, dangling escapes or unclosed classes."""
    if not pattern:
        raise InvalidPatternError("host pattern must not be empty")
    i = 0
    n = len(pattern)
    while i < n:
        c = pattern[i]
        if c == "\\":
            if i + 1 >= n:
                raise InvalidPatternError(f"invalid host pattern {pattern!r}: trailing backslash")
            i += 2
            continue
        if c == "[":
            j = i + 1
            if j < n and pattern[j] == "!":
                j += 1
            # A ']' right after the opening bracket is a literal member.
            if j < n and pattern[j] == "]":
                j += 1
            while j < n and pattern[j] != "]":
                j += 1
            if j >= n:
                raise InvalidPatternError(
                    f"invalid host pattern {pattern!r}: unterminated character class"
                )
            i = j + 1
            continue
        i += 1


def match_hosts(hosts: Sequence[Host], pattern: str) -> list[Host]:
    """Return hosts whose name matches the shell glob, in inventory order."""
    validate_pattern(pattern)
    return [h for h in hosts if fnmatch.fnmatchcase(h.name, pattern)]


def filter_hosts(
    hosts: Sequence[Host], skip: int = 0, every: int = 1, limit: int | None = None
) -> list[Host]:
    """Apply the numeric window: drop ``skip``, keep every ``every``-th, cap at ``limit``."""
    if skip < 0:
        raise UserError(f"--skip must be >= 0, got {skip}")
    if every < 1:
        raise UserError(f"--every must be >= 1, got {every}")
    if limit is not None and limit < 0:
        raise UserError(f"--limit must be >= 0, got {limit}")

    windowed = list(hosts[skip:])[::every]
    if limit is not None:
        windowed = windowed[:limit]
    return windowed


def select_hosts(
    inventory: Sequence[Host],
    pattern: str = "*",
    skip: int = 0,
    every: int = 1,
    limit: int | None = None,
) -> Selection:
    """Narrow the inventory to the working set for this invocation."""
    matched = match_hosts(inventory, pattern)
    selected = filter_hosts(matched, skip=skip, every=every, limit=limit)
    return Selection(
        all_hosts=tuple(inventory),
        matched=tuple(matched),
        selected=tuple(selected),
    )


def format_selection(selection: Selection) -> str:
    """Render the selection summary printed before any work starts."""
    lines = [
        f"Selected {len(selection.selected)}/{len(selection.all_hosts)} hosts "
        f"(name filter:-{selection.name_filtered}, limits:-{selection.limit_filtered}):"
    ]
    for index, host in enumerate(selection.selected):
        lines.append(
            f"\t{index:3d}: {host.name} (secrets: {len(host.secrets)}, "
            f"health checks: {len(host.health_checks)})"
        )
    return "\n".join(lines)
