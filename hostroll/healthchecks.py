"""Host health checks: remote commands over SSH and HTTP probes."""

from __future__ import annotations

import logging
import shlex
import time
from typing import TYPE_CHECKING, Union

import requests

from .exceptions import HealthCheckError
from .models import CmdHealthCheck, Host, HttpHealthCheck

if TYPE_CHECKING:
    from .ssh import SshRunner

logger = logging.getLogger("hostroll")

Check = Union[CmdHealthCheck, HttpHealthCheck]


def run_cmd_check(check: CmdHealthCheck, host: Host, runner: SshRunner) -> tuple[bool, str]:
    rc, out, err = runner.run_command(host, shlex.join(check.cmd), timeout_s=check.timeout)
    if rc == 0:
        return True, ""
    return False, f"rc={rc} {(err or out).strip()}".rstrip()


def run_http_check(check: HttpHealthCheck, host: Host) -> tuple[bool, str]:
    url = check.url(host.target_host)
    logger.debug("HTTP health check: GET %s", url)
    try:
        resp = requests.get(
            url,
            headers=dict(check.headers),
            timeout=check.timeout,
            verify=not check.insecure_ssl,
        )
    except requests.exceptions.RequestException as e:
        return False, str(e)
    if 200 <= resp.status_code < 400:
        return True, ""
    return False, f"HTTP {resp.status_code}"


def run_check(check: Check, host: Host, runner: SshRunner) -> tuple[bool, str]:
    if isinstance(check, CmdHealthCheck):
        return run_cmd_check(check, host, runner)
    return run_http_check(check, host)


def perform(host: Host, timeout: int, *, runner: SshRunner) -> None:
    """Run all health checks of ``host`` until they pass or the budget is spent.

    Every pending check is attempted once per round; checks that pass are not
    repeated. With ``timeout <= 0`` each check gets exactly one attempt.
    Raises HealthCheckError naming the checks still failing.
    """
    checks: list[Check] = [*host.health_checks.cmd, *host.health_checks.http]
    if not checks:
        return

    print(f"Running health checks on {host.name}:")
    deadline = time.monotonic() + timeout if timeout > 0 else None
    # keyed by position, descriptions need not be unique
    pending = list(range(len(checks)))
    last_error: dict[int, str] = {}

    while True:
        still_failing: list[int] = []
        for i in pending:
            check = checks[i]
            ok, detail = run_check(check, host, runner)
            if ok:
                print(f"\t* {check.description}: OK")
            else:
                print(f"\t* {check.description}: Failed ({detail})")
                last_error[i] = detail
                still_failing.append(i)
        pending = still_failing

        if not pending:
            print(f"Health checks OK on {host.name}")
            return

        now = time.monotonic()
        if deadline is None or now >= deadline:
            raise HealthCheckError(
                host.name, [f"{checks[i].description}: {last_error[i]}" for i in pending]
            )
        time.sleep(min(min(checks[i].period for i in pending), deadline - now))
