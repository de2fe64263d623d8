"""HostRoll SSH execution and remote script generation."""

from __future__ import annotations

import logging
import shlex
import subprocess
import time
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional, Tuple

from .constants import SECRET_STAGING_PREFIX, SSH_TIMEOUT_EXIT_CODE, SYSTEM_PROFILE_PATH
from .exceptions import ActivationError, HostRollError, UploadError
from .utils import parse_kv_lines

if TYPE_CHECKING:
    from .models import Host, Secret
    from .plan import ActivationMode

logger = logging.getLogger("hostroll")


def run_ssh(
    host: str,
    remote_cmd: str,
    *,
    ssh_options: List[str],
    input_bytes: Optional[bytes] = None,
    timeout_s: Optional[int] = 60,
) -> Tuple[int, str, str]:
    """
    Executes: ssh [opts...] host remote_cmd

    Returns (returncode, stdout, stderr). Does NOT raise on non-zero rc.
    A timeout_s of None waits for the remote command indefinitely.
    """
    cmd = ["ssh", "-o", "BatchMode=yes"] + ssh_options + [host, remote_cmd]
    logger.debug("SSH command: ssh %s %s '<script>'", " ".join(ssh_options), host)
    logger.debug("SSH timeout: %s", f"{timeout_s}s" if timeout_s else "none")

    start_time = time.time()
    try:
        p = subprocess.run(
            cmd,
            input=input_bytes,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            timeout=timeout_s,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        elapsed = time.time() - start_time
        logger.debug("SSH timeout after %.2fs", elapsed)
        return (
            SSH_TIMEOUT_EXIT_CODE,
            e.stdout.decode("utf-8", "replace") if e.stdout else "",
            e.stderr.decode("utf-8", "replace") if e.stderr else "ssh timeout",
        )
    except FileNotFoundError:
        raise HostRollError("ssh binary not found on PATH. Install OpenSSH client (ssh).")

    elapsed = time.time() - start_time
    logger.debug("SSH completed in %.2fs (rc=%d)", elapsed, p.returncode)
    return (
        p.returncode,
        p.stdout.decode("utf-8", "replace"),
        p.stderr.decode("utf-8", "replace"),
    )


def build_ssh_options(connect_timeout: int, ssh_option: Optional[List[str]] = None) -> List[str]:
    """Build SSH options list from command arguments."""
    opts: List[str] = []
    # ConnectTimeout is client-side only; safe default for humans.
    opts += ["-o", f"ConnectTimeout={connect_timeout}"]
    # Prefer to fail fast rather than hang on unknown host key prompts.
    # Users can override via --ssh-option if they prefer.
    opts += ["-o", "StrictHostKeyChecking=accept-new"]
    if ssh_option:
        for item in ssh_option:
            # Each --ssh-option can include multiple tokens, e.g. "-J bastion" or "-p 2222"
            opts += shlex.split(item)
    return opts


def sudo_prefix(sudo_password: str) -> str:
    """Return the sudo invocation: read the password from stdin, or never prompt."""
    if sudo_password:
        return "sudo -S -p ''"
    return "sudo -n"


def sudo_input(sudo_password: str) -> Optional[bytes]:
    if sudo_password:
        return (sudo_password + "\n").encode("utf-8")
    return None


def as_root(script: str, sudo_password: str) -> str:
    """Wrap a script so it runs as root via a single sudo invocation."""
    return f"{sudo_prefix(sudo_password)} sh -c " + shlex.quote(script.strip("\n"))


def remote_stage_script() -> str:
    """Generate remote shell script that writes stdin to a private staging file."""
    script = f"""
set -eu
umask 077
tmp=$(mktemp {shlex.quote(SECRET_STAGING_PREFIX)}XXXXXX)
cat > "$tmp"
printf 'STAGED=%s\\n' "$tmp"
"""
    return "sh -c " + shlex.quote(script.strip("\n"))


def remote_install_secret_script(
    staged_path: str,
    destination: str,
    *,
    mode: str,
    owner: str,
    group: str,
    actions: tuple[str, ...] = (),
) -> str:
    """Generate the root script that moves a staged secret into place."""
    src = shlex.quote(staged_path)
    dst = shlex.quote(destination)
    m = shlex.quote(mode)
    og = shlex.quote(f"{owner}:{group}")
    action_cmd = shlex.join(actions) if actions else "true"
    # Steps:
    # 1) make sure the destination dir exists
    # 2) chown/chmod the staged file
    # 3) mv into place (atomic when on the same filesystem)
    # 4) run the secret's action, if any
    return f"""
set -eu
src={src}
dst={dst}
trap 'rm -f "$src"' EXIT
mkdir -p "$(dirname "$dst")"
chown {og} "$src"
chmod {m} "$src"
mv -f "$src" "$dst"
{action_cmd}
"""


def remote_activate_script(system_path: str, mode: str) -> str:
    """Generate the root script that activates a system closure."""
    sp = shlex.quote(system_path)
    set_profile = mode in ("switch", "boot")
    profile = shlex.quote(SYSTEM_PROFILE_PATH)
    return f"""
set -eu
system={sp}
if {"true" if set_profile else "false"}; then
  nix-env --profile {profile} --set "$system"
fi
"$system/bin/switch-to-configuration" {shlex.quote(mode)}
"""


class SshRunner:
    """Remote operations against inventory hosts with bound ssh options."""

    def __init__(self, ssh_options: List[str], timeout_s: Optional[int] = None):
        self.ssh_options = ssh_options
        self.timeout_s = timeout_s

    def run_command(self, host: Host, remote_cmd: str, *, timeout_s: Optional[int] = None):
        """Run a command as the login user; returns (rc, stdout, stderr)."""
        return run_ssh(
            host.ssh_target,
            remote_cmd,
            ssh_options=self.ssh_options,
            timeout_s=timeout_s if timeout_s is not None else self.timeout_s,
        )

    def upload_secret(self, host: Host, sudo_password: str, secret: Secret, base_dir: Path) -> None:
        """Deliver ``secret`` to ``host`` with its declared owner and permissions."""
        local = secret.local_path(base_dir)
        try:
            data = local.read_bytes()
        except OSError as e:
            raise UploadError(f"cannot read secret {local}: {e}") from e

        rc, out, err = run_ssh(
            host.ssh_target,
            remote_stage_script(),
            ssh_options=self.ssh_options,
            input_bytes=data,
            timeout_s=self.timeout_s,
        )
        staged = parse_kv_lines(out).get("STAGED")
        if rc != 0 or not staged:
            raise UploadError(
                f"staging {secret.destination} on {host.name} failed (rc={rc}): {err.strip()}"
            )

        script = remote_install_secret_script(
            staged,
            secret.destination,
            mode=secret.permissions,
            owner=secret.owner.user,
            group=secret.owner.group,
            actions=secret.actions,
        )
        rc, _, err = run_ssh(
            host.ssh_target,
            as_root(script, sudo_password),
            ssh_options=self.ssh_options,
            input_bytes=sudo_input(sudo_password),
            timeout_s=self.timeout_s,
        )
        if rc != 0:
            raise UploadError(
                f"installing {secret.destination} on {host.name} failed (rc={rc}): {err.strip()}"
            )

    def activate(
        self, host: Host, system_path: str, mode: ActivationMode | str, sudo_password: str
    ) -> None:
        """Run switch-to-configuration for ``mode`` on ``host``."""
        script = remote_activate_script(system_path, str(mode))
        rc, out, err = run_ssh(
            host.ssh_target,
            as_root(script, sudo_password),
            ssh_options=self.ssh_options,
            input_bytes=sudo_input(sudo_password),
            timeout_s=self.timeout_s,
        )
        if out.strip():
            print(out.rstrip())
        if rc != 0:
            raise ActivationError(
                f"activating '{mode}' on {host.name} failed (rc={rc}): {err.strip()}"
            )
