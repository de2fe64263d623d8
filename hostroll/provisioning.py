"""Secret provisioning: static secrets and rekeyed Vault credentials."""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

import click

from . import vault
from .constants import VAULT_ENV_FILE_MODE, VAULT_ENV_FILE_NAME
from .exceptions import RekeyError, UploadError
from .models import DynamicCredential, Host, Secret

if TYPE_CHECKING:
    import hvac

    from .ssh import SshRunner

logger = logging.getLogger("hostroll")


def upload_static_secrets(
    host: Host, sudo_password: str, base_dir: Path, *, runner: SshRunner
) -> None:
    """Deliver every declared secret of ``host``.

    Relative secret sources are resolved against ``base_dir`` (the directory
    holding the deployment file). Any failure propagates: a host that cannot
    get its secrets must not be activated.
    """
    print(f"Uploading secrets to {host.name}:")
    for name, secret in host.secrets.items():
        size = secret.size(base_dir)
        print(f"\t* {name} ({size} bytes).. ", end="", flush=True)
        try:
            runner.upload_secret(host, sudo_password, secret, base_dir)
        except UploadError:
            print("Failed")
            raise
        print("OK")


def write_credential_file(creds: DynamicCredential, temp_dir: Path) -> Path:
    """Write the accessor/token pair to a fresh owner-only file in ``temp_dir``."""
    fd, path = tempfile.mkstemp(dir=temp_dir, prefix=f".{VAULT_ENV_FILE_NAME}.")
    try:
        os.fchmod(fd, VAULT_ENV_FILE_MODE)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(creds.as_env())
            f.flush()
            os.fsync(f.fileno())
    except BaseException:
        Path(path).unlink(missing_ok=True)
        raise
    return Path(path)


def rekey_dynamic_credential(
    session: hvac.Client | None,
    host: Host,
    sudo_password: str,
    temp_dir: Path,
    *,
    runner: SshRunner,
) -> bool | None:
    """Rekey and deliver the host's Vault token.

    Returns None when the host has not opted in or there is no session,
    False when rekeying or delivery failed (already reported as a warning),
    True when the new token is on the host.
    """
    if not host.wants_dynamic_credential or session is None:
        return None

    try:
        creds = vault.rekey(session, host)
    except RekeyError as e:
        vault.print_vault_warning(e)
        return False

    print(f'Vault: Secret token for host "{host.target_host}" got rekeyed')

    dest = host.vault.destination
    source = write_credential_file(creds, temp_dir)
    secret = Secret(
        source=str(source),
        destination=dest.path,
        owner=dest.owner,
        permissions=dest.permissions,
    )
    try:
        runner.upload_secret(host, sudo_password, secret, temp_dir)
    except UploadError as e:
        click.echo(f"WARNING: uploading Vault token to {host.name} failed: {e}", err=True)
        return False
    finally:
        source.unlink(missing_ok=True)
        logger.debug("Removed transient credential file %s", source)
    return True
