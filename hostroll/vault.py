"""HashiCorp Vault integration: session setup and per-host token rekeying.

Vault problems never stop a rollout. They are reported loudly on stderr and
the affected capability (the whole session, or one host's token) is skipped.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping

import click
import hvac
import requests
from hvac.exceptions import InvalidPath, InvalidRequest, VaultError

from .constants import (
    VAULT_ADDR_ENV,
    VAULT_KV_HOSTS_PATH,
    VAULT_KV_MOUNT,
    VAULT_POLICY_PREFIX,
    VAULT_TOKEN_ENV,
    VAULT_TOKEN_PERIOD,
)
from .exceptions import AuthError, ConfigError, RekeyError, SecretServiceError
from .models import DynamicCredential, Host

logger = logging.getLogger("hostroll")

_CLIENT_ERRORS = (VaultError, requests.exceptions.RequestException)


def print_vault_warning(err: Exception) -> None:
    """Make some noise on stderr; the rollout itself carries on."""
    bar = "! " * 12
    click.echo(bar, err=True)
    click.echo(
        "Interaction with Vault failed, this means that we won't be able to rekey host tokens",
        err=True,
    )
    click.echo(f"\t{err}", err=True)
    click.echo("", err=True)
    click.echo(bar, err=True)
    click.echo("", err=True)


def authenticate(addr: str, token: str) -> hvac.Client:
    """Return a client for ``addr`` that is authenticated with ``token``."""
    try:
        client = hvac.Client(url=addr, token=token)
        ok = client.is_authenticated()
    except _CLIENT_ERRORS as e:
        raise AuthError(f"could not reach Vault at {addr}: {e}") from e
    if not ok:
        raise AuthError(f"token from {VAULT_TOKEN_ENV} is not valid for {addr}")
    return client


def configure(client: hvac.Client) -> None:
    """One-time setup: the KV v2 mount that remembers each host's token accessor."""
    try:
        mounts = client.sys.list_mounted_secrets_engines()
        mounts = mounts.get("data", mounts)
        if f"{VAULT_KV_MOUNT}/" not in mounts:
            logger.debug("Enabling KV v2 secrets engine at %s/", VAULT_KV_MOUNT)
            client.sys.enable_secrets_engine(
                backend_type="kv",
                path=VAULT_KV_MOUNT,
                options={"version": "2"},
                description="hostroll host token accessors",
            )
    except _CLIENT_ERRORS as e:
        raise ConfigError(f"configuring Vault failed: {e}") from e


def host_policy_name(host: Host) -> str:
    return f"{VAULT_POLICY_PREFIX}{host.name}"


def host_policy(host: Host) -> str:
    """HCL policy granting a host read access to its own secrets."""
    return (
        f'path "secret/data/hosts/{host.name}/*" {{\n'
        f'  capabilities = ["read", "list"]\n'
        f"}}\n"
    )


def _accessor_path(host: Host) -> str:
    return f"{VAULT_KV_HOSTS_PATH}/{host.name}"


def _previous_accessor(client: hvac.Client, host: Host) -> str | None:
    try:
        resp = client.secrets.kv.v2.read_secret_version(
            path=_accessor_path(host),
            mount_point=VAULT_KV_MOUNT,
            raise_on_deleted_version=True,
        )
    except InvalidPath:
        return None
    return resp["data"]["data"].get("accessor")


def rekey(client: hvac.Client, host: Host) -> DynamicCredential:
    """Issue a fresh token for ``host`` and revoke the one it supersedes."""
    policy = host_policy_name(host)
    try:
        client.sys.create_or_update_policy(name=policy, policy=host_policy(host))
        previous = _previous_accessor(client, host)
        resp = client.auth.token.create(
            policies=[policy],
            meta={"host": host.name},
            display_name=f"host-{host.name}",
            no_parent=True,
            renewable=True,
            period=VAULT_TOKEN_PERIOD,
        )
        auth = resp["auth"]
        creds = DynamicCredential(accessor=auth["accessor"], token=auth["client_token"])
        client.secrets.kv.v2.create_or_update_secret(
            path=_accessor_path(host),
            secret={"accessor": creds.accessor},
            mount_point=VAULT_KV_MOUNT,
        )
    except _CLIENT_ERRORS as e:
        raise RekeyError(f"rekeying token for {host.name} failed: {e}") from e
    except (KeyError, TypeError) as e:
        raise RekeyError(f"unexpected Vault response while rekeying {host.name}: {e}") from e

    if previous and previous != creds.accessor:
        try:
            client.auth.token.revoke_accessor(previous)
        except InvalidRequest:
            # expired or already revoked
            logger.debug("Previous accessor for %s was already gone", host.name)
        except _CLIENT_ERRORS as e:
            raise RekeyError(f"revoking previous token for {host.name} failed: {e}") from e
    return creds


def open_session(environ: Mapping[str, str] | None = None) -> hvac.Client | None:
    """Authenticate and configure from the environment, or return None with a warning."""
    environ = os.environ if environ is None else environ
    addr = environ.get(VAULT_ADDR_ENV, "")
    token = environ.get(VAULT_TOKEN_ENV, "")
    if not addr or not token:
        click.echo(
            f"Vault: Please set {VAULT_ADDR_ENV} and {VAULT_TOKEN_ENV} in environment.",
            err=True,
        )
        click.echo("", err=True)
        return None
    try:
        client = authenticate(addr, token)
        configure(client)
    except SecretServiceError as e:
        print_vault_warning(e)
        return None
    logger.debug("Vault session established with %s", addr)
    return client
