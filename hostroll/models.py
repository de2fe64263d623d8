"""Inventory data model: hosts, secrets and health checks."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .constants import DEFAULT_CHECK_PERIOD_S, DEFAULT_CHECK_TIMEOUT_S
from .exceptions import EvaluationError, NotFoundError
from .utils import resolve_local_path


@dataclass(frozen=True)
class FileOwner:
    user: str = "root"
    group: str = "root"

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> FileOwner:
        data = data or {}
        return cls(user=data.get("user") or "root", group=data.get("group") or "root")


@dataclass(frozen=True)
class Secret:
    """A file to deliver to a host.

    ``source`` is a local path, relative paths are resolved against the
    directory holding the deployment file. ``actions`` is an optional remote
    command run after the file is in place (e.g. restarting a service).
    """

    source: str
    destination: str
    owner: FileOwner = field(default_factory=FileOwner)
    permissions: str = "0400"
    actions: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Secret:
        try:
            return cls(
                source=data["source"],
                destination=data["destination"],
                owner=FileOwner.from_dict(data.get("owner")),
                permissions=str(data.get("permissions") or "0400"),
                actions=tuple(data.get("action") or ()),
            )
        except KeyError as e:
            raise EvaluationError(f"secret is missing required attribute {e}") from e

    def local_path(self, base_dir: Path) -> Path:
        return resolve_local_path(self.source, base_dir)

    def size(self, base_dir: Path) -> int:
        """Return the size in bytes of the local source file."""
        path = self.local_path(base_dir)
        try:
            return path.stat().st_size
        except FileNotFoundError as e:
            raise NotFoundError(f"secret source not found: {path}") from e


@dataclass(frozen=True)
class CmdHealthCheck:
    description: str
    cmd: tuple[str, ...]
    period: int = DEFAULT_CHECK_PERIOD_S
    timeout: int = DEFAULT_CHECK_TIMEOUT_S

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CmdHealthCheck:
        cmd = data.get("cmd") or ()
        if isinstance(cmd, str):
            cmd = (cmd,)
        return cls(
            description=data.get("description") or " ".join(cmd),
            cmd=tuple(cmd),
            period=int(data.get("period") or DEFAULT_CHECK_PERIOD_S),
            timeout=int(data.get("timeout") or DEFAULT_CHECK_TIMEOUT_S),
        )


@dataclass(frozen=True)
class HttpHealthCheck:
    description: str
    scheme: str = "http"
    host: str | None = None
    port: int = 80
    path: str = "/"
    headers: tuple[tuple[str, str], ...] = ()
    insecure_ssl: bool = False
    period: int = DEFAULT_CHECK_PERIOD_S
    timeout: int = DEFAULT_CHECK_TIMEOUT_S

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> HttpHealthCheck:
        scheme = data.get("scheme") or "http"
        port = int(data.get("port") or (443 if scheme == "https" else 80))
        path = data.get("path") or "/"
        return cls(
            description=data.get("description")
            or f"{scheme}://{data.get('host') or ''}:{port}{path}",
            scheme=scheme,
            host=data.get("host"),
            port=port,
            path=path,
            headers=tuple(sorted((data.get("headers") or {}).items())),
            insecure_ssl=bool(data.get("insecureSSL", False)),
            period=int(data.get("period") or DEFAULT_CHECK_PERIOD_S),
            timeout=int(data.get("timeout") or DEFAULT_CHECK_TIMEOUT_S),
        )

    def url(self, default_host: str) -> str:
        path = self.path if self.path.startswith("/") else f"/{self.path}"
        return f"{self.scheme}://{self.host or default_host}:{self.port}{path}"


@dataclass(frozen=True)
class HealthChecks:
    cmd: tuple[CmdHealthCheck, ...] = ()
    http: tuple[HttpHealthCheck, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> HealthChecks:
        data = data or {}
        return cls(
            cmd=tuple(CmdHealthCheck.from_dict(c) for c in data.get("cmd") or ()),
            http=tuple(HttpHealthCheck.from_dict(c) for c in data.get("http") or ()),
        )

    def __len__(self) -> int:
        return len(self.cmd) + len(self.http)


@dataclass(frozen=True)
class DestinationFile:
    path: str
    owner: FileOwner = field(default_factory=FileOwner)
    permissions: str = "0400"


@dataclass(frozen=True)
class DynamicCredentialTarget:
    """Per-host opt-in for a rekeyed secret-service token."""

    enable: bool = False
    destination: DestinationFile | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> DynamicCredentialTarget:
        data = data or {}
        dest = data.get("destinationFile")
        if not dest:
            return cls(enable=False)
        try:
            return cls(
                enable=bool(data.get("enable", False)),
                destination=DestinationFile(
                    path=dest["path"],
                    owner=FileOwner.from_dict(dest.get("owner")),
                    permissions=str(dest.get("permissions") or "0400"),
                ),
            )
        except KeyError as e:
            raise EvaluationError(f"vault destination is missing required attribute {e}") from e


@dataclass(frozen=True)
class Host:
    name: str
    target_host: str
    target_user: str | None = None
    secrets: dict[str, Secret] = field(default_factory=dict)
    health_checks: HealthChecks = field(default_factory=HealthChecks)
    vault: DynamicCredentialTarget = field(default_factory=DynamicCredentialTarget)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Host:
        """Parse one entry of the evaluated inventory."""
        name = data.get("name")
        if not name:
            raise EvaluationError(f"inventory entry without a name: {data!r}")
        return cls(
            name=name,
            target_host=data.get("targetHost") or name,
            target_user=data.get("targetUser") or None,
            secrets={
                k: Secret.from_dict(v) for k, v in sorted((data.get("secrets") or {}).items())
            },
            health_checks=HealthChecks.from_dict(data.get("healthChecks")),
            vault=DynamicCredentialTarget.from_dict(data.get("vault")),
        )

    @property
    def ssh_target(self) -> str:
        """Destination for ssh: ``user@host`` or ``host``."""
        if self.target_user:
            return f"{self.target_user}@{self.target_host}"
        return self.target_host

    @property
    def wants_dynamic_credential(self) -> bool:
        return self.vault.enable and self.vault.destination is not None


@dataclass(frozen=True)
class DynamicCredential:
    accessor: str
    token: str

    def as_env(self) -> str:
        return f"VAULT_ACCESSOR={self.accessor}\nVAULT_TOKEN={self.token}\n"
