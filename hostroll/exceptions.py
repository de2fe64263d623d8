"""HostRoll exception classes."""

from __future__ import annotations


class HostRollError(RuntimeError):
    """Base exception for HostRoll errors."""


class UserError(HostRollError):
    """Errors that should be shown to user without traceback."""

    def __init__(self, message: str, rc: int = 2):
        super().__init__(message)
        self.rc = rc


class CommandFailureError(HostRollError):
    """Command failed - error message already printed, just need to exit.

    This exception is for cases where a command has already printed
    its error message and just needs to signal failure without
    additional output from main().
    """

    def __init__(self, rc: int = 1):
        super().__init__("")
        self.rc = rc


class MissingDependencyError(HostRollError):
    """Required external executables are not on PATH."""


class EvaluationError(HostRollError):
    """The deployment file could not be evaluated into a host inventory."""


class BuildError(HostRollError):
    """Building the deployment artifact failed."""


class InvalidPatternError(UserError):
    """The host selection glob is malformed."""


class TransferError(HostRollError):
    """Copying store paths to a host failed."""


class NotFoundError(HostRollError):
    """A local secret source file does not exist."""


class UploadError(HostRollError):
    """Delivering a secret file to a host failed."""


class ActivationError(HostRollError):
    """Activating the new configuration on a host failed."""


class SecretServiceError(HostRollError):
    """Base class for recoverable secret-service (Vault) failures."""


class AuthError(SecretServiceError):
    """Authenticating against the secret service failed."""


class ConfigError(SecretServiceError):
    """One-time secret-service configuration failed."""


class RekeyError(SecretServiceError):
    """Issuing a fresh host token failed."""


class HealthCheckError(HostRollError):
    """One or more health checks for a host did not pass in time."""

    def __init__(self, host: str, failures: list[str]):
        detail = "; ".join(failures) if failures else "no detail"
        super().__init__(f"health checks failed on {host}: {detail}")
        self.host = host
        self.failures = failures
