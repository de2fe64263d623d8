"""HostRoll constants."""

from __future__ import annotations

# External executables that must be on PATH before any work starts
REQUIRED_EXECUTABLES = ("nix-instantiate", "nix-build", "nix-copy-closure", "ssh")

# Bundled evaluation expression (package data under hostroll/assets)
EVAL_MACHINES_ASSET = "eval-machines.nix"
RESULT_LINK_NAME = "result"

# Remote paths
SYSTEM_PROFILE_PATH = "/nix/var/nix/profiles/system"
SECRET_STAGING_PREFIX = "/tmp/.hostroll-secret."

# Secret service (HashiCorp Vault) integration
VAULT_ADDR_ENV = "VAULT_ADDR"
VAULT_TOKEN_ENV = "VAULT_TOKEN"
VAULT_POLICY_PREFIX = "hostroll-host-"
VAULT_KV_MOUNT = "hostroll"
VAULT_KV_HOSTS_PATH = "hosts"
VAULT_TOKEN_PERIOD = "768h"
VAULT_ENV_FILE_NAME = "vault.env"
VAULT_ENV_FILE_MODE = 0o600

# Exit codes
HEALTH_HALT_EXIT_CODE = 3
SSH_TIMEOUT_EXIT_CODE = 124

# Health checks
DEFAULT_CHECK_PERIOD_S = 2
DEFAULT_CHECK_TIMEOUT_S = 10

# Audit log
AUDIT_DIR_NAME = ".hostroll"
AUDIT_FILE_NAME = "audit.jsonl"
