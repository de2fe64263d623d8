"""Tests for hostroll/vault.py - Vault session setup and token rekeying."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
import requests
from hostroll import vault
from hostroll.constants import VAULT_KV_MOUNT
from hostroll.exceptions import AuthError, ConfigError, RekeyError
from hvac.exceptions import Forbidden, InvalidPath, InvalidRequest


class TestAuthenticate:
    """Tests for authenticate function."""

    def test_success(self, mocker):
        client_cls = mocker.patch("hostroll.vault.hvac.Client")
        client_cls.return_value.is_authenticated.return_value = True

        client = vault.authenticate("https://vault:8200", "root")

        client_cls.assert_called_once_with(url="https://vault:8200", token="root")
        assert client is client_cls.return_value

    def test_invalid_token(self, mocker):
        client_cls = mocker.patch("hostroll.vault.hvac.Client")
        client_cls.return_value.is_authenticated.return_value = False
        with pytest.raises(AuthError, match="not valid"):
            vault.authenticate("https://vault:8200", "bad")

    def test_unreachable(self, mocker):
        client_cls = mocker.patch("hostroll.vault.hvac.Client")
        client_cls.return_value.is_authenticated.side_effect = requests.exceptions.ConnectionError(
            "refused"
        )
        with pytest.raises(AuthError, match="could not reach"):
            vault.authenticate("https://vault:8200", "root")


class TestConfigure:
    """Tests for configure function."""

    def test_enables_missing_mount(self):
        client = MagicMock()
        client.sys.list_mounted_secrets_engines.return_value = {"data": {"secret/": {}}}
        vault.configure(client)
        client.sys.enable_secrets_engine.assert_called_once()
        kwargs = client.sys.enable_secrets_engine.call_args.kwargs
        assert kwargs["path"] == VAULT_KV_MOUNT
        assert kwargs["options"] == {"version": "2"}

    def test_existing_mount_left_alone(self):
        client = MagicMock()
        client.sys.list_mounted_secrets_engines.return_value = {"data": {f"{VAULT_KV_MOUNT}/": {}}}
        vault.configure(client)
        client.sys.enable_secrets_engine.assert_not_called()

    def test_failure(self):
        client = MagicMock()
        client.sys.list_mounted_secrets_engines.side_effect = Forbidden("denied")
        with pytest.raises(ConfigError, match="denied"):
            vault.configure(client)


def _token_response(accessor: str = "new-acc", token: str = "new-tok") -> dict:
    return {"auth": {"accessor": accessor, "client_token": token}}


class TestRekey:
    """Tests for rekey function."""

    def test_first_rekey(self, make_host):
        host = make_host("web1")
        client = MagicMock()
        client.secrets.kv.v2.read_secret_version.side_effect = InvalidPath("none")
        client.auth.token.create.return_value = _token_response()

        creds = vault.rekey(client, host)

        assert creds.accessor == "new-acc"
        assert creds.token == "new-tok"
        client.sys.create_or_update_policy.assert_called_once()
        assert client.auth.token.create.call_args.kwargs["policies"] == ["hostroll-host-web1"]
        client.secrets.kv.v2.create_or_update_secret.assert_called_once_with(
            path="hosts/web1", secret={"accessor": "new-acc"}, mount_point=VAULT_KV_MOUNT
        )
        client.auth.token.revoke_accessor.assert_not_called()

    def test_revokes_superseded_token(self, make_host):
        client = MagicMock()
        client.secrets.kv.v2.read_secret_version.return_value = {
            "data": {"data": {"accessor": "old-acc"}}
        }
        client.auth.token.create.return_value = _token_response()

        vault.rekey(client, make_host("web1"))

        client.auth.token.revoke_accessor.assert_called_once_with("old-acc")

    def test_already_revoked_accessor_is_fine(self, make_host):
        client = MagicMock()
        client.secrets.kv.v2.read_secret_version.return_value = {
            "data": {"data": {"accessor": "old-acc"}}
        }
        client.auth.token.create.return_value = _token_response()
        client.auth.token.revoke_accessor.side_effect = InvalidRequest("invalid accessor")

        creds = vault.rekey(client, make_host("web1"))
        assert creds.accessor == "new-acc"

    def test_create_failure(self, make_host):
        client = MagicMock()
        client.secrets.kv.v2.read_secret_version.side_effect = InvalidPath("none")
        client.auth.token.create.side_effect = Forbidden("permission denied")
        with pytest.raises(RekeyError, match="permission denied"):
            vault.rekey(client, make_host("web1"))

    def test_malformed_response(self, make_host):
        client = MagicMock()
        client.secrets.kv.v2.read_secret_version.side_effect = InvalidPath("none")
        client.auth.token.create.return_value = {"auth": None}
        with pytest.raises(RekeyError, match="unexpected"):
            vault.rekey(client, make_host("web1"))


class TestOpenSession:
    """Tests for open_session function."""

    def test_missing_env_warns(self, mocker, capsys):
        auth = mocker.patch("hostroll.vault.authenticate")
        assert vault.open_session({"VAULT_ADDR": "https://vault"}) is None
        auth.assert_not_called()
        assert "VAULT_ADDR and VAULT_TOKEN" in capsys.readouterr().err

    def test_success(self, mocker):
        client = MagicMock()
        mocker.patch("hostroll.vault.authenticate", return_value=client)
        configure = mocker.patch("hostroll.vault.configure")

        session = vault.open_session({"VAULT_ADDR": "https://vault", "VAULT_TOKEN": "root"})

        assert session is client
        configure.assert_called_once_with(client)

    def test_auth_failure_is_warning(self, mocker, capsys):
        mocker.patch("hostroll.vault.authenticate", side_effect=AuthError("boom"))
        assert vault.open_session({"VAULT_ADDR": "a", "VAULT_TOKEN": "b"}) is None
        err = capsys.readouterr().err
        assert "Interaction with Vault failed" in err
        assert "boom" in err

    def test_configure_failure_is_warning(self, mocker, capsys):
        mocker.patch("hostroll.vault.authenticate", return_value=MagicMock())
        mocker.patch("hostroll.vault.configure", side_effect=ConfigError("nope"))
        assert vault.open_session({"VAULT_ADDR": "a", "VAULT_TOKEN": "b"}) is None
        assert "nope" in capsys.readouterr().err
