"""Tests for hostroll/commands/check_health.py - standalone health checks."""

from __future__ import annotations

import pytest
from hostroll.cli_types import CheckHealthArgs
from hostroll.commands.check_health import cmd_check_health
from hostroll.exceptions import CommandFailureError, HealthCheckError


@pytest.fixture
def hosts(mocker, make_host):
    hosts = [make_host("A"), make_host("B"), make_host("C")]
    mocker.patch("hostroll.commands.check_health.nix.validate_environment")
    mocker.patch("hostroll.commands.check_health.load_hosts", return_value=hosts)
    return hosts


class TestCmdCheckHealth:
    """Tests for cmd_check_health function."""

    def test_all_healthy(self, hosts, mocker, mock_args_check_health: CheckHealthArgs, capsys):
        perform = mocker.patch("hostroll.commands.check_health.healthchecks.perform")

        cmd_check_health(mock_args_check_health)

        assert [c.args[0].name for c in perform.call_args_list] == ["A", "B", "C"]
        assert "healthy=3 failed=0" in capsys.readouterr().out

    def test_failure_does_not_stop_iteration(
        self, hosts, mocker, mock_args_check_health: CheckHealthArgs, capsys
    ):
        def perform(host, timeout, runner):
            if host.name in ("A", "B"):
                raise HealthCheckError(host.name, ["cmd: rc=1"])

        mock_perform = mocker.patch(
            "hostroll.commands.check_health.healthchecks.perform", side_effect=perform
        )

        with pytest.raises(CommandFailureError) as excinfo:
            cmd_check_health(mock_args_check_health)

        assert excinfo.value.rc == 1
        assert mock_perform.call_count == 3
        assert mock_perform.call_args.args[0].name == "C"
        captured = capsys.readouterr()
        assert "health checks failed on A" in captured.err
        assert "health checks failed on B" in captured.err
        assert "healthy=1 failed=2" in captured.out

    def test_timeout_passed(self, hosts, mocker, mock_args_check_health: CheckHealthArgs):
        mock_args_check_health.timeout = 30
        perform = mocker.patch("hostroll.commands.check_health.healthchecks.perform")
        cmd_check_health(mock_args_check_health)
        assert perform.call_args.args[1] == 30
