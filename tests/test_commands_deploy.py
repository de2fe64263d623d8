"""Tests for hostroll/commands/deploy.py - deploy orchestration."""

from __future__ import annotations

from pathlib import Path

import pytest
from hostroll.cli_types import DeployArgs
from hostroll.commands.deploy import cmd_deploy
from hostroll.constants import HEALTH_HALT_EXIT_CODE
from hostroll.exceptions import CommandFailureError, HealthCheckError, UploadError
from hostroll.plan import ActivationPlan
from hostroll.rollout import HostOutcome, RolloutResult


@pytest.fixture
def deploy_mocks(mocker, make_host):
    """Patch evaluation, build and the driver; return the mocks by name."""
    hosts = [make_host("A"), make_host("B"), make_host("C")]
    return {
        "hosts": hosts,
        "validate": mocker.patch("hostroll.commands.deploy.nix.validate_environment"),
        "load_hosts": mocker.patch("hostroll.commands.deploy.load_hosts", return_value=hosts),
        "build": mocker.patch(
            "hostroll.commands.deploy.nix.build_machines",
            return_value=Path("/nix/store/abc-machines"),
        ),
        "run_rollout": mocker.patch(
            "hostroll.commands.deploy.run_rollout", return_value=RolloutResult(completed=())
        ),
        "prompt": mocker.patch("hostroll.commands.deploy.click.prompt", return_value="hunter2"),
    }


class TestCmdDeploy:
    """Tests for cmd_deploy function."""

    def test_builds_once_for_all_hosts(self, deploy_mocks, mock_args_deploy: DeployArgs):
        cmd_deploy(mock_args_deploy)

        deploy_mocks["validate"].assert_called_once()
        deploy_mocks["build"].assert_called_once()
        build_hosts = deploy_mocks["build"].call_args.args[2]
        assert [h.name for h in build_hosts] == ["A", "B", "C"]
        ctx, hosts = deploy_mocks["run_rollout"].call_args.args
        assert hosts == deploy_mocks["hosts"]
        assert ctx.result_path == Path("/nix/store/abc-machines")
        assert ctx.plan == ActivationPlan(True, False, True, True)
        assert ctx.deployment_dir == Path(mock_args_deploy.deployment).resolve().parent

    def test_selection_options_are_passed(self, deploy_mocks, mock_args_deploy: DeployArgs):
        mock_args_deploy.on = "web*"
        mock_args_deploy.skip = 2
        mock_args_deploy.every = 3
        mock_args_deploy.limit = 2

        cmd_deploy(mock_args_deploy)

        kwargs = deploy_mocks["load_hosts"].call_args.kwargs
        assert kwargs == {"pattern": "web*", "skip": 2, "every": 3, "limit": 2}

    def test_password_prompted_once(self, deploy_mocks, mock_args_deploy: DeployArgs):
        mock_args_deploy.passwd = True

        cmd_deploy(mock_args_deploy)

        deploy_mocks["prompt"].assert_called_once()
        assert deploy_mocks["prompt"].call_args.kwargs["hide_input"] is True
        ctx = deploy_mocks["run_rollout"].call_args.args[0]
        assert ctx.sudo_password == "hunter2"

    def test_no_prompt_without_passwd(self, deploy_mocks, mock_args_deploy: DeployArgs):
        cmd_deploy(mock_args_deploy)
        deploy_mocks["prompt"].assert_not_called()
        assert deploy_mocks["run_rollout"].call_args.args[0].sudo_password == ""

    def test_dry_run(self, deploy_mocks, mock_args_deploy: DeployArgs):
        mock_args_deploy.dry_run = True
        mock_args_deploy.passwd = True

        cmd_deploy(mock_args_deploy)

        deploy_mocks["build"].assert_called_once()
        deploy_mocks["prompt"].assert_not_called()
        ctx = deploy_mocks["run_rollout"].call_args.args[0]
        assert ctx.plan == ActivationPlan()
        assert ctx.audit_log is None

    def test_health_halt_exit_code(self, deploy_mocks, mock_args_deploy: DeployArgs, capsys):
        hosts = deploy_mocks["hosts"]
        deploy_mocks["run_rollout"].return_value = RolloutResult(
            completed=(HostOutcome(host=hosts[0], stages=("pushed",)),),
            halted=HostOutcome(
                host=hosts[1],
                stages=("pushed", "activated"),
                health_error=HealthCheckError("B", ["http: HTTP 503"]),
            ),
        )

        with pytest.raises(CommandFailureError) as excinfo:
            cmd_deploy(mock_args_deploy)

        assert excinfo.value.rc == HEALTH_HALT_EXIT_CODE
        err = capsys.readouterr().err
        assert "Health checks failed on B" in err
        assert "Not deploying to additional hosts" in err

    def test_temp_dir_removed_on_fatal_error(self, deploy_mocks, mock_args_deploy: DeployArgs):
        seen: dict[str, Path] = {}

        def explode(ctx, hosts):
            seen["temp_dir"] = ctx.temp_dir
            assert (ctx.temp_dir / "assets" / "eval-machines.nix").exists()
            raise UploadError("scp failed")

        deploy_mocks["run_rollout"].side_effect = explode

        with pytest.raises(UploadError):
            cmd_deploy(mock_args_deploy)

        assert not seen["temp_dir"].exists()
