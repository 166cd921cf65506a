"""Integration tests for the tflm CLI commands."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from unittest.mock import Mock, patch

import pytest
from typer.testing import CliRunner

from src.cli.config import CONFIG_ENV_VAR, ENV_OVERRIDES
from src.cli.main import app
from src.errors import PreconditionError
from src.models.backend_metadata import BackendMetadata
from src.models.state_report import StateValidation
from src.models.tagged_resource import TaggedResource
from src.models.teardown_operation import OperationMode, OperationStatus, TeardownOperation
from src.provision.workflow import ProvisionReport
from src.teardown.audit import AuditStorage
from src.teardown.cleaner import TagBasedCleaner
from src.terraform.runner import TerraformResult

IDENTITY = {"account_id": "123456789012", "user_id": "AIDA", "arn": "arn:aws:iam::123456789012:user/ops"}


@pytest.fixture
def runner() -> CliRunner:
    """Create CLI test runner."""
    return CliRunner()


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run every command in an empty directory with no user config."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    for var in [CONFIG_ENV_VAR, *ENV_OVERRIDES]:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("TFLM_AUDIT_DIR", str(tmp_path / "audit"))
    return tmp_path


@pytest.fixture
def credentials():
    with patch("src.cli.main.validate_credentials", return_value=IDENTITY) as mock:
        yield mock


@pytest.fixture
def engine():
    mock = Mock()
    mock.destroy.return_value = TerraformResult("destroy", 0)
    with patch("src.cli.main._runner", return_value=mock), patch("src.cli.main._state_manager"):
        yield mock


@pytest.fixture
def tagged_cleaner():
    discovery = Mock()
    discovery.discover.return_value = [
        TaggedResource("AWS::EC2::VPC", "vpc-1", "eu-west-3", name="main"),
        TaggedResource("AWS::EC2::Instance", "i-1", "eu-west-3", extra={"vpc_id": "vpc-1"}),
    ]
    deleter = Mock()
    deleter.supports.return_value = True
    deleter.delete_resource.return_value = (True, None)
    cleaner = TagBasedCleaner(discovery, deleter)
    with patch("src.cli.main._cleaner", return_value=cleaner):
        yield deleter


class TestGlobalOptions:
    def test_missing_config_file_exits_1(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["--config", "missing.yaml", "history"])

        assert result.exit_code == 1
        assert "Invalid configuration" in result.stdout

    def test_unknown_environment_exits_1(self, runner: CliRunner, isolated_env: Path) -> None:
        (isolated_env / "tflm.yaml").write_text("environments:\n  dev:\n    region: us-east-1\n")

        result = runner.invoke(app, ["--env", "prod", "history"])

        assert result.exit_code == 1
        assert "Unknown environment" in result.stdout


class TestDestroyCommand:
    def test_terraform_destroy_succeeds(
        self, runner: CliRunner, credentials: Mock, engine: Mock, tagged_cleaner: Mock
    ) -> None:
        result = runner.invoke(app, ["destroy", "--force", "--keep-local"])

        assert result.exit_code == 0
        assert "Teardown complete" in result.stdout
        assert "normal_destroy" in result.stdout
        tagged_cleaner.delete_resource.assert_not_called()

    def test_falls_back_to_tag_cleanup(
        self, runner: CliRunner, credentials: Mock, engine: Mock, tagged_cleaner: Mock
    ) -> None:
        engine.destroy.return_value = TerraformResult("destroy", 1)
        engine.init.return_value = TerraformResult("init", 1)

        result = runner.invoke(app, ["destroy", "--force", "--keep-local"])

        assert result.exit_code == 0
        assert "manual_tag_based_cleanup" in result.stdout
        deleted = [c.args[0].resource_id for c in tagged_cleaner.delete_resource.call_args_list]
        assert deleted == ["i-1", "vpc-1"]

    def test_no_fallback_exits_1(
        self, runner: CliRunner, credentials: Mock, engine: Mock, tagged_cleaner: Mock
    ) -> None:
        engine.destroy.return_value = TerraformResult("destroy", 1)
        engine.init.return_value = TerraformResult("init", 1)

        result = runner.invoke(app, ["destroy", "--force", "--keep-local", "--no-fallback"])

        assert result.exit_code == 1
        assert "resources may remain" in result.stdout
        tagged_cleaner.delete_resource.assert_not_called()

    def test_declined_confirmation_cancels(
        self, runner: CliRunner, credentials: Mock, engine: Mock, tagged_cleaner: Mock
    ) -> None:
        result = runner.invoke(app, ["destroy"], input="n\n")

        assert result.exit_code == 0
        assert "Cancelled" in result.stdout
        engine.destroy.assert_not_called()

    def test_bad_credentials_exit_1(self, runner: CliRunner) -> None:
        with patch("src.cli.main.validate_credentials", side_effect=PreconditionError("AWS credentials not configured")):
            result = runner.invoke(app, ["destroy", "--force"])

        assert result.exit_code == 1
        assert "AWS credentials not configured" in result.stdout

    def test_unexpected_error_exits_2(self, runner: CliRunner, credentials: Mock) -> None:
        with patch("src.cli.main._runner", side_effect=RuntimeError("boom")):
            result = runner.invoke(app, ["destroy", "--force"])

        assert result.exit_code == 2


class TestCleanupCommand:
    def test_dry_run_lists_without_deleting(
        self, runner: CliRunner, credentials: Mock, engine: Mock, tagged_cleaner: Mock
    ) -> None:
        result = runner.invoke(app, ["cleanup", "--dry-run"])

        assert result.exit_code == 0
        assert "vpc-1 (main)" in result.stdout
        tagged_cleaner.delete_resource.assert_not_called()
        engine.destroy.assert_not_called()

    def test_cleanup_skips_terraform(
        self, runner: CliRunner, credentials: Mock, engine: Mock, tagged_cleaner: Mock
    ) -> None:
        result = runner.invoke(app, ["cleanup", "--force"])

        assert result.exit_code == 0
        assert tagged_cleaner.delete_resource.call_count == 2
        engine.destroy.assert_not_called()


class TestHistoryCommand:
    def test_empty_history(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["history"])

        assert result.exit_code == 0
        assert "No teardown operations recorded" in result.stdout

    def test_lists_audited_operations(self, runner: CliRunner, isolated_env: Path) -> None:
        storage = AuditStorage(str(isolated_env / "audit"))
        storage.log_operation(
            TeardownOperation(
                operation_id="op_abc",
                project_tag="demo",
                region="eu-west-3",
                timestamp=datetime(2025, 11, 11, 15, 30),
                mode=OperationMode.EXECUTE,
                status=OperationStatus.PARTIAL,
                resolved_by="manual_tag_based_cleanup",
            ),
            [],
        )

        result = runner.invoke(app, ["history", "--since", "2025-11-01"])

        assert result.exit_code == 0
        assert "op_abc" in result.stdout
        assert "Total operations: 1" in result.stdout

    def test_invalid_date_exits_1(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["history", "--since", "11/01/2025"])

        assert result.exit_code == 1
        assert "Invalid date" in result.stdout


class TestDeployCommand:
    def test_dry_run(self, runner: CliRunner) -> None:
        with patch("src.cli.main.ProvisionWorkflow") as mock_workflow, patch("src.cli.main._runner"), patch(
            "src.cli.main._provisioner"
        ):
            mock_workflow.return_value.run.return_value = ProvisionReport(
                planned_only=True, steps=["preconditions", "bootstrap", "init", "validate", "plan"]
            )
            result = runner.invoke(app, ["deploy", "--dry-run"])

        assert result.exit_code == 0
        mock_workflow.return_value.run.assert_called_once_with(dry_run=True, skip_bootstrap=False)
        assert "no changes applied" in result.stdout

    def test_precondition_failure_exits_1(self, runner: CliRunner) -> None:
        with patch("src.cli.main.ProvisionWorkflow") as mock_workflow, patch("src.cli.main._runner"), patch(
            "src.cli.main._provisioner"
        ):
            mock_workflow.return_value.run.side_effect = PreconditionError("terraform not found on PATH")
            result = runner.invoke(app, ["deploy"])

        assert result.exit_code == 1
        assert "terraform not found" in result.stdout


class TestBucketCommands:
    def test_info_without_name_or_metadata_exits_1(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["bucket", "info"])

        assert result.exit_code == 1
        assert "No bucket name given" in result.stdout

    def test_info_reads_bucket_from_metadata(self, runner: CliRunner, isolated_env: Path) -> None:
        (isolated_env / "bucket-info.txt").write_text(BackendMetadata("demo-state", "us-west-2").to_text())
        provisioner = Mock()
        provisioner.bucket_exists.return_value = True
        provisioner.describe.return_value = {
            "bucket_name": "demo-state",
            "region": "us-west-2",
            "arn": "arn:aws:s3:::demo-state",
            "object_count": 2,
            "total_size": 4096,
            "tags": {"Project": "demo"},
        }

        with patch("src.cli.main._provisioner", return_value=provisioner) as factory:
            result = runner.invoke(app, ["bucket", "info"])

        assert result.exit_code == 0
        factory.assert_called_once_with("demo-state", "us-west-2")
        assert "4.0 KB" in result.stdout

    def test_destroy_requires_matching_name(self, runner: CliRunner) -> None:
        provisioner = Mock()
        provisioner.bucket_exists.return_value = True
        provisioner.describe.return_value = {"region": "eu-west-3", "object_count": 0, "total_size": 0}

        with patch("src.cli.main._provisioner", return_value=provisioner):
            result = runner.invoke(app, ["bucket", "destroy", "demo-state"], input="y\nwrong-name\n")

        assert result.exit_code == 1
        assert "does not match" in result.stdout
        provisioner.destroy.assert_not_called()


class TestStateCommands:
    def test_validate_invalid_exits_1(self, runner: CliRunner) -> None:
        manager = Mock()
        manager.validate.return_value = StateValidation(valid=False, reason="State file is too small")

        with patch("src.cli.main._state_manager", return_value=manager):
            result = runner.invoke(app, ["state", "validate", "--no-refresh"])

        assert result.exit_code == 1
        manager.validate.assert_called_once_with(refresh=False)

    def test_clean_wrong_confirmation_cancels(self, runner: CliRunner) -> None:
        manager = Mock()

        with patch("src.cli.main._state_manager", return_value=manager):
            result = runner.invoke(app, ["state", "clean"], input="nope\n")

        assert result.exit_code == 0
        assert "Cancelled" in result.stdout
        manager.clean.assert_not_called()


class TestKeypairExec:
    def test_propagates_exit_code(self, runner: CliRunner, tmp_path: Path) -> None:
        key = Mock()
        key.name = "pet-adoption-auto-discovery-abcd1234"
        key.path = tmp_path / "key.pem"

        with patch("src.cli.main.EphemeralKeyPair") as mock_key, patch("src.cli.main.subprocess.run") as mock_run:
            mock_key.return_value.__enter__.return_value = key
            mock_run.return_value.returncode = 3
            result = runner.invoke(app, ["keypair", "exec", "--", "ssh", "host"])

        assert result.exit_code == 3
        [command] = mock_run.call_args.args
        assert list(command) == ["ssh", "host"]
        assert mock_run.call_args.kwargs["env"]["TFLM_KEY_FILE"] == str(tmp_path / "key.pem")
        mock_key.return_value.__exit__.assert_called_once()
