"""Main CLI entry point using Typer."""

import logging
import os
import subprocess
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from ..aws.credentials import validate_credentials
from ..aws.keypair import EphemeralKeyPair
from ..bootstrap.bucket import StateBucketProvisioner
from ..bootstrap.metadata import MetadataStore
from ..errors import LifecycleError, PreconditionError
from ..models.state_report import human_size
from ..models.teardown_operation import OperationStatus, TeardownOperation, TeardownState
from ..provision.workflow import ProvisionWorkflow
from ..state.manager import StateManager
from ..teardown.audit import AuditStorage
from ..teardown.cleaner import CleanupReport, TagBasedCleaner
from ..teardown.deleter import ResourceDeleter
from ..teardown.discovery import ResourceDiscovery
from ..teardown.local import LocalArtifactCleaner
from ..teardown.workflow import TeardownWorkflow
from ..terraform.runner import TerraformRunner, backend_config
from ..utils.logging import setup_logging
from .config import Config

logger = logging.getLogger(__name__)

# Create Typer app
app = typer.Typer(
    name="tflm",
    help="Terraform Lifecycle Manager - bootstrap, deploy and tear down a Terraform-managed AWS stack",
    add_completion=False,
)

# Create Rich console for output
console = Console()

# Global config
config: Optional[Config] = None


@app.callback()
def main(
    profile: Optional[str] = typer.Option(None, "--profile", "-p", help="AWS profile name"),
    region: Optional[str] = typer.Option(None, "--region", "-r", help="AWS region"),
    env: Optional[str] = typer.Option(None, "--env", "-e", help="Environment override block from the config file"),
    config_file: Optional[str] = typer.Option(
        None, "--config", help="Config file (default: $TFLM_CONFIG, ./tflm.yaml or ~/.tflm/config.yaml)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress output except errors"),
    no_color: bool = typer.Option(False, "--no-color", help="Disable colored output"),
):
    """Terraform Lifecycle Manager - bootstrap, deploy and tear down a Terraform-managed AWS stack."""
    global config

    # Load configuration
    try:
        config = Config.load(config_path=config_file, environment=env)
    except (ValueError, OSError) as e:
        console.print(f"✗ Invalid configuration: {e}", style="bold red")
        raise typer.Exit(code=1)

    # Override with CLI options
    if profile:
        config.aws_profile = profile
    if region:
        config.region = region

    # Setup logging
    log_level = "ERROR" if quiet else ("DEBUG" if verbose else config.log_level)
    setup_logging(level=log_level, verbose=verbose, log_file=config.log_file)

    # Disable colors if requested
    if no_color:
        console.no_color = True


@app.command()
def version():
    """Show version information."""
    import boto3

    from .. import __version__

    console.print(f"terraform-lifecycle-manager version {__version__}")
    console.print(f"Python {sys.version.split()[0]}")
    console.print(f"boto3 {boto3.__version__}")
    terraform_version = TerraformRunner(Path.cwd()).version()
    console.print(terraform_version or "terraform not found", style=None if terraform_version else "yellow")


# ----------------------------------------------------------------------
# Component factories (module level so tests can patch them)
# ----------------------------------------------------------------------


def _runner() -> TerraformRunner:
    return TerraformRunner(config.terraform_dir, timeout=config.terraform_timeout)


def _metadata_store() -> MetadataStore:
    return MetadataStore(config.metadata_file)


def _provisioner(bucket_name: str, region: Optional[str] = None) -> StateBucketProvisioner:
    return StateBucketProvisioner(
        bucket_name=bucket_name,
        region=region or config.region,
        aws_profile=config.aws_profile,
        project_tag=config.project_tag,
        environment=config.environment,
        attempts=config.retry_attempts,
        versioning_delay=config.retry_delay,
        settle_seconds=config.bucket_settle_seconds,
    )


def _state_manager(runner: Optional[TerraformRunner] = None) -> StateManager:
    return StateManager(config.terraform_dir, config.backup_dir, runner=runner or _runner())


def _cleaner() -> TagBasedCleaner:
    discovery = ResourceDiscovery(config.project_tag, config.region, aws_profile=config.aws_profile)
    deleter = ResourceDeleter(aws_profile=config.aws_profile, max_retries=config.retry_attempts)
    return TagBasedCleaner(discovery, deleter)


def _audit_storage() -> AuditStorage:
    return AuditStorage(config.audit_dir)


def _backend_config() -> dict:
    """Backend settings from the metadata file, falling back to config."""
    metadata = _metadata_store().read()
    if metadata is not None:
        return backend_config(metadata.bucket_name, config.state_key, metadata.region, metadata.profile)
    return backend_config(config.resolved_bucket_name, config.state_key, config.region, config.aws_profile)


def _resolve_bucket_name(name: Optional[str]) -> tuple[str, Optional[str]]:
    """Bucket name and region from the argument, else from the metadata file."""
    if name:
        return name, None
    metadata = _metadata_store().read()
    if metadata is None:
        console.print("✗ No bucket name given and no metadata file found", style="bold red")
        console.print(f"  Pass a bucket name or run from the directory containing {config.metadata_file}")
        raise typer.Exit(code=1)
    return metadata.bucket_name, metadata.region


def _require_credentials() -> dict:
    console.print("🔐 Validating AWS credentials...")
    identity = validate_credentials(config.aws_profile, config.region)
    console.print(f"✓ Authenticated for account: {identity['account_id']}\n", style="green")
    return identity


# ----------------------------------------------------------------------
# Provisioning
# ----------------------------------------------------------------------


@app.command()
def bootstrap(
    bucket: Optional[str] = typer.Option(None, "--bucket", "-b", help="State bucket name (default: from config)"),
):
    """Create and configure the remote-state bucket and write the metadata file.

    Safe to re-run: an existing bucket is reused and only its configuration
    is re-applied.
    """
    try:
        _require_credentials()

        bucket_name = bucket or config.resolved_bucket_name
        provisioner = _provisioner(bucket_name)
        result = provisioner.provision(metadata_store=_metadata_store())

        if result.created:
            console.print(f"✓ Created bucket [bold]{bucket_name}[/bold] in {config.region}", style="green")
        else:
            console.print(f"✓ Bucket [bold]{bucket_name}[/bold] already exists", style="green")
        console.print("✓ Versioning enabled", style="green")
        if not result.public_access_blocked:
            console.print("⚠ Public access block could not be applied", style="yellow")
        if not result.tagged:
            console.print("⚠ Bucket tags could not be applied", style="yellow")
        if result.metadata_path:
            console.print(f"✓ Backend metadata written to {result.metadata_path}", style="green")

    except typer.Exit:
        raise
    except LifecycleError as e:
        console.print(f"✗ Bootstrap failed: {e}", style="bold red")
        raise typer.Exit(code=1)
    except Exception as e:
        console.print(f"✗ Error during bootstrap: {e}", style="bold red")
        logger.exception("Error in bootstrap command")
        raise typer.Exit(code=2)


@app.command()
def deploy(
    dry_run: bool = typer.Option(False, "--dry-run", help="Run terraform plan instead of apply"),
    skip_bootstrap: bool = typer.Option(
        False, "--skip-bootstrap", help="Reuse the bucket recorded in the metadata file"
    ),
):
    """Bootstrap the state bucket and apply the Terraform stack."""
    try:
        workflow = ProvisionWorkflow(
            runner=_runner(),
            provisioner=_provisioner(config.resolved_bucket_name),
            metadata_store=_metadata_store(),
            state_key=config.state_key,
            aws_profile=config.aws_profile,
            credential_check=validate_credentials,
        )
        report = workflow.run(dry_run=dry_run, skip_bootstrap=skip_bootstrap)

        console.print(f"\n✓ Completed steps: {', '.join(report.steps)}", style="green")
        if report.planned_only:
            console.print("Dry run: no changes applied", style="cyan")
        elif report.outputs:
            console.print("\n[bold]Outputs:[/bold]")
            console.print(report.outputs, markup=False)

    except typer.Exit:
        raise
    except PreconditionError as e:
        console.print(f"✗ {e}", style="bold red")
        raise typer.Exit(code=1)
    except LifecycleError as e:
        console.print(f"✗ Deployment failed: {e}", style="bold red")
        console.print("  Resources created before the failure were left in place", style="yellow")
        raise typer.Exit(code=1)
    except Exception as e:
        console.print(f"✗ Error during deployment: {e}", style="bold red")
        logger.exception("Error in deploy command")
        raise typer.Exit(code=2)


# ----------------------------------------------------------------------
# Teardown
# ----------------------------------------------------------------------


def _print_cleanup_report(report: Optional[CleanupReport], title: str) -> None:
    if report is None or not report.records:
        console.print("No tagged resources found.", style="yellow")
        return

    table = Table(show_header=True, title=title)
    table.add_column("#", justify="right")
    table.add_column("Type", style="cyan")
    table.add_column("Resource")
    table.add_column("Status")

    styles = {"succeeded": "green", "failed": "red", "skipped": "yellow"}
    names = {r.key: r.display_name for r in report.resources}
    for record in report.records:
        key = f"{record.resource_type}|{record.resource_id}"
        status = record.status.value
        table.add_row(
            str(record.deletion_order or ""),
            record.resource_type,
            names.get(key, record.resource_id),
            f"[{styles.get(status, 'white')}]{status}[/]",
        )
    console.print(table)


def _print_operation(operation: TeardownOperation, report: Optional[CleanupReport] = None) -> None:
    states = [operation.transitions[0][0]] + [t[1] for t in operation.transitions] if operation.transitions else []
    console.print(f"\n[bold]Operation:[/bold] {operation.operation_id}")
    console.print(f"  States: {' → '.join(states)}")
    console.print(f"  Resolved by: {operation.resolved_by or '(unresolved)'}")
    if operation.total_resources:
        console.print(
            f"  Resources: {operation.succeeded_count} deleted, "
            f"{operation.failed_count} failed, {operation.skipped_count} skipped"
        )
    if operation.duration_seconds is not None:
        console.print(f"  Duration: {operation.duration_seconds:.1f}s")

    if report is not None and report.failures:
        console.print("\n⚠ Some resources could not be deleted:", style="yellow")
        for record in report.failures:
            console.print(f"  • {record.resource_type} {record.resource_id}: {record.error_message}", style="yellow")


@app.command()
def destroy(
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation prompt"),
    skip_terraform: bool = typer.Option(False, "--skip-terraform", help="Go straight to tag-based cleanup"),
    no_fallback: bool = typer.Option(False, "--no-fallback", help="Never fall back to tag-based cleanup"),
    keep_local: bool = typer.Option(False, "--keep-local", help="Keep key files and local Terraform artifacts"),
):
    """Destroy the stack, falling back to tag-based cleanup if Terraform cannot.

    Runs terraform destroy; on failure backs up and refreshes the state and
    retries, then deletes every resource tagged Project=<project_tag>.
    Per-resource failures are listed but do not fail the command.
    """
    try:
        _require_credentials()

        console.print(
            f"⚠️  This will destroy all resources tagged Project={config.project_tag} in {config.region}",
            style="bold yellow",
        )
        if not force:
            if not typer.confirm("Continue?", default=False):
                console.print("Cancelled.")
                raise typer.Exit(code=0)

        runner = _runner()
        local_cleaner = None
        if not keep_local:
            local_cleaner = LocalArtifactCleaner([Path.cwd()], recursive_roots=[Path(config.terraform_dir)])

        workflow = TeardownWorkflow(
            engine=runner,
            cleaner=_cleaner(),
            project_tag=config.project_tag,
            region=config.region,
            aws_profile=config.aws_profile,
            state_manager=_state_manager(runner),
            audit_storage=_audit_storage(),
            local_cleaner=local_cleaner,
            backend_config=_backend_config(),
            max_recovery_attempts=config.max_recovery_attempts,
            fallback_enabled=not no_fallback,
        )
        start = TeardownState.MANUAL_TAG_BASED_CLEANUP if skip_terraform else TeardownState.NORMAL_DESTROY
        operation = workflow.run(start_state=start)

        if workflow.report is not None:
            _print_cleanup_report(workflow.report, "Tag-based cleanup")
        _print_operation(operation, workflow.report)

        if operation.resolved_by is None:
            console.print("\n✗ Teardown did not complete; resources may remain", style="bold red")
            raise typer.Exit(code=1)

        if operation.status == OperationStatus.COMPLETED:
            console.print("\n✓ Teardown complete", style="green")
        else:
            console.print("\n⚠ Teardown finished with failures; check the AWS console", style="yellow")

    except typer.Exit:
        raise
    except PreconditionError as e:
        console.print(f"✗ {e}", style="bold red")
        raise typer.Exit(code=1)
    except Exception as e:
        console.print(f"✗ Error during teardown: {e}", style="bold red")
        logger.exception("Error in destroy command")
        raise typer.Exit(code=2)


@app.command()
def cleanup(
    dry_run: bool = typer.Option(False, "--dry-run", help="List what would be deleted"),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation prompt"),
):
    """Delete every resource tagged Project=<project_tag>, ignoring Terraform state."""
    try:
        _require_credentials()

        workflow = TeardownWorkflow(
            engine=_runner(),
            cleaner=_cleaner(),
            project_tag=config.project_tag,
            region=config.region,
            aws_profile=config.aws_profile,
            audit_storage=_audit_storage(),
        )

        if dry_run:
            workflow.preview()
            _print_cleanup_report(workflow.report, "Resources that would be deleted")
            return

        if not force:
            if not typer.confirm(f"Delete all resources tagged Project={config.project_tag}?", default=False):
                console.print("Cancelled.")
                raise typer.Exit(code=0)

        operation = workflow.run(start_state=TeardownState.MANUAL_TAG_BASED_CLEANUP)
        _print_cleanup_report(workflow.report, "Tag-based cleanup")
        _print_operation(operation, workflow.report)

        if operation.resolved_by is None:
            console.print("\n✗ Cleanup aborted", style="bold red")
            raise typer.Exit(code=1)

    except typer.Exit:
        raise
    except PreconditionError as e:
        console.print(f"✗ {e}", style="bold red")
        raise typer.Exit(code=1)
    except Exception as e:
        console.print(f"✗ Error during cleanup: {e}", style="bold red")
        logger.exception("Error in cleanup command")
        raise typer.Exit(code=2)


@app.command()
def history(
    since: Optional[str] = typer.Option(None, "--since", help="Only operations on or after this date (YYYY-MM-DD)"),
):
    """List audited teardown operations."""
    try:
        since_dt = None
        if since:
            try:
                since_dt = datetime.strptime(since, "%Y-%m-%d")
            except ValueError:
                console.print(f"✗ Invalid date '{since}'. Use YYYY-MM-DD", style="bold red")
                raise typer.Exit(code=1)

        operations = _audit_storage().query_operations(since=since_dt)
        if not operations:
            console.print("No teardown operations recorded.", style="yellow")
            return

        table = Table(show_header=True, title="Teardown History")
        table.add_column("Operation", style="cyan")
        table.add_column("Started", style="green")
        table.add_column("Project")
        table.add_column("Mode")
        table.add_column("Status")
        table.add_column("Resolved by")
        table.add_column("Deleted", justify="right")
        table.add_column("Failed", justify="right")

        for entry in operations:
            op = entry["operation"]
            table.add_row(
                op["operation_id"],
                op["timestamp"].replace("T", " ")[:16],
                op["project_tag"],
                op["mode"],
                op["status"],
                op.get("resolved_by") or "",
                str(op.get("succeeded_count", 0)),
                str(op.get("failed_count", 0)),
            )

        console.print(table)
        console.print(f"\nTotal operations: {len(operations)}")

    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"✗ Error reading audit logs: {e}", style="bold red")
        raise typer.Exit(code=2)


# ----------------------------------------------------------------------
# State bucket commands
# ----------------------------------------------------------------------

bucket_app = typer.Typer(help="Remote-state bucket commands")
app.add_typer(bucket_app, name="bucket")


@bucket_app.command("info")
def bucket_info(
    name: Optional[str] = typer.Argument(None, help="Bucket name (default: from metadata file)"),
):
    """Show region, object count, size and tags of the state bucket."""
    try:
        bucket_name, region = _resolve_bucket_name(name)
        provisioner = _provisioner(bucket_name, region)
        if not provisioner.bucket_exists():
            console.print(f"✗ Bucket '{bucket_name}' does not exist", style="bold red")
            raise typer.Exit(code=1)

        details = provisioner.describe()
        console.print(f"\n[bold]Bucket: {details['bucket_name']}[/bold]")
        console.print(f"Region: {details['region']}")
        console.print(f"ARN: {details['arn']}")
        console.print(f"Objects: {details['object_count']}")
        console.print(f"Total size: {human_size(details['total_size'])}")
        if details["tags"]:
            console.print("Tags:")
            for key, value in details["tags"].items():
                console.print(f"  {key}={value}")

    except typer.Exit:
        raise
    except LifecycleError as e:
        console.print(f"✗ {e}", style="bold red")
        raise typer.Exit(code=1)
    except Exception as e:
        console.print(f"✗ Error describing bucket: {e}", style="bold red")
        raise typer.Exit(code=2)


@bucket_app.command("destroy")
def bucket_destroy(
    name: Optional[str] = typer.Argument(None, help="Bucket name (default: from metadata file)"),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation prompts"),
    backup_dir: Optional[Path] = typer.Option(
        None, "--backup-dir", help="Download all objects here before deleting"
    ),
):
    """Empty and delete the remote-state bucket.

    WARNING: This permanently deletes every version of the Terraform state.
    """
    try:
        bucket_name, region = _resolve_bucket_name(name)
        provisioner = _provisioner(bucket_name, region)

        if not provisioner.bucket_exists():
            console.print(f"✗ Bucket '{bucket_name}' does not exist or you don't have access to it", style="bold red")
            raise typer.Exit(code=1)

        details = provisioner.describe()
        console.print(f"\n🪣 Bucket: [bold]{bucket_name}[/bold]")
        console.print(f"   Region: {details['region']}")
        console.print(f"   Objects: {details['object_count']} ({human_size(details['total_size'])})")
        console.print("\n⚠️  This will permanently delete the bucket and ALL its contents!", style="bold yellow")

        if not force:
            if not typer.confirm("Are you sure?", default=False):
                console.print("Cancelled.")
                raise typer.Exit(code=0)
            typed = typer.prompt(f"Type the bucket name '{bucket_name}' to confirm")
            if typed != bucket_name:
                console.print("✗ Bucket name does not match. Cancelled.", style="bold red")
                raise typer.Exit(code=1)

        if backup_dir is None and not force and details["object_count"]:
            if typer.confirm("Download a backup of the bucket contents first?", default=True):
                backup_dir = Path(f"{bucket_name}-backup-{datetime.now().strftime('%Y%m%d-%H%M%S')}")

        provisioner.destroy(backup_dir=backup_dir, metadata_store=_metadata_store())

        if backup_dir is not None:
            console.print(f"✓ Objects backed up to {backup_dir}", style="green")
        console.print(f"✓ Bucket '[bold]{bucket_name}[/bold]' deleted", style="green")

    except typer.Exit:
        raise
    except LifecycleError as e:
        console.print(f"✗ {e}", style="bold red")
        raise typer.Exit(code=1)
    except Exception as e:
        console.print(f"✗ Error deleting bucket: {e}", style="bold red")
        logger.exception("Error in bucket destroy command")
        raise typer.Exit(code=2)


# ----------------------------------------------------------------------
# State commands
# ----------------------------------------------------------------------

state_app = typer.Typer(help="Local Terraform state commands")
app.add_typer(state_app, name="state")


@state_app.command("backup")
def state_backup():
    """Copy the state file into a timestamped backup directory."""
    try:
        backup = _state_manager().backup()
        if backup is None:
            console.print("⚠ No state file found to backup", style="yellow")
            return
        console.print(f"✓ State backed up to: {backup}", style="green")
    except Exception as e:
        console.print(f"✗ Error backing up state: {e}", style="bold red")
        raise typer.Exit(code=2)


@state_app.command("validate")
def state_validate(
    no_refresh: bool = typer.Option(False, "--no-refresh", help="Skip terraform refresh"),
):
    """Check that the state file exists, is not truncated and still refreshes."""
    try:
        result = _state_manager().validate(refresh=not no_refresh)
        if result.valid:
            console.print(f"✓ State is valid ({result.size_bytes} bytes)", style="green")
            return
        console.print(f"✗ {result.reason}", style="bold red")
        raise typer.Exit(code=1)
    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"✗ Error validating state: {e}", style="bold red")
        raise typer.Exit(code=2)


@state_app.command("info")
def state_info():
    """Show size, modification time and resources of the state file."""
    try:
        info = _state_manager().info()
        if not info.exists:
            console.print(f"No state file at {info.path}", style="yellow")
            return

        console.print(f"\n[bold]State file:[/bold] {info.path}")
        console.print(f"Size: {info.human_size}")
        console.print(f"Last modified: {info.modified_at.strftime('%Y-%m-%d %H:%M:%S')}")
        console.print(f"Resources in state: {info.resource_count}")
        for address in info.resources:
            console.print(f"  {address}")

    except Exception as e:
        console.print(f"✗ Error reading state: {e}", style="bold red")
        raise typer.Exit(code=2)


@state_app.command("import-hints")
def state_import_hints(
    no_init: bool = typer.Option(False, "--no-init", help="Skip terraform init -upgrade"),
):
    """Print terraform import commands for resources missing from state."""
    try:
        commands = _state_manager().import_hints(config.import_hints, initialize=not no_init)
        console.print("Find the real IDs in the AWS console, then run:\n")
        for command in commands:
            console.print(f"  {command}", markup=False)
    except LifecycleError as e:
        console.print(f"✗ {e}", style="bold red")
        raise typer.Exit(code=1)
    except Exception as e:
        console.print(f"✗ Error preparing imports: {e}", style="bold red")
        raise typer.Exit(code=2)


@state_app.command("clean")
def state_clean(
    force: bool = typer.Option(False, "--force", "-f", help="Skip the typed confirmation"),
):
    """Back up, then delete local state, lock file and .terraform directory."""
    try:
        console.print("⚠️  This removes local Terraform state. Cloud resources are left untouched.", style="bold yellow")
        if not force:
            typed = typer.prompt("Type 'clean' to confirm")
            if typed != "clean":
                console.print("Cancelled.")
                raise typer.Exit(code=0)

        backup = _state_manager().clean(confirmed=True)
        if backup is not None:
            console.print(f"✓ State backed up to: {backup}", style="green")
        console.print("✓ State cleaned. Run 'terraform init' to reinitialize.", style="green")

    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"✗ Error cleaning state: {e}", style="bold red")
        logger.exception("Error in state clean command")
        raise typer.Exit(code=2)


# ----------------------------------------------------------------------
# Key pair commands
# ----------------------------------------------------------------------

keypair_app = typer.Typer(help="Temporary EC2 key pair commands")
app.add_typer(keypair_app, name="keypair")


@keypair_app.command(
    "exec",
    context_settings={"allow_extra_args": True, "ignore_unknown_options": True},
)
def keypair_exec(
    command: List[str] = typer.Argument(..., help="Command to run while the key pair exists"),
    key_dir: Optional[Path] = typer.Option(None, "--key-dir", help="Directory for the private key file"),
):
    """Run a command with a temporary EC2 key pair.

    The key name and private key path are exported as TFLM_KEY_NAME and
    TFLM_KEY_FILE. The key pair and the file are deleted when the command exits.

    Examples:
        tflm keypair exec -- ssh -i '$TFLM_KEY_FILE' ec2-user@host
    """
    try:
        tags = {"Project": config.project_tag, "ManagedBy": "tflm"}
        with EphemeralKeyPair(
            config.project_tag,
            region=config.region,
            aws_profile=config.aws_profile,
            directory=key_dir,
            tags=tags,
        ) as key:
            console.print(f"🔑 Temporary key pair: {key.name}")
            env = dict(os.environ, TFLM_KEY_NAME=key.name, TFLM_KEY_FILE=str(key.path))
            completed = subprocess.run(command, env=env)

        if completed.returncode != 0:
            raise typer.Exit(code=completed.returncode)

    except typer.Exit:
        raise
    except FileNotFoundError as e:
        console.print(f"✗ Command not found: {e}", style="bold red")
        raise typer.Exit(code=1)
    except Exception as e:
        console.print(f"✗ Error running command with key pair: {e}", style="bold red")
        logger.exception("Error in keypair exec command")
        raise typer.Exit(code=2)


def cli_main():
    """Entry point for console script."""
    app()


if __name__ == "__main__":
    cli_main()
