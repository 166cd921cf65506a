"""Terraform state file hygiene.

Backup, validation, cleanup and inspection of the local ``terraform.tfstate``.
The state document itself is never edited here: it is copied, measured,
refreshed through Terraform, or removed after a backup.
"""

from __future__ import annotations

import logging
import shutil
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from ..errors import StateFileError, ToolNotFoundError
from ..models.state_report import StateInfo, StateValidation
from ..terraform.runner import TerraformRunner

logger = logging.getLogger(__name__)

STATE_FILE = "terraform.tfstate"
STATE_BACKUP_FILE = "terraform.tfstate.backup"
LOCK_FILE = ".terraform.lock.hcl"
PLUGIN_DIR = ".terraform"

# Anything smaller cannot hold even an empty state document's envelope
MIN_STATE_BYTES = 100

BACKUP_TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S"


class StateManager:
    """Utilities for the local Terraform state file.

    Attributes:
        terraform_dir: Directory containing terraform.tfstate
        backup_root: Root directory for timestamped backups
        runner: TerraformRunner used for refresh and state listing
    """

    def __init__(
        self,
        terraform_dir: Union[str, Path],
        backup_root: Union[str, Path],
        runner: Optional[TerraformRunner] = None,
    ) -> None:
        self.terraform_dir = Path(terraform_dir)
        self.backup_root = Path(backup_root)
        self.runner = runner or TerraformRunner(self.terraform_dir)

    @property
    def state_path(self) -> Path:
        return self.terraform_dir / STATE_FILE

    def backup(self, now: Optional[datetime] = None) -> Optional[Path]:
        """Copy the state file (and its .backup sibling) to a timestamped directory.

        Args:
            now: Timestamp to use for the directory name (defaults to current time)

        Returns:
            Backup directory, or None if there was no state file to back up
        """
        if not self.state_path.is_file():
            logger.warning("No state file found to backup")
            return None

        stamp = (now or datetime.now()).strftime(BACKUP_TIMESTAMP_FORMAT)
        backup_dir = self.backup_root / stamp
        suffix = 1
        while backup_dir.exists():
            backup_dir = self.backup_root / f"{stamp}-{suffix}"
            suffix += 1
        backup_dir.mkdir(parents=True)

        shutil.copy2(self.state_path, backup_dir / STATE_FILE)
        secondary = self.terraform_dir / STATE_BACKUP_FILE
        if secondary.is_file():
            shutil.copy2(secondary, backup_dir / STATE_BACKUP_FILE)

        logger.info(f"State backed up to: {backup_dir}")
        return backup_dir

    def validate(self, refresh: bool = True) -> StateValidation:
        """Check that the state file exists, is plausibly sized and still refreshes.

        Never raises for an invalid state; the reason is reported instead.

        Args:
            refresh: Run ``terraform refresh`` as the final check

        Returns:
            StateValidation
        """
        if not self.state_path.is_file():
            return StateValidation(valid=False, reason="No state file found", path=self.state_path)

        size = self.state_path.stat().st_size
        if size < MIN_STATE_BYTES:
            return StateValidation(
                valid=False,
                reason=f"State file appears corrupted (too small: {size} bytes)",
                size_bytes=size,
                path=self.state_path,
            )

        if refresh:
            try:
                result = self.runner.refresh()
            except ToolNotFoundError as e:
                return StateValidation(valid=False, reason=str(e), size_bytes=size, path=self.state_path)
            if not result.ok:
                return StateValidation(
                    valid=False,
                    reason="State refresh failed (state is stale or invalid)",
                    size_bytes=size,
                    path=self.state_path,
                )

        return StateValidation(valid=True, size_bytes=size, path=self.state_path)

    def clean(self, confirmed: bool = False) -> Optional[Path]:
        """Back up and then remove state, lock file and plugin cache.

        Args:
            confirmed: Must be True; cleaning discards the local state record

        Returns:
            Backup directory (None when there was no state to back up)

        Raises:
            StateFileError: If not confirmed
        """
        if not confirmed:
            raise StateFileError("Cleaning state requires explicit confirmation")

        backup_dir = self.backup()

        for name in (STATE_FILE, STATE_BACKUP_FILE, LOCK_FILE):
            path = self.terraform_dir / name
            if path.is_file():
                path.unlink()
                logger.debug(f"Removed {path}")

        plugin_dir = self.terraform_dir / PLUGIN_DIR
        if plugin_dir.is_dir():
            shutil.rmtree(plugin_dir)
            logger.debug(f"Removed {plugin_dir}")

        logger.info("State cleaned. Run 'terraform init' to reinitialize.")
        return backup_dir

    def info(self) -> StateInfo:
        if not self.state_path.is_file():
            return StateInfo(exists=False, path=self.state_path)

        stat = self.state_path.stat()
        try:
            resources = self.runner.state_list()
        except ToolNotFoundError:
            logger.warning("terraform not installed, resource list unavailable")
            resources = []

        return StateInfo(
            exists=True,
            path=self.state_path,
            size_bytes=stat.st_size,
            modified_at=datetime.fromtimestamp(stat.st_mtime),
            resources=resources,
        )

    def import_hints(self, addresses: dict[str, str], initialize: bool = True) -> list[str]:
        """Build ``terraform import`` commands for resources that exist outside state.

        Importing needs real resource IDs from the console, so this only
        prepares the working directory and returns command templates.

        Args:
            addresses: Terraform address -> placeholder ID
            initialize: Run ``terraform init -upgrade`` first

        Returns:
            Import command strings
        """
        if initialize:
            self.runner.init(reconfigure=False, upgrade=True, check=True)
        return [f"terraform import {address} {placeholder}" for address, placeholder in addresses.items()]
