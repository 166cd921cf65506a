"""Terraform CLI runner.

Thin wrapper around the ``terraform`` binary. Terraform owns the resource
graph and the state document; this module only builds argument lists, runs
them in the working directory and reports the exit status.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, Union

from ..errors import PreconditionError, TerraformError, ToolNotFoundError

logger = logging.getLogger(__name__)


@dataclass
class TerraformResult:
    """Result of one terraform invocation.

    Attributes:
        command: Subcommand that was run (e.g. "apply", "state list")
        returncode: Process exit status (-1 if the call timed out)
        stdout: Captured stdout ("" when output was streamed)
        stderr: Captured stderr ("" when output was streamed)
    """

    command: str
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class TerraformRunner:
    """Runs terraform subcommands in a working directory.

    Attributes:
        working_dir: Root module directory
        binary: Terraform executable name or path
        timeout: Per-call timeout in seconds (None for no limit)
    """

    def __init__(
        self,
        working_dir: Union[str, Path],
        binary: str = "terraform",
        timeout: Optional[int] = None,
    ) -> None:
        self.working_dir = Path(working_dir)
        self.binary = binary
        self.timeout = timeout

    def is_available(self) -> bool:
        return shutil.which(self.binary) is not None

    def check_preconditions(self) -> None:
        """Ensure the binary is installed and the working directory exists.

        Raises:
            ToolNotFoundError: If terraform is not on PATH
            PreconditionError: If the working directory is missing
        """
        if not self.is_available():
            raise ToolNotFoundError(self.binary)
        if not self.working_dir.is_dir():
            raise PreconditionError(f"Terraform directory not found: {self.working_dir}")

    def run(self, args: Sequence[str], stream: bool = False, check: bool = False) -> TerraformResult:
        """Run ``terraform <args>``.

        Args:
            args: Subcommand and arguments
            stream: Let output go straight to the terminal instead of capturing it
            check: Raise TerraformError on non-zero exit

        Returns:
            TerraformResult

        Raises:
            ToolNotFoundError: If terraform is not installed
            TerraformError: If check is True and terraform failed
        """
        command = " ".join(a for a in args if not a.startswith("-"))
        cmd = [self.binary, *args]
        logger.debug(f"Running: {' '.join(cmd)} (cwd={self.working_dir})")

        try:
            completed = subprocess.run(
                cmd,
                cwd=str(self.working_dir),
                capture_output=not stream,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise ToolNotFoundError(self.binary) from e
        except subprocess.TimeoutExpired:
            logger.error(f"terraform {command} timed out after {self.timeout}s")
            result = TerraformResult(command=command, returncode=-1, stderr=f"timed out after {self.timeout}s")
        else:
            result = TerraformResult(
                command=command,
                returncode=completed.returncode,
                stdout=completed.stdout or "",
                stderr=completed.stderr or "",
            )

        if not result.ok:
            logger.debug(f"terraform {command} exited {result.returncode}")
            if check:
                raise TerraformError(result)
        return result

    def init(
        self,
        backend_config: Optional[dict[str, str]] = None,
        reconfigure: bool = True,
        upgrade: bool = False,
        check: bool = True,
    ) -> TerraformResult:
        args = ["init", "-input=false"]
        if reconfigure:
            args.append("-reconfigure")
        if upgrade:
            args.append("-upgrade")
        for key, value in (backend_config or {}).items():
            if value:
                args.append(f"-backend-config={key}={value}")
        return self.run(args, stream=True, check=check)

    def validate(self, check: bool = True) -> TerraformResult:
        return self.run(["validate"], check=check)

    def plan(self, check: bool = True) -> TerraformResult:
        return self.run(["plan", "-input=false"], stream=True, check=check)

    def apply(self, check: bool = True) -> TerraformResult:
        return self.run(["apply", "-auto-approve", "-input=false"], stream=True, check=check)

    def destroy(self, check: bool = False) -> TerraformResult:
        return self.run(["destroy", "-auto-approve", "-input=false"], stream=True, check=check)

    def refresh(self, check: bool = False) -> TerraformResult:
        return self.run(["refresh", "-input=false"], stream=True, check=check)

    def output(self, check: bool = False) -> TerraformResult:
        return self.run(["output"], check=check)

    def state_list(self) -> list[str]:
        """Return resource addresses in state, or an empty list if listing fails."""
        result = self.run(["state", "list"])
        if not result.ok:
            return []
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    def version(self) -> Optional[str]:
        try:
            result = self.run(["version"])
        except ToolNotFoundError:
            return None
        if not result.ok or not result.stdout:
            return None
        return result.stdout.splitlines()[0].strip()


def backend_config(bucket: str, key: str, region: str, profile: Optional[str] = None) -> dict[str, str]:
    """Build the S3 backend ``-backend-config`` values."""
    config = {"bucket": bucket, "key": key, "region": region}
    if profile:
        config["profile"] = profile
    return config
