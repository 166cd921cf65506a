"""Configuration loading for the CLI.

Settings are resolved in increasing priority:

1. Built-in defaults
2. YAML config file (``$TFLM_CONFIG``, ``./tflm.yaml`` or ``~/.tflm/config.yaml``)
3. The ``environments.<name>`` block of that file for the selected environment
4. ``TFLM_*`` environment variables
5. CLI options (applied by the caller after ``load``)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Optional

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "TFLM_CONFIG"
DEFAULT_CONFIG_NAMES = ("tflm.yaml", "tflm.yml")

# env var -> (field name, type)
ENV_OVERRIDES: dict[str, tuple[str, type]] = {
    "TFLM_PROJECT_TAG": ("project_tag", str),
    "TFLM_BUCKET_NAME": ("bucket_name", str),
    "TFLM_REGION": ("region", str),
    "TFLM_PROFILE": ("aws_profile", str),
    "TFLM_ENVIRONMENT": ("environment", str),
    "TFLM_TERRAFORM_DIR": ("terraform_dir", str),
    "TFLM_LOG_LEVEL": ("log_level", str),
    "TFLM_AUDIT_DIR": ("audit_dir", str),
}


@dataclass
class Config:
    """Resolved tool configuration.

    Attributes:
        project_tag: Value of the ``Project`` tag carried by every provisioned resource
        bucket_name: Remote-state S3 bucket name
        region: AWS region for the stack and the state bucket
        aws_profile: AWS profile (None defers to the SDK credential chain)
        environment: Selected environment name (used for overrides and bucket tags)
        terraform_dir: Directory holding the root Terraform module
        state_key: Object key of the state document in the bucket
        metadata_file: Path of the KEY=value backend metadata file
        backup_dir: Root directory for timestamped state backups
        audit_dir: Directory for cleanup audit logs (None = ~/.tflm/audit-logs)
        log_level: Default log level
        log_file: Optional plain-text log file
        retry_attempts: Attempts for transient bucket configuration calls
        retry_delay: Seconds between those attempts
        bucket_settle_seconds: Wait after bucket creation for eventual consistency
        terraform_timeout: Timeout in seconds for a single terraform call (None = no limit)
        max_recovery_attempts: State recovery attempts before tag-based cleanup
        import_hints: Terraform address -> id placeholder shown by ``state import-hints``
    """

    project_tag: str = "pet-adoption-auto-discovery"
    bucket_name: Optional[str] = None
    region: str = "eu-west-3"
    aws_profile: Optional[str] = None
    environment: str = "shared"
    terraform_dir: str = "vault-jenkins"
    state_key: str = "terraform.tfstate"
    metadata_file: str = "bucket-info.txt"
    backup_dir: str = "state-backups"
    audit_dir: Optional[str] = None
    log_level: str = "INFO"
    log_file: Optional[str] = None
    retry_attempts: int = 3
    retry_delay: float = 5.0
    bucket_settle_seconds: float = 10.0
    terraform_timeout: Optional[int] = None
    max_recovery_attempts: int = 1
    import_hints: dict[str, str] = field(
        default_factory=lambda: {
            "aws_vpc.vpc": "vpc-XXXXXXXXX",
            "aws_instance.jenkins-server": "i-XXXXXXXXX",
            "aws_instance.vault": "i-XXXXXXXXX",
        }
    )

    @property
    def resolved_bucket_name(self) -> str:
        """Bucket name, derived from the project tag and environment when not set explicitly."""
        if self.bucket_name:
            return self.bucket_name
        return f"{self.project_tag}-{self.environment}-tfstate".lower()

    @classmethod
    def load(cls, config_path: Optional[str] = None, environment: Optional[str] = None) -> "Config":
        """Load configuration from file and environment.

        Args:
            config_path: Explicit config file (overrides discovery)
            environment: Environment whose override block should be applied

        Returns:
            Resolved Config

        Raises:
            ValueError: If the config file is not a mapping or names an unknown environment
        """
        config = cls()

        path = cls._find_config_file(config_path)
        data: dict[str, Any] = {}
        if path is not None:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
            if not isinstance(data, dict):
                raise ValueError(f"Config file {path} must contain a mapping")
            logger.debug(f"Loaded config from {path}")

        environments = data.pop("environments", None) or {}
        config._apply(data)

        env_name = environment or os.environ.get("TFLM_ENVIRONMENT") or data.get("environment")
        if env_name:
            if environments and env_name not in environments:
                raise ValueError(f"Unknown environment '{env_name}' (configured: {', '.join(sorted(environments))})")
            config.environment = env_name
            config._apply(environments.get(env_name) or {})

        for var, (name, typ) in ENV_OVERRIDES.items():
            value = os.environ.get(var)
            if value:
                setattr(config, name, typ(value))

        # An explicit CLI environment always wins over the file and env vars
        if environment:
            config.environment = environment

        return config

    @staticmethod
    def _find_config_file(config_path: Optional[str]) -> Optional[Path]:
        if config_path:
            path = Path(config_path)
            if not path.exists():
                raise ValueError(f"Config file not found: {config_path}")
            return path

        env_path = os.environ.get(CONFIG_ENV_VAR)
        if env_path:
            path = Path(env_path)
            if not path.exists():
                raise ValueError(f"Config file not found: {env_path} (from {CONFIG_ENV_VAR})")
            return path

        for name in DEFAULT_CONFIG_NAMES:
            candidate = Path.cwd() / name
            if candidate.exists():
                return candidate

        home_config = Path.home() / ".tflm" / "config.yaml"
        if home_config.exists():
            return home_config

        return None

    def _apply(self, values: dict[str, Any]) -> None:
        known = {f.name for f in fields(self)}
        for key, value in values.items():
            if key not in known:
                logger.warning(f"Ignoring unknown config key: {key}")
                continue
            setattr(self, key, value)
