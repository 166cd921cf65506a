"""Backend metadata model.

The KEY=value file written after the state bucket is bootstrapped so later
commands (and shell scripts that ``source`` it) know which backend to use.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

HEADER = "# Terraform backend info"


@dataclass
class BackendMetadata:
    """Remote-state backend settings.

    Attributes:
        bucket_name: S3 bucket holding the state document
        region: Bucket region
        profile: AWS profile used to create it (None when the default chain was used)
        project_tag: Project tag applied to the bucket and stack
    """

    bucket_name: str
    region: str
    profile: Optional[str] = None
    project_tag: Optional[str] = None

    def to_text(self) -> str:
        """Render as a sourceable KEY=value document."""
        lines = [
            HEADER,
            f"BUCKET_NAME={self.bucket_name}",
            f"AWS_REGION={self.region}",
            f"AWS_PROFILE={self.profile or ''}",
            f"PROJECT_TAG={self.project_tag or ''}",
        ]
        return "\n".join(lines) + "\n"

    @classmethod
    def from_text(cls, text: str) -> "BackendMetadata":
        """Parse a KEY=value document.

        Blank lines and ``#`` comments are ignored. Values may be quoted.

        Raises:
            ValueError: If BUCKET_NAME is missing or empty
        """
        values: dict[str, str] = {}
        for raw_line in text.splitlines():
            line = raw_line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, value = line.split("=", 1)
            values[key.strip()] = value.strip().strip("'\"")

        bucket = values.get("BUCKET_NAME", "")
        if not bucket:
            raise ValueError("Metadata is missing BUCKET_NAME")

        return cls(
            bucket_name=bucket,
            region=values.get("AWS_REGION") or "us-east-1",
            profile=values.get("AWS_PROFILE") or None,
            project_tag=values.get("PROJECT_TAG") or None,
        )
