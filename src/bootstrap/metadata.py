"""Backend metadata file storage."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

from ..models.backend_metadata import BackendMetadata

logger = logging.getLogger(__name__)


class MetadataStore:
    """Reads and writes the backend metadata file (``bucket-info.txt``)."""

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.is_file()

    def read(self) -> Optional[BackendMetadata]:
        """Load metadata.

        Returns:
            BackendMetadata, or None if the file has not been written yet

        Raises:
            ValueError: If the file exists but has no bucket name
        """
        if not self.path.is_file():
            logger.debug(f"No metadata file at {self.path}")
            return None
        return BackendMetadata.from_text(self.path.read_text())

    def write(self, metadata: BackendMetadata) -> Path:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(metadata.to_text())
        logger.info(f"Saved backend configuration to {self.path}")
        return self.path

    def delete(self) -> bool:
        """Remove the metadata file. Returns True if a file was removed."""
        if not self.path.is_file():
            return False
        self.path.unlink()
        logger.info(f"Removed {self.path}")
        return True
