"""Local artifact cleanup after teardown."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Iterable, Union

logger = logging.getLogger(__name__)

KEY_PATTERN = "*.pem"
FILE_PATTERNS = ("terraform.tfstate*", ".terraform.lock.hcl")
DIR_NAMES = (".terraform",)


class LocalArtifactCleaner:
    """Removes SSH keys, local state and provider caches left by a deployment.

    Keys, state files and ``.terraform/`` are removed from the top level of
    every root. ``*.pem`` files are only searched recursively under
    ``recursive_roots`` (the Terraform directory, where modules may write
    generated keys), so running from an unrelated directory never reaches
    keys or certificates nested below it.
    """

    def __init__(
        self,
        roots: Iterable[Union[str, Path]],
        recursive_roots: Iterable[Union[str, Path]] = (),
    ) -> None:
        self.recursive_roots = [Path(r) for r in recursive_roots]
        self.roots = [Path(r) for r in roots]
        for root in self.recursive_roots:
            if root not in self.roots:
                self.roots.append(root)

    def clean(self) -> list[Path]:
        """Delete local artifacts. Errors are logged, never raised.

        Returns:
            Paths that were removed
        """
        removed: list[Path] = []
        for root in self.roots:
            if not root.is_dir():
                logger.debug(f"Skipping missing directory {root}")
                continue

            if root in self.recursive_roots:
                candidates = list(root.rglob(KEY_PATTERN))
            else:
                candidates = list(root.glob(KEY_PATTERN))
            for pattern in FILE_PATTERNS:
                candidates.extend(root.glob(pattern))

            for path in candidates:
                if not path.is_file() or path in removed:
                    continue
                try:
                    path.unlink()
                    removed.append(path)
                except OSError as e:
                    logger.warning(f"Could not remove {path}: {e}")

            for name in DIR_NAMES:
                directory = root / name
                if not directory.is_dir():
                    continue
                try:
                    shutil.rmtree(directory)
                    removed.append(directory)
                except OSError as e:
                    logger.warning(f"Could not remove {directory}: {e}")

        if removed:
            logger.info(f"Removed {len(removed)} local artifact(s)")
        return removed
