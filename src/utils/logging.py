"""Logging configuration."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

from rich.logging import RichHandler

# Third-party loggers that are far too chatty at DEBUG
NOISY_LOGGERS = ("boto3", "botocore", "urllib3", "s3transfer")

FILE_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(
    level: str = "INFO",
    verbose: bool = False,
    log_file: Optional[Union[str, Path]] = None,
) -> None:
    """Configure root logging for the CLI.

    Console output goes through Rich so severities are colour coded. When
    ``log_file`` is given every record is also appended to that file in plain
    text, mirroring the console.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR)
        verbose: Show module paths and keep AWS SDK debug output
        log_file: Optional path of a plain-text log file
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(numeric_level)

    # Replace handlers so repeated invocations (tests, nested commands) don't duplicate output
    for handler in list(root.handlers):
        root.removeHandler(handler)

    console_handler = RichHandler(
        level=numeric_level,
        show_time=verbose,
        show_path=verbose,
        rich_tracebacks=verbose,
        markup=False,
    )
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(console_handler)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=FILE_DATE_FORMAT))
        root.addHandler(file_handler)

    if not verbose:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
