"""Logging configuration for mbf-bridge.

The ``mbf_bridge`` logger is the local diagnostic sink: control-side progress
and every log event the agent emits end up in the rotating log file.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def setup_logging(log_path: Path, *, verbose: bool = False) -> None:
    """Attach a rotating file handler to the package logger, plus stderr output when verbose.

    Idempotent: skips if handlers are already attached.
    """
    root = logging.getLogger("mbf_bridge")
    if root.handlers:
        return

    log_path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = RotatingFileHandler(log_path, maxBytes=1_000_000, backupCount=3)
    file_handler.setFormatter(logging.Formatter(fmt=_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    root.addHandler(file_handler)

    if verbose:
        console = logging.StreamHandler(sys.stderr)
        console.setLevel(logging.DEBUG)
        console.setFormatter(logging.Formatter(fmt="%(levelname)s %(name)s: %(message)s"))
        root.addHandler(console)

    root.setLevel(logging.DEBUG)
