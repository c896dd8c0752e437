"""PID file handling for the server process."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)


def write_pid_file(path: Union[str, Path]) -> Path:
    pid_path = Path(path)
    pid_path.parent.mkdir(parents=True, exist_ok=True)
    pid_path.write_text(str(os.getpid()))
    logger.info("Wrote PID %d to %s", os.getpid(), pid_path)
    return pid_path


def remove_pid_file(path: Union[str, Path]) -> None:
    try:
        Path(path).unlink()
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.error("Could not remove PID file %s: %s", path, exc)
