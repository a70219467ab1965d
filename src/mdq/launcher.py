"""Running an external pager or editor on a note."""

from __future__ import annotations

import logging
import shlex
import subprocess
from pathlib import Path

from mdq.errors import ExternalProcessError

LOGGER = logging.getLogger(__name__)


def build_command(command: str, path: Path) -> list[str]:
    argv = shlex.split(command)
    if not argv:
        raise ExternalProcessError(command, "empty command")
    return [*argv, str(path)]


def open_with(command: str, path: Path) -> int:
    """Run ``command path`` in the foreground and wait for it to exit.

    The child is always reaped before returning; if waiting is interrupted the
    child is terminated first. Returns the exit status.

    Raises:
        ExternalProcessError: if the program cannot be started.
    """
    argv = build_command(command, path)
    LOGGER.debug("Launching %s", argv)
    try:
        process = subprocess.Popen(argv)
    except OSError as exc:
        raise ExternalProcessError(command, exc.strerror or str(exc)) from exc

    try:
        returncode = process.wait()
    except BaseException:
        process.terminate()
        process.wait()
        raise

    if returncode != 0:
        LOGGER.warning("%s exited with status %s", argv[0], returncode)
    return returncode
