from __future__ import annotations

import logging
import subprocess
from typing import Protocol

logger = logging.getLogger(__name__)


class ShellRunner(Protocol):
    """Runs one external command; an interrupt while waiting may propagate as KeyboardInterrupt."""

    def run(self, shell: str, command: str, input: str | None = None) -> str: ...


class SubprocessShell:
    """Runs :! commands through `shell -c`, returning combined stdout and stderr."""

    def run(self, shell: str, command: str, input: str | None = None) -> str:
        logger.debug("running %r with %s", command, shell)
        completed = subprocess.run(
            [shell, "-c", command],
            input=input,
            capture_output=True,
            text=True,
        )
        if completed.returncode != 0:
            logger.info("%r exited with %d", command, completed.returncode)
        return completed.stdout + completed.stderr
