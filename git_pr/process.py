"""Child process and browser execution."""

from __future__ import annotations

import logging
import shlex
import signal
import subprocess
import threading
import webbrowser
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)

# Signals the terminal delivers to the whole foreground group.
TERMINAL_SIGNALS = tuple(
    getattr(signal, name) for name in ("SIGINT", "SIGQUIT") if hasattr(signal, name)
)


class ProcessRunner(Protocol):
    """Protocol for running commands attached to the terminal and opening URLs."""

    def run_attached(self, argv: list[str], *, cwd: Path | None = None) -> int:
        """Run argv with inherited standard streams and return its exit code."""

    def open_url(self, url: str) -> None:
        """Open url in the default browser without waiting for it."""


@contextmanager
def terminal_signals_ignored() -> Iterator[None]:
    """Ignore SIGINT and SIGQUIT in this process, restoring the old handlers on exit.

    The child decides how to react to Ctrl-C; the parent keeps waiting for it.
    Signal handlers can only change on the main thread, elsewhere this is a no-op.
    """
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    previous = {signum: signal.signal(signum, signal.SIG_IGN) for signum in TERMINAL_SIGNALS}
    try:
        yield
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler)


class SubprocessRunner:
    """ProcessRunner backed by subprocess and webbrowser."""

    def run_attached(self, argv: list[str], *, cwd: Path | None = None) -> int:
        logger.debug("exec: %s", shlex.join(argv))
        # No capture: pagers, editors and colour output see the real terminal.
        # The child starts with default handlers; only the parent ignores signals.
        process = subprocess.Popen(argv, cwd=cwd)
        with terminal_signals_ignored():
            returncode = process.wait()
        if returncode != 0:
            logger.debug("exit %d: %s", returncode, shlex.join(argv))
        return returncode

    def open_url(self, url: str) -> None:
        logger.debug("open: %s", url)
        if not webbrowser.open(url):
            logger.warning("No browser available to open %s", url)
