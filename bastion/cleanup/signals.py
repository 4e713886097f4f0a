"""
Signal handling so that teardown runs on SIGTERM/SIGHUP as well as on
normal exit and Ctrl-C.
"""

import logging
import signal
import sys
import threading
from contextlib import contextmanager
from typing import Dict

logger = logging.getLogger(__name__)

HANDLED_SIGNALS = tuple(
    getattr(signal, name) for name in ("SIGTERM", "SIGHUP") if hasattr(signal, name)
)


def _raise_exit(signum, frame):
    logger.warning(f"Received signal {signum}, shutting down")
    sys.exit(128 + signum)


def install_signal_handlers() -> Dict[int, object]:
    """
    Turn termination signals into SystemExit so ``finally`` blocks and
    context managers unwind.

    Returns:
        Previous handlers, for restore_signal_handlers
    """
    previous = {}
    for signum in HANDLED_SIGNALS:
        previous[signum] = signal.signal(signum, _raise_exit)
    return previous


def restore_signal_handlers(previous: Dict[int, object]) -> None:
    for signum, handler in previous.items():
        # None means the handler was not installed from Python
        if handler is not None:
            signal.signal(signum, handler)


@contextmanager
def signals_ignored():
    """
    Ignore Ctrl-C and termination signals inside the block.

    Handlers can only be changed from the main thread; elsewhere the block
    runs with handlers untouched.
    """
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    previous = {}
    for signum in (signal.SIGINT,) + HANDLED_SIGNALS:
        previous[signum] = signal.signal(signum, signal.SIG_IGN)
    try:
        yield
    finally:
        restore_signal_handlers(previous)
