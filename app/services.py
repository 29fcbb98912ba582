"""Services for process-level infrastructure.

Separates infrastructure concerns (uncaught exceptions, signals, ordered
cleanup) from the alias engine itself. Cleanup is what guarantees
``AliasEngine.force_flush`` runs before the process goes away.
"""
from __future__ import annotations

import atexit
import signal
import sys
import threading
import traceback
from typing import Callable, List, Optional, Tuple

from loguru import logger

from core.error_handler import handle_exceptions


class ExceptionHandlerService:
    """Logs uncaught exceptions from the main thread and worker threads.

    The original hooks still run afterwards so termination behaves as usual.
    """

    def __init__(self):
        self._original_excepthook = sys.excepthook
        self._original_thread_excepthook = threading.excepthook

    def install(self) -> None:
        def excepthook(exc_type, exc_value, exc_traceback):
            tb = "".join(traceback.format_exception(exc_type, exc_value, exc_traceback))
            logger.error("Uncaught exception:\n{}", tb)
            self._original_excepthook(exc_type, exc_value, exc_traceback)

        def thread_excepthook(args: threading.ExceptHookArgs) -> None:
            tb = "".join(traceback.format_exception(args.exc_type, args.exc_value, args.exc_traceback))
            thread_name = args.thread.name if args.thread else "?"
            logger.error("Uncaught exception in thread {}:\n{}", thread_name, tb)

        sys.excepthook = excepthook
        threading.excepthook = thread_excepthook

    def uninstall(self) -> None:
        sys.excepthook = self._original_excepthook
        threading.excepthook = self._original_thread_excepthook


class SignalHandlerService:
    """Runs cleanup on SIGINT, SIGTERM, SIGHUP and SIGQUIT, then exits."""

    SIGNALS = ("SIGINT", "SIGTERM", "SIGHUP", "SIGQUIT")

    def __init__(self, cleanup_callback: Optional[Callable[[], None]] = None, exit_code: int = 130):
        self.cleanup_callback = cleanup_callback
        self.exit_code = exit_code
        self.installed: List[int] = []

    def install(self) -> None:
        """Install handlers; signals that cannot be caught here are skipped."""
        def _handle(signum, frame):
            logger.info(f"Received signal {signum}, flushing aliases before exit")
            try:
                if self.cleanup_callback:
                    self.cleanup_callback()
            finally:
                sys.exit(self.exit_code)

        # Handlers can only be installed from the main thread.
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not on main thread, signal handlers not installed")
            return

        for sig_name in self.SIGNALS:
            sig = getattr(signal, sig_name, None)
            if sig is None:
                continue
            try:
                signal.signal(sig, _handle)
                self.installed.append(sig)
            except (OSError, ValueError) as e:
                logger.debug(f"Cannot handle {sig_name}: {e}")


class CleanupService:
    """Ordered, run-once registry of shutdown handlers."""

    def __init__(self):
        self._cleanup_handlers: List[Tuple[Callable[[], None], str]] = []
        self._cleaned_up = False
        self._lock = threading.Lock()

    def register(self, handler: Callable[[], None], name: str = "") -> None:
        self._cleanup_handlers.append((handler, name))

    @handle_exceptions(message="Cleanup failed")
    def cleanup(self) -> None:
        """Run every handler in registration order.

        A failing handler is logged and does not stop the ones after it.
        Calling cleanup again has no effect.
        """
        with self._lock:
            if self._cleaned_up:
                return
            self._cleaned_up = True

        logger.debug("Starting cleanup...")
        for handler, name in self._cleanup_handlers:
            label = name or getattr(handler, "__name__", "handler")
            try:
                logger.debug(f"Cleaning up: {label}")
                handler()
            except Exception as e:
                logger.warning(f"Cleanup handler {label} failed: {e}")
        logger.debug("Cleanup completed")

    def install_atexit(self) -> None:
        atexit.register(self.cleanup)
