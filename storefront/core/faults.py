"""Process-level fault and signal handling.

Unhandled task errors (asyncio's loop exception handler) and uncaught exceptions
(``sys.excepthook`` and ``threading.excepthook``) are logged with full context.
By default the process keeps running after either one; ``exit_on_uncaught``
turns them fatal. SIGINT and SIGTERM exit with status 0 unless signal handling
is left to an external supervisor.
"""

import asyncio
from collections.abc import Callable
import logging
import os
import signal
import sys
import threading
from types import FrameType, TracebackType
from typing import Any

from storefront.core.logging import LoggerCore
from storefront.core.records import flatten, is_error_like, string_form

TERMINATION_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def _hard_exit(status: int) -> None:
    logging.shutdown()
    os._exit(status)


def _describe(error: Any) -> str:
    return string_form(error) if is_error_like(error) else str(error)


class ProcessFaultHandler:
    """Installs and removes the process-wide fault hooks."""

    def __init__(
        self,
        core: LoggerCore,
        *,
        manual_sig_handle: bool = False,
        exit_on_uncaught: bool = False,
        exit_process: Callable[[int], Any] = sys.exit,
        abort_process: Callable[[int], Any] = _hard_exit,
    ) -> None:
        self._core = core
        self.manual_sig_handle = manual_sig_handle
        self.exit_on_uncaught = exit_on_uncaught
        self._exit = exit_process
        self._abort = abort_process
        self._previous_excepthook: Callable[..., Any] | None = None
        self._previous_threading_hook: Callable[..., Any] | None = None
        self._previous_signals: dict[int, Any] = {}

    def install(self) -> None:
        """Register the exception hooks and, unless opted out, the signal handlers."""
        self._previous_excepthook = sys.excepthook
        self._previous_threading_hook = threading.excepthook
        sys.excepthook = self.handle_uncaught_exception
        threading.excepthook = self.handle_thread_exception

        if self.manual_sig_handle:
            self._core.debug("Manual signal handling enabled; SIGINT/SIGTERM left to the supervisor")
            return
        for signum in TERMINATION_SIGNALS:
            self._previous_signals[signum] = signal.signal(signum, self.handle_signal)

    def attach_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        """Route errors nobody retrieved on ``loop`` to the log."""
        loop.set_exception_handler(self.handle_loop_exception)

    def uninstall(self) -> None:
        if self._previous_excepthook is not None:
            sys.excepthook = self._previous_excepthook
            self._previous_excepthook = None
        if self._previous_threading_hook is not None:
            threading.excepthook = self._previous_threading_hook
            self._previous_threading_hook = None
        for signum, previous in self._previous_signals.items():
            signal.signal(signum, previous)
        self._previous_signals.clear()

    def handle_loop_exception(self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:  # noqa: ARG002
        error = context.get("exception")
        promise = context.get("future") or context.get("task")
        message = _describe(error) if error is not None else context.get("message", "Unhandled error in event loop")
        self._core.error(
            message,
            type="unhandledRejection",
            error=flatten(error) if error is not None else None,
            data={"promise": flatten(promise)},
            exc_info=error,
        )
        if self.exit_on_uncaught:
            self._abort(1)

    def handle_uncaught_exception(
        self,
        exc_type: type[BaseException],
        exc_value: BaseException,
        exc_tb: TracebackType | None,
    ) -> None:
        if issubclass(exc_type, KeyboardInterrupt) and self._previous_excepthook is not None:
            self._previous_excepthook(exc_type, exc_value, exc_tb)
            return
        self._log_uncaught(exc_value, exc_type, exc_tb)

    def handle_thread_exception(self, args: threading.ExceptHookArgs) -> None:
        if args.exc_type is SystemExit:
            return
        self._log_uncaught(
            args.exc_value,
            args.exc_type,
            args.exc_traceback,
            thread_name=getattr(args.thread, "name", None),
        )

    def handle_signal(self, signum: int, frame: FrameType | None) -> None:  # noqa: ARG002
        self._core.info(f"Received {signal.Signals(signum).name}, shutting down")
        self._exit(0)

    def _log_uncaught(
        self,
        error: BaseException | None,
        exc_type: type[BaseException],
        exc_tb: TracebackType | None,
        **fields: Any,
    ) -> None:
        self._core.error(
            _describe(error),
            type="uncaughtException",
            error=flatten(error),
            exc_info=(exc_type, error, exc_tb),
            **fields,
        )
        if self.exit_on_uncaught:
            self._abort(1)


__all__ = ["TERMINATION_SIGNALS", "ProcessFaultHandler"]
