"""Tests for process-level fault and signal handling."""

import asyncio
from collections.abc import Callable, Generator
import json
import signal
import sys
import threading
from typing import Any
from unittest.mock import MagicMock

import pytest

from storefront.core import LoggerCore, ProcessFaultHandler

LogLines = Callable[[], list[dict[str, Any]]]


@pytest.fixture
def exit_process() -> MagicMock:
    return MagicMock()


@pytest.fixture
def abort_process() -> MagicMock:
    return MagicMock()


@pytest.fixture
def faults(
    core: LoggerCore, exit_process: MagicMock, abort_process: MagicMock
) -> Generator[ProcessFaultHandler, None, None]:
    handler = ProcessFaultHandler(core, exit_process=exit_process, abort_process=abort_process)
    yield handler
    handler.uninstall()


class TestUncaughtExceptions:
    """Tests for sys.excepthook / threading.excepthook handling."""

    def test_install_replaces_and_uninstall_restores_hooks(self, faults: ProcessFaultHandler) -> None:
        previous_sys, previous_threading = sys.excepthook, threading.excepthook

        faults.install()
        assert sys.excepthook == faults.handle_uncaught_exception
        assert threading.excepthook == faults.handle_thread_exception

        faults.uninstall()
        assert sys.excepthook is previous_sys
        assert threading.excepthook is previous_threading

    def test_uncaught_exception_is_logged(
        self, faults: ProcessFaultHandler, abort_process: MagicMock, log_lines: LogLines
    ) -> None:
        error = ValueError("boom")

        faults.handle_uncaught_exception(ValueError, error, None)

        line = log_lines()[0]
        assert line["level"] == "ERROR"
        assert line["message"] == "ValueError: boom"
        assert line["type"] == "uncaughtException"
        assert json.loads(line["error"]) == {"name": "ValueError", "message": "boom"}
        abort_process.assert_not_called()

    def test_uncaught_exception_is_fatal_when_configured(
        self, faults: ProcessFaultHandler, abort_process: MagicMock
    ) -> None:
        faults.exit_on_uncaught = True

        faults.handle_uncaught_exception(ValueError, ValueError("boom"), None)

        abort_process.assert_called_once_with(1)

    def test_keyboard_interrupt_goes_to_previous_hook(
        self, monkeypatch: pytest.MonkeyPatch, faults: ProcessFaultHandler, log_lines: LogLines
    ) -> None:
        previous = MagicMock()
        monkeypatch.setattr(sys, "excepthook", previous)
        faults.install()

        interrupt = KeyboardInterrupt()
        sys.excepthook(KeyboardInterrupt, interrupt, None)

        previous.assert_called_once_with(KeyboardInterrupt, interrupt, None)
        assert log_lines() == []

    def test_thread_exception_is_logged_with_thread_name(
        self, faults: ProcessFaultHandler, log_lines: LogLines
    ) -> None:
        def crash() -> None:
            raise RuntimeError("worker died")

        faults.install()
        worker = threading.Thread(target=crash, name="render-worker")
        worker.start()
        worker.join()

        line = log_lines()[0]
        assert line["type"] == "uncaughtException"
        assert line["message"] == "RuntimeError: worker died"
        assert line["thread_name"] == "render-worker"


class TestLoopExceptions:
    """Tests for unhandled task errors."""

    def test_unhandled_task_error_is_logged(
        self, faults: ProcessFaultHandler, abort_process: MagicMock, log_lines: LogLines
    ) -> None:
        error = ConnectionError("upstream reset")

        faults.handle_loop_exception(
            MagicMock(),
            {"message": "Task exception was never retrieved", "exception": error, "future": "<Task finished>"},
        )

        line = log_lines()[0]
        assert line["level"] == "ERROR"
        assert line["message"] == "ConnectionError: upstream reset"
        assert line["type"] == "unhandledRejection"
        assert json.loads(line["error"]) == {"name": "ConnectionError", "message": "upstream reset"}
        assert line["data"] == {"promise": "<Task finished>"}
        abort_process.assert_not_called()

    def test_context_without_exception_uses_message(self, faults: ProcessFaultHandler, log_lines: LogLines) -> None:
        faults.handle_loop_exception(MagicMock(), {"message": "Unclosed client session"})

        line = log_lines()[0]
        assert line["message"] == "Unclosed client session"
        assert "error" not in line

    @pytest.mark.asyncio
    async def test_attach_loop_routes_loop_errors(self, faults: ProcessFaultHandler, log_lines: LogLines) -> None:
        loop = asyncio.get_running_loop()
        faults.attach_loop(loop)
        try:
            loop.call_exception_handler({"message": "Future exception was never retrieved", "exception": KeyError("k")})
        finally:
            loop.set_exception_handler(None)

        assert log_lines()[0]["type"] == "unhandledRejection"

    def test_loop_error_is_fatal_when_configured(self, faults: ProcessFaultHandler, abort_process: MagicMock) -> None:
        faults.exit_on_uncaught = True

        faults.handle_loop_exception(MagicMock(), {"message": "x", "exception": ValueError("x")})

        abort_process.assert_called_once_with(1)


class TestSignals:
    """Tests for SIGINT/SIGTERM handling."""

    def test_signals_exit_with_zero(self, faults: ProcessFaultHandler, exit_process: MagicMock) -> None:
        faults.install()

        assert signal.getsignal(signal.SIGTERM) == faults.handle_signal
        assert signal.getsignal(signal.SIGINT) == faults.handle_signal

        faults.handle_signal(signal.SIGTERM, None)
        exit_process.assert_called_once_with(0)

    def test_manual_signal_handling_leaves_handlers_alone(
        self, core: LoggerCore, exit_process: MagicMock
    ) -> None:
        previous = signal.getsignal(signal.SIGTERM)
        handler = ProcessFaultHandler(core, manual_sig_handle=True, exit_process=exit_process)
        handler.install()
        try:
            assert signal.getsignal(signal.SIGTERM) is previous
        finally:
            handler.uninstall()
        exit_process.assert_not_called()

    def test_uninstall_restores_signal_handlers(self, faults: ProcessFaultHandler) -> None:
        previous = signal.getsignal(signal.SIGINT)

        faults.install()
        faults.uninstall()

        assert signal.getsignal(signal.SIGINT) is previous
