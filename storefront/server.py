"""Server entry point: logging patch, fault hooks, page preparation and the listener."""

import asyncio
import socket
import sys
from typing import Any

import uvicorn

from storefront.core import (
    InstalledLogging,
    LoggerCore,
    LoggingInstaller,
    ProcessFaultHandler,
    Settings,
    configure_logging,
    default_facades,
    get_settings,
    get_telemetry_sink,
    normalize,
)
from storefront.frontend import AsgiPageHandler, create_pages_app
from storefront.middleware import RequestInstrumentationMiddleware


def bind_socket(host: str, port: int) -> socket.socket:
    """Bind and listen on ``host:port``; raises ``OSError`` when the address is unavailable."""
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((host, port))
        sock.listen()
    except OSError:
        sock.close()
        raise
    sock.set_inheritable(True)
    return sock


def create_front_end(settings: Settings, core: LoggerCore) -> RequestInstrumentationMiddleware:
    """Wire the pages app behind the request instrumentation."""
    handler = AsgiPageHandler(create_pages_app(settings))
    return RequestInstrumentationMiddleware(handler, core, telemetry=get_telemetry_sink(settings))


async def serve(settings: Settings, core: LoggerCore, faults: ProcessFaultHandler) -> None:
    """Prepare the pages, bind the listener and serve until shut down.

    A failing preparation is logged and ends the server normally. A failing bind
    exits the process with status 1.
    """
    faults.attach_loop(asyncio.get_running_loop())
    front_end = create_front_end(settings, core)
    handler = front_end.handler

    try:
        await handler.prepare()
    except Exception as exc:
        core.emit("error", normalize([exc]), exc_info=exc)
        return

    try:
        sock = bind_socket(settings.host, settings.port)
    except OSError as exc:
        core.emit("error", normalize([exc]))
        await handler.close()
        sys.exit(1)

    config = uvicorn.Config(front_end, lifespan="off", access_log=False, log_config=None)
    server = uvicorn.Server(config)
    core.info(f"Ready on http://{settings.host}:{settings.port}")
    try:
        await server.serve(sockets=[sock])
    finally:
        sock.close()
        await handler.close()


def bootstrap(
    settings: Settings, *, stream: Any = None
) -> tuple[LoggerCore, InstalledLogging, ProcessFaultHandler]:
    """Configure logging, install the logging patch and the process fault hooks."""
    configure_logging(settings.log_level, environment=settings.environment, stream=stream)
    core = LoggerCore(settings.app_name)

    installed = LoggingInstaller(core).install(
        default_facades(settings.framework_loggers, settings.framework_log_levels, settings.console_log_levels)
    )
    faults = ProcessFaultHandler(
        core,
        manual_sig_handle=settings.manual_sig_handle,
        exit_on_uncaught=settings.exit_on_uncaught,
    )
    faults.install()

    core.debug(f"Logging patch installed on {len(installed.targets)} entry points")
    core.info(f"Running in mode: {'production' if settings.is_production else 'non-production'}")
    return core, installed, faults


def main() -> None:
    settings = get_settings()
    core, _, faults = bootstrap(settings)
    asyncio.run(serve(settings, core, faults))


__all__ = ["bind_socket", "bootstrap", "create_front_end", "main", "serve"]
