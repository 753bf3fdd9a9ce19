"""Request instrumentation: correlation id, timing, outcome logging and the 500 fallback.

Each request moves RECEIVED -> DELEGATED -> COMPLETED | FAILED. The completion
line is written once the final body chunk has been handed to the server, never
before, so its status is the one the client actually received.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
import time
from typing import Any, Protocol
from urllib.parse import parse_qs
import uuid

import structlog

from storefront.core.errors import MissingURLError
from storefront.core.logging import LoggerCore
from storefront.core.records import flatten, normalize
from storefront.core.telemetry import NullTelemetrySink, TelemetrySink

Scope = dict[str, Any]
Message = dict[str, Any]
Receive = Callable[[], Awaitable[Message]]
Send = Callable[[Message], Awaitable[None]]

INTERNAL_SERVER_ERROR_BODY = b"Internal Server Error"


class RequestState(Enum):
    """Lifecycle of one request."""

    RECEIVED = "received"
    DELEGATED = "delegated"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class RequestContext:
    """Per-request bookkeeping, owned by the middleware for the request's lifetime."""

    correlation_id: str
    start_time: float
    method: str
    url: str | None
    state: RequestState = RequestState.RECEIVED


@dataclass(frozen=True)
class ParsedURL:
    pathname: str
    query: dict[str, list[str]]
    href: str


class PageHandler(Protocol):
    """The rendering framework, seen from the front-end."""

    async def prepare(self) -> None: ...

    async def handle(self, scope: Scope, receive: Receive, send: Send, parsed_url: ParsedURL | None) -> None: ...


def new_correlation_id() -> str:
    return uuid.uuid4().hex[:16]


def request_url(scope: Scope) -> str | None:
    """Path plus query string as the client sent it, or None when there is no path.

    ``raw_path`` keeps percent-escapes intact; ``path`` is already decoded and
    is only used when the server does not provide the raw form.
    """
    raw_path = scope.get("raw_path")
    if raw_path:
        path = raw_path.split(b"?", 1)[0].decode("latin-1")
    else:
        path = scope.get("path")
    if not path:
        return None
    query = scope.get("query_string") or b""
    return f"{path}?{query.decode('latin-1')}" if query else path


def parse_url(url: str) -> ParsedURL:
    path, _, query = url.partition("?")
    return ParsedURL(
        pathname=path,
        query=parse_qs(query.partition("#")[0], keep_blank_values=True),
        href=url,
    )


class _ResponseTracker:
    """Wraps ``send`` to observe the status and the end of the response."""

    def __init__(self, send: Send, correlation_id: str, on_finish: Callable[[int], None]) -> None:
        self._send = send
        self._correlation_id = correlation_id
        self._on_finish = on_finish
        self.status_code: int | None = None
        self.started = False
        self.finished = False

    async def send(self, message: Message) -> None:
        if message["type"] == "http.response.start":
            self.started = True
            self.status_code = message["status"]
            headers = list(message.get("headers", []))
            headers.append((b"x-request-id", self._correlation_id.encode("latin-1")))
            message = {**message, "headers": headers}

        await self._send(message)

        if message["type"] == "http.response.body" and not message.get("more_body", False):
            if not self.finished:
                self.finished = True
                self._on_finish(self.status_code or 200)


class RequestInstrumentationMiddleware:
    """ASGI front-end wrapping a ``PageHandler``.

    Logs one line per finished request (``error`` for 4xx/5xx, ``debug``
    otherwise) and turns handler exceptions into a plain-text 500 when the
    response has not started yet.
    """

    def __init__(
        self,
        handler: PageHandler,
        core: LoggerCore,
        *,
        telemetry: TelemetrySink | None = None,
        clock: Callable[[], float] = time.monotonic,
        id_factory: Callable[[], str] = new_correlation_id,
    ) -> None:
        self.handler = handler
        self.core = core
        self.telemetry = telemetry or NullTelemetrySink()
        self._clock = clock
        self._id_factory = id_factory

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            url = request_url(scope)
            await self.handler.handle(scope, receive, send, parse_url(url) if url else None)
            return

        ctx = RequestContext(
            correlation_id=self._id_factory(),
            start_time=self._clock(),
            method=scope.get("method", "GET"),
            url=request_url(scope),
        )
        self._report(self.telemetry.attach_request, scope)
        response = _ResponseTracker(send, ctx.correlation_id, lambda status: self._log_completion(ctx, status))

        with structlog.contextvars.bound_contextvars(request_id=ctx.correlation_id):
            try:
                if not ctx.url:
                    raise MissingURLError()
                parsed_url = parse_url(ctx.url)
                ctx.state = RequestState.DELEGATED
                self._report(self.telemetry.set_transaction_name, parsed_url.pathname or "/*")
                await self.handler.handle(scope, receive, response.send, parsed_url)
            except Exception as exc:
                ctx.state = RequestState.FAILED
                self.core.emit("error", normalize(["Error occurred handling", ctx.url, exc]), exc_info=exc)
                if not response.started:
                    await self._send_internal_server_error(response)

    async def _send_internal_server_error(self, response: _ResponseTracker) -> None:
        try:
            await response.send(
                {
                    "type": "http.response.start",
                    "status": 500,
                    "headers": [
                        (b"content-type", b"text/plain; charset=utf-8"),
                        (b"content-length", str(len(INTERNAL_SERVER_ERROR_BODY)).encode("latin-1")),
                    ],
                }
            )
            await response.send({"type": "http.response.body", "body": INTERNAL_SERVER_ERROR_BODY})
        except Exception as exc:  # noqa: BLE001
            self.core.warn("Could not send error response", error=flatten(exc))

    def _log_completion(self, ctx: RequestContext, status_code: int) -> None:
        if ctx.state is not RequestState.FAILED:
            ctx.state = RequestState.COMPLETED
        elapsed_ms = round((self._clock() - ctx.start_time) * 1000)
        level = "error" if 400 <= status_code < 600 else "debug"
        self.core.log(level, f"{ctx.correlation_id} {status_code} {ctx.method} {ctx.url} ({elapsed_ms}ms)")

    def _report(self, call: Callable[..., Any], *args: Any) -> None:
        try:
            call(*args)
        except Exception as exc:  # noqa: BLE001
            self.core.warn("Telemetry call failed", error=flatten(exc))


__all__ = [
    "INTERNAL_SERVER_ERROR_BODY",
    "PageHandler",
    "ParsedURL",
    "RequestContext",
    "RequestInstrumentationMiddleware",
    "RequestState",
    "new_correlation_id",
    "parse_url",
    "request_url",
]
