"""Page rendering app and its adapter to the front-end's handler contract."""

from contextlib import AsyncExitStack
import logging
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates
from starlette.applications import Starlette

from storefront.core.config import Settings
from storefront.middleware.instrumentation import ParsedURL, Receive, Scope, Send

logger = logging.getLogger(__name__)

_templates_dir = Path(__file__).parent / "templates"


def create_pages_app(settings: Settings) -> FastAPI:
    """Create the FastAPI app serving the storefront pages.

    Non-production mode reloads templates from disk on change. Tracebacks are
    never rendered to the client in either mode.
    """
    templates = Jinja2Templates(directory=str(_templates_dir))
    templates.env.auto_reload = not settings.is_production

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=False,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    @app.get("/", response_class=HTMLResponse, include_in_schema=False)
    async def index(request: Request) -> HTMLResponse:
        logger.debug("index")
        return templates.TemplateResponse(request=request, name="index.html")

    @app.get("/about", response_class=HTMLResponse, include_in_schema=False)
    async def about(request: Request) -> HTMLResponse:
        logger.debug("about")
        return templates.TemplateResponse(request=request, name="about.html")

    return app


class AsgiPageHandler:
    """Drive a Starlette/FastAPI app as the front-end's ``PageHandler``.

    ``prepare`` enters the app's lifespan (startup handlers run there) and
    ``close`` leaves it. The parsed URL is exposed to routes as
    ``request.state.parsed_url``.
    """

    def __init__(self, app: Starlette) -> None:
        self.app = app
        self._stack = AsyncExitStack()

    async def prepare(self) -> None:
        await self._stack.enter_async_context(self.app.router.lifespan_context(self.app))

    async def close(self) -> None:
        await self._stack.aclose()

    async def handle(self, scope: Scope, receive: Receive, send: Send, parsed_url: ParsedURL | None) -> None:
        if parsed_url is not None:
            scope.setdefault("state", {})["parsed_url"] = parsed_url
        await self.app(scope, receive, send)


__all__ = ["AsgiPageHandler", "create_pages_app"]
