"""Middleware module."""

from storefront.middleware.instrumentation import (
    PageHandler,
    ParsedURL,
    RequestContext,
    RequestInstrumentationMiddleware,
    RequestState,
)

__all__ = ["PageHandler", "ParsedURL", "RequestContext", "RequestInstrumentationMiddleware", "RequestState"]
