"""Frontend package: storefront pages."""

from storefront.frontend.pages import AsgiPageHandler, create_pages_app

__all__ = ["AsgiPageHandler", "create_pages_app"]
