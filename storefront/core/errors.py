"""Exceptions raised by the storefront front-end."""


class StorefrontError(Exception):
    """Base class for storefront errors."""


class MissingURLError(StorefrontError):
    """Raised when an inbound request carries no URL to route."""

    def __init__(self, message: str = "No URL to process") -> None:
        super().__init__(message)


class LoggingAlreadyInstalledError(StorefrontError):
    """Raised when the logging patch is installed a second time."""


__all__ = ["LoggingAlreadyInstalledError", "MissingURLError", "StorefrontError"]
