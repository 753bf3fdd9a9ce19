"""Storefront front-end: structured logging and request instrumentation around the pages app."""

__version__ = "0.1.0"
