"""Core: config, logging, record normalization, patching, process faults, telemetry."""

from storefront.core.config import Settings, get_settings
from storefront.core.errors import LoggingAlreadyInstalledError, MissingURLError, StorefrontError
from storefront.core.faults import ProcessFaultHandler
from storefront.core.logging import DevFormatter, JsonFormatter, LoggerCore, configure_logging
from storefront.core.patching import (
    Facade,
    InstalledLogging,
    LoggingInstaller,
    PatchTarget,
    default_facades,
    install_logging_patch,
)
from storefront.core.records import LogRecord, RecordKind, flatten, normalize
from storefront.core.telemetry import NullTelemetrySink, TelemetrySink, get_telemetry_sink

__all__ = [
    "DevFormatter",
    "Facade",
    "InstalledLogging",
    "JsonFormatter",
    "LogRecord",
    "LoggerCore",
    "LoggingAlreadyInstalledError",
    "LoggingInstaller",
    "MissingURLError",
    "NullTelemetrySink",
    "PatchTarget",
    "ProcessFaultHandler",
    "RecordKind",
    "Settings",
    "StorefrontError",
    "TelemetrySink",
    "configure_logging",
    "default_facades",
    "flatten",
    "get_settings",
    "get_telemetry_sink",
    "install_logging_patch",
    "normalize",
]
