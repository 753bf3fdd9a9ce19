"""Route external logging entry points through the normalizer and ``LoggerCore``.

Two kinds of facade get patched at startup: the framework's internal logger
objects, and the module-level ``logging`` functions every library can reach.
``install_logging_patch`` is the raw operation and wraps whatever it finds, so
applying it twice logs twice. ``LoggingInstaller`` is the entry point the
server uses: it can only be consumed once.
"""

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
import functools
import logging
from typing import Any

from storefront.core.errors import LoggingAlreadyInstalledError
from storefront.core.logging import LoggerCore, resolve_level
from storefront.core.records import normalize

# Entry points that log the active exception unless told otherwise
_EXC_INFO_DEFAULTS = frozenset({"exception"})

_PATCHED_MARKER = "__storefront_patched__"


@dataclass(frozen=True)
class PatchTarget:
    """One replaced entry point."""

    facade_name: str
    function_name: str


@dataclass(frozen=True)
class Facade:
    """An object exposing named logging functions, and the names to intercept."""

    name: str
    target: Any
    level_names: tuple[str, ...]


def create_logging_function(
    core: LoggerCore, level_name: str, previous: Callable[..., Any] | None = None
) -> Callable[..., None]:
    """Build the replacement for one logging entry point.

    ``previous`` is an earlier replacement of the same entry point; it is called
    after emitting, so every layer of patching logs the call once.
    """
    level = resolve_level(level_name)
    exc_info_default = level_name in _EXC_INFO_DEFAULTS

    def logging_function(*args: Any, **kwargs: Any) -> None:
        exc_info = kwargs.get("exc_info", exc_info_default)
        core.emit(level, normalize(args), exc_info=exc_info)
        if previous is not None:
            previous(*args, **kwargs)

    return logging_function


def _is_patched(function: Any) -> bool:
    return getattr(function, _PATCHED_MARKER, False) is True


def install_logging_patch(
    facade: Any,
    level_names: Iterable[str],
    core: LoggerCore,
    *,
    facade_name: str | None = None,
) -> list[PatchTarget]:
    """Replace every callable ``facade.<name>`` in ``level_names``.

    Missing and non-callable entries are skipped. Calling this again on the same
    facade wraps the wrappers and every call is then logged twice; use
    ``LoggingInstaller`` to install exactly once.
    """
    facade_name = facade_name or getattr(facade, "name", None) or getattr(facade, "__name__", repr(facade))
    patched: list[PatchTarget] = []
    for function_name in level_names:
        original = getattr(facade, function_name, None)
        if not callable(original):
            continue
        previous = original if _is_patched(original) else None
        replacement = functools.wraps(original)(create_logging_function(core, function_name, previous))
        setattr(replacement, _PATCHED_MARKER, True)
        setattr(facade, function_name, replacement)
        patched.append(PatchTarget(facade_name=facade_name, function_name=function_name))
    return patched


@dataclass(frozen=True)
class InstalledLogging:
    """Handle returned by ``LoggingInstaller.install``."""

    core: LoggerCore
    targets: tuple[PatchTarget, ...]
    _originals: tuple[tuple[Any, str, Any, bool], ...] = field(repr=False, default=())

    def uninstall(self) -> None:
        """Put the original functions back."""
        for target, function_name, original, was_own_attribute in reversed(self._originals):
            if was_own_attribute:
                setattr(target, function_name, original)
            else:
                delattr(target, function_name)


class LoggingInstaller:
    """One-shot installer for the logging patch."""

    def __init__(self, core: LoggerCore) -> None:
        self._core = core
        self._consumed = False

    @property
    def consumed(self) -> bool:
        return self._consumed

    def install(self, facades: Sequence[Facade]) -> InstalledLogging:
        """Patch every facade once.

        Raises:
            LoggingAlreadyInstalledError: When this installer was already used.
        """
        if self._consumed:
            raise LoggingAlreadyInstalledError("Logging patch is already installed")
        self._consumed = True

        targets: list[PatchTarget] = []
        originals: list[tuple[Any, str, Any, bool]] = []
        for facade in facades:
            saved = [
                (facade.target, name, getattr(facade.target, name), _owns(facade.target, name))
                for name in dict.fromkeys(facade.level_names)
                if callable(getattr(facade.target, name, None))
            ]
            targets.extend(
                install_logging_patch(
                    facade.target, dict.fromkeys(facade.level_names), self._core, facade_name=facade.name
                )
            )
            originals.extend(saved)

        return InstalledLogging(core=self._core, targets=tuple(targets), _originals=tuple(originals))


def _owns(target: Any, name: str) -> bool:
    try:
        return name in vars(target)
    except TypeError:
        return True


def default_facades(
    framework_loggers: Iterable[str],
    framework_levels: Sequence[str],
    console_levels: Sequence[str],
) -> list[Facade]:
    """Framework logger objects plus the module-level ``logging`` functions."""
    facades = [
        Facade(name=name, target=logging.getLogger(name), level_names=tuple(framework_levels))
        for name in framework_loggers
    ]
    facades.append(Facade(name="logging", target=logging, level_names=tuple(console_levels)))
    return facades


__all__ = [
    "Facade",
    "InstalledLogging",
    "LoggingInstaller",
    "PatchTarget",
    "create_logging_function",
    "default_facades",
    "install_logging_patch",
]
