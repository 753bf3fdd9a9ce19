"""Normalize arbitrary log call arguments into one structured record.

Frameworks and library code call logging entry points with every shape imaginable:
a plain string, an exception, an error-shaped dict, or a mix of all of them.
``normalize`` decides once which of three shapes a call has and produces a
``LogRecord`` the logger core can emit without further sniffing.
"""

from collections.abc import Mapping, Sequence, Set
import dataclasses
from dataclasses import dataclass
from enum import Enum
import json
from typing import Any

_PRIMITIVES = (str, bytes, int, float, bool, type(None))
_MISSING = object()


class RecordKind(Enum):
    """Shape of a log call, decided by ``normalize``."""

    SINGLE_ERROR = "single_error"
    MULTI_ARG = "multi_arg"
    PLAIN_MESSAGES = "plain_messages"


@dataclass(frozen=True)
class LogRecord:
    """Structured form of one log call."""

    kind: RecordKind
    messages: tuple[Any, ...]
    data: dict[str, list[Any]] | None = None
    error_payload: Any = None
    error: Any = None


def is_error_like(value: Any) -> bool:
    """Return True for exceptions and for values shaped like one (``name`` + ``message``)."""
    if isinstance(value, BaseException):
        return True
    if isinstance(value, _PRIMITIVES):
        return False
    if isinstance(value, Mapping):
        return "name" in value and "message" in value
    return hasattr(value, "name") and hasattr(value, "message")


def _error_parts(value: Any) -> tuple[str, str]:
    if isinstance(value, BaseException):
        return type(value).__name__, str(value)
    if isinstance(value, Mapping):
        return str(value["name"]), str(value["message"])
    return str(value.name), str(value.message)


def string_form(error: Any) -> str:
    """Render an error-like value as ``"Name: message"``."""
    name, message = _error_parts(error)
    return f"{name}: {message}" if message else name


def _to_jsonable(value: Any) -> Any:
    if isinstance(value, BaseException):
        name, message = _error_parts(value)
        return {"name": name, "message": message}
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if hasattr(value, "model_dump") and not isinstance(value, type):
        return value.model_dump(mode="json")
    if isinstance(value, Mapping):
        return dict(value)
    if isinstance(value, Set):
        return list(value)
    return repr(value)


def flatten(value: Any) -> Any:
    """Serialize structured values to indented JSON; pass primitives through.

    Key order is kept as given. Anything JSON cannot encode (circular
    references, non-string keys) falls back to ``repr``.
    """
    if isinstance(value, _PRIMITIVES):
        return value
    try:
        return json.dumps(value, indent=2, default=_to_jsonable, ensure_ascii=False)
    except (TypeError, ValueError):
        return repr(value)


def normalize(args: Sequence[Any]) -> LogRecord:
    """Turn the positional arguments of a log call into a ``LogRecord``."""
    args = tuple(args)
    error = next((arg for arg in args if is_error_like(arg)), _MISSING)
    has_error = error is not _MISSING

    error_payload = flatten(error) if has_error else None
    data = {"args": [flatten(arg) for arg in args]} if len(args) > 1 else None

    if has_error and len(args) == 1:
        return LogRecord(
            kind=RecordKind.SINGLE_ERROR,
            messages=(string_form(error),),
            error_payload=error_payload,
            error=error,
        )
    kind = RecordKind.MULTI_ARG if len(args) > 1 else RecordKind.PLAIN_MESSAGES
    return LogRecord(
        kind=kind,
        messages=args,
        data=data,
        error_payload=error_payload,
        error=error if has_error else None,
    )


__all__ = [
    "LogRecord",
    "RecordKind",
    "flatten",
    "is_error_like",
    "normalize",
    "string_form",
]
