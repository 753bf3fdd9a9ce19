"""Request telemetry: transaction naming for New Relic.

When NEW_RELIC_LICENSE_KEY is set and the ``newrelic`` agent is installed, every
request is associated with the agent's current transaction and named after its
route. No-op otherwise. Callers treat every sink call as best-effort.

The agent only records transactions once it is running, so start the server
under the agent's launcher:

    NEW_RELIC_CONFIG_FILE=newrelic.ini newrelic-admin run-program storefront

Without it ``current_transaction()`` returns None and naming is a no-op.
"""

import logging
from typing import Any, Protocol

from storefront.core.config import Settings

logger = logging.getLogger(__name__)


class TelemetrySink(Protocol):
    """Narrow reporting interface the request wrapper talks to."""

    def attach_request(self, scope: dict[str, Any]) -> None: ...

    def set_transaction_name(self, name: str) -> None: ...


class NullTelemetrySink:
    def attach_request(self, scope: dict[str, Any]) -> None:
        pass

    def set_transaction_name(self, name: str) -> None:
        pass


class NewRelicTelemetrySink:
    """Forward to ``newrelic.agent``."""

    def __init__(self, agent: Any) -> None:
        self._agent = agent

    def attach_request(self, scope: dict[str, Any]) -> None:
        scope["newrelic.transaction"] = self._agent.current_transaction()

    def set_transaction_name(self, name: str) -> None:
        self._agent.set_transaction_name(name)


def get_telemetry_sink(settings: Settings) -> TelemetrySink:
    """Return the New Relic sink when configured and importable, else a no-op sink."""
    if not settings.new_relic_license_key.get_secret_value():
        return NullTelemetrySink()
    try:
        import newrelic.agent  # noqa: PLC0415
    except ImportError:
        logger.warning("newrelic not installed; telemetry disabled")
        return NullTelemetrySink()
    return NewRelicTelemetrySink(newrelic.agent)


__all__ = ["NewRelicTelemetrySink", "NullTelemetrySink", "TelemetrySink", "get_telemetry_sink"]
