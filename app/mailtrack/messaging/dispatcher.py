from __future__ import annotations

import logging
from typing import Mapping, Optional

from mailtrack.errors import TransportError
from mailtrack.tracking.models import TrackingKind
from mailtrack.tracking.registry import TrackingPolicySelector
from mailtrack.tracking.strategies.base import TrackingStrategy

from .models import DeliveryResult, Message
from .transports.base import Transport


logger = logging.getLogger("mailtrack.messaging.dispatcher")
debug_logger = logging.getLogger("mailtrack.debug.dispatcher")


class Dispatcher:
    """
    Send one message through the transport, then track it.

    Only the first delivery result is inspected. The transport is always handed
    a single message, so that is the intended element; it would not be safe for
    batch sends.

    Tracking runs after delivery has already happened. Errors raised while
    tracking are not caught here, so a caller that sees an exception from
    ``send`` must treat the message as sent but not necessarily tracked.
    """

    def __init__(
        self,
        transport: Transport,
        selector: TrackingPolicySelector,
        strategies: Mapping[TrackingKind, TrackingStrategy],
    ) -> None:
        self._transport = transport
        self._selector = selector
        self._strategies = dict(strategies)

    def send(self, message: Message) -> DeliveryResult:
        result = self._deliver(message)
        if not result.success:
            logger.warning(
                "Delivery via %s failed: %s",
                getattr(self._transport, "name", "transport"),
                result.detail,
            )
            return result

        kind = self._selector.select(message)
        strategy = self._strategy_for(kind)
        debug_logger.debug(
            "dispatcher.tracking_selected",
            extra={"kind": kind.value, "suppress_activity_link": message.suppress_activity_link},
        )
        if strategy is not None:
            strategy.track(message)
        return result

    def _deliver(self, message: Message) -> DeliveryResult:
        try:
            results = self._transport.deliver(message)
        except TransportError as exc:
            return DeliveryResult.failed(str(exc))
        if not results:
            return DeliveryResult.failed("transport returned no delivery result")
        return results[0]

    def _strategy_for(self, kind: TrackingKind) -> Optional[TrackingStrategy]:
        strategy = self._strategies.get(kind)
        if strategy is None:
            logger.warning("No tracking strategy registered for %s", kind.value)
        return strategy
