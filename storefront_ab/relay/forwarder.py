"""
Collector forwarding extension point.

The relay endpoint hands every accepted event to a Forwarder after it has
acknowledged the request. The default forwarder only logs; a real pipeline
(e.g. a server-side tag manager or Measurement Protocol client) plugs in here
with the same contract.
"""

import json
import logging
from typing import Protocol

from ..models.experiment_models import ForwardedEvent

logger = logging.getLogger(__name__)


class Forwarder(Protocol):
    async def forward(self, event: ForwardedEvent) -> None: ...


class LoggingForwarder:
    """No-op forwarder that records what would have been sent"""

    async def forward(self, event: ForwardedEvent) -> None:
        record = {
            "client_id": event.fpid,
            "event": event.event_name.value,
            "parameters": event.parameters,
            "page_location": event.page_url,
            "page_title": event.page_title,
            "received_at": event.received_at.isoformat(),
        }
        logger.info(f"Collector forwarding not configured, event {event.event_name.value} kept local")
        logger.debug(f"Forward record: {json.dumps(record, default=str)}")
