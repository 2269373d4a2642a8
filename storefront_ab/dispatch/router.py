"""
Dispatch router: sends each envelope over exactly one channel.

The channel is a pure function of the envelope's arm (CONTROL -> direct tag,
TEST -> relay). An envelope without an arm is rejected rather than defaulted.
"""

import logging
from typing import Optional

from ..errors import DispatchError, MissingVariantError
from ..metrics import DISPATCHED_EVENTS
from ..models.experiment_models import CanonicalEnvelope, Channel, PageContext, channel_for
from .channels import DirectTagSink, RelayChannel

logger = logging.getLogger(__name__)


class DispatchRouter:
    """Routes canonical envelopes to the direct-tag sink or the relay channel"""

    def __init__(self, direct_sink: DirectTagSink, relay_channel: RelayChannel):
        self.direct_sink = direct_sink
        self.relay_channel = relay_channel

    def route(self, envelope: CanonicalEnvelope) -> Channel:
        if envelope.variant is None:
            raise MissingVariantError(
                f"Envelope {envelope.event_name.value} has no experiment variant"
            )
        return channel_for(envelope.variant)

    async def dispatch(
        self,
        envelope: CanonicalEnvelope,
        context: Optional[PageContext] = None
    ) -> Channel:
        """
        Deliver one envelope.

        Returns:
            The channel used

        Raises:
            MissingVariantError: envelope has no arm
            DispatchError: direct-tag sink or relay transport failure
        """
        channel = self.route(envelope)

        if channel is Channel.DIRECT_TAG:
            try:
                self.direct_sink.emit(envelope.event_name.value, envelope.parameters())
            except Exception as e:
                DISPATCHED_EVENTS.labels(channel=channel.value, status="failed").inc()
                logger.error(f"Direct tag sink failed on {envelope.event_name.value}: {e}")
                raise DispatchError(f"Direct tag delivery failed: {e}")
            DISPATCHED_EVENTS.labels(channel=channel.value, status="sent").inc()
            return channel

        try:
            await self.relay_channel.send(envelope, context)
        except DispatchError:
            DISPATCHED_EVENTS.labels(channel=channel.value, status="failed").inc()
            raise

        DISPATCHED_EVENTS.labels(channel=channel.value, status="sent").inc()
        return channel

    async def fire(
        self,
        envelope: CanonicalEnvelope,
        context: Optional[PageContext] = None
    ) -> bool:
        """
        Dispatch from the page-render path.

        Dispatch failures are logged and reported as False; analytics never
        breaks the storefront.
        """
        try:
            await self.dispatch(envelope, context)
            return True
        except MissingVariantError as e:
            logger.error(f"Dropping event: {e.message}")
        except DispatchError as e:
            logger.warning(f"Dropping event {envelope.event_name.value}: {e.message}")
        return False
