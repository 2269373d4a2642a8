"""
Delivery channels for canonical envelopes.

- Direct-tag: hands events to the in-page tagging runtime (arm A)
- Relay: POSTs events to the relay ingestion endpoint (arm B)
"""

import logging
from collections import deque
from typing import Any, Callable, Deque, Dict, Optional, Protocol, Tuple

import httpx

from ..errors import DispatchError
from ..models.experiment_models import CanonicalEnvelope, ExperimentConfig, PageContext

logger = logging.getLogger(__name__)

TagEmit = Callable[[str, Dict[str, Any]], None]


class DirectTagSink(Protocol):
    def emit(self, event_name: str, parameters: Dict[str, Any]) -> None: ...


class TagRuntimeSink:
    """
    Direct-tag sink in front of a tagging runtime's emit function.

    The runtime is injected once it has finished loading. Events emitted
    before that are queued (oldest dropped when the queue is full) and
    flushed on attach. Runtime failures are logged, never raised.
    """

    def __init__(self, runtime_emit: Optional[TagEmit] = None, max_queue: int = 100):
        self._runtime_emit = runtime_emit
        self._pending: Deque[Tuple[str, Dict[str, Any]]] = deque(maxlen=max_queue)

    @property
    def ready(self) -> bool:
        return self._runtime_emit is not None

    @property
    def pending(self) -> int:
        return len(self._pending)

    def attach(self, runtime_emit: TagEmit) -> None:
        """Register the loaded runtime and flush queued events to it"""
        self._runtime_emit = runtime_emit
        while self._pending:
            event_name, parameters = self._pending.popleft()
            self._call_runtime(event_name, parameters)

    def emit(self, event_name: str, parameters: Dict[str, Any]) -> None:
        if not self.ready:
            if len(self._pending) == self._pending.maxlen:
                dropped, _ = self._pending[0]
                logger.warning(f"Tag runtime not ready and queue full, dropping {dropped}")
            self._pending.append((event_name, parameters))
            return
        self._call_runtime(event_name, parameters)

    def _call_runtime(self, event_name: str, parameters: Dict[str, Any]) -> None:
        try:
            self._runtime_emit(event_name, parameters)
            logger.debug(f"Event sent via tag runtime: {event_name}")
        except Exception as e:
            logger.error(f"Tag runtime failed on {event_name}: {e}")


class RelayChannel:
    """
    Client for the relay ingestion endpoint.

    Delivery is at-most-once: transport failures are raised as
    DispatchError and never retried.
    """

    def __init__(
        self,
        endpoint: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        config: ExperimentConfig = None
    ):
        self.config = config or ExperimentConfig()
        self.endpoint = endpoint or self.config.relay_endpoint
        self.client = client or httpx.AsyncClient(timeout=self.config.relay_timeout)
        logger.info(f"RelayChannel initialized: {self.endpoint}")

    def build_payload(
        self,
        envelope: CanonicalEnvelope,
        context: Optional[PageContext] = None
    ) -> Dict[str, Any]:
        """Serialize an envelope and its page context into the /track body"""
        context = context or PageContext(timestamp=envelope.emitted_at)
        return {
            "event_name": envelope.event_name.value,
            "parameters": envelope.parameters(),
            "page_url": context.page_url,
            "page_title": context.page_title,
            "timestamp": context.timestamp.isoformat(),
            "user_agent": context.user_agent,
        }

    async def send(
        self,
        envelope: CanonicalEnvelope,
        context: Optional[PageContext] = None
    ) -> Dict[str, Any]:
        """
        Send one envelope to the relay endpoint.

        Returns:
            The endpoint's acknowledgement body

        Raises:
            DispatchError: on network failure, non-2xx status or unreadable body
        """
        payload = self.build_payload(envelope, context)
        try:
            response = await self.client.post(self.endpoint, json=payload)
            response.raise_for_status()
            result = response.json()
        except httpx.HTTPError as e:
            logger.error(f"Relay API error on {envelope.event_name.value}: {e}")
            raise DispatchError(f"Relay delivery failed: {e}")
        except ValueError as e:
            logger.error(f"Relay returned an unreadable body: {e}")
            raise DispatchError(f"Relay delivery failed: {e}")

        logger.info(f"Event relayed: {envelope.event_name.value}")
        return result

    async def close(self):
        """Close HTTP client"""
        await self.client.aclose()
        logger.info("RelayChannel closed")
