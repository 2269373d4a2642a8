"""Unit tests for the dispatch router and its channels"""

import json
from datetime import datetime, timezone

import httpx
import pytest

from storefront_ab.dispatch import DispatchRouter, RelayChannel, TagRuntimeSink
from storefront_ab.errors import DispatchError, MissingVariantError
from storefront_ab.events import EventNormalizer
from storefront_ab.models import CanonicalEnvelope, Channel, EventName, PageContext, Variant

from .conftest import RecordingSink

RELAY_URL = "http://relay.test/track"


class RelayRecorder:
    """MockTransport handler recording relay requests"""

    def __init__(self, status_code: int = 200, error: Exception = None):
        self.status_code = status_code
        self.error = error
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status_code, json={"status": "success", "fpid": "1.2"})

    @property
    def bodies(self):
        return [json.loads(r.content) for r in self.requests]


def make_router(recorder: RelayRecorder, config):
    sink = RecordingSink()
    client = httpx.AsyncClient(transport=httpx.MockTransport(recorder))
    relay = RelayChannel(RELAY_URL, client=client, config=config)
    return DispatchRouter(sink, relay), sink


def page_view(variant, config):
    return EventNormalizer(variant, config).page_view("Home", "https://shop.example.com/", "/")


class TestChannelExclusivity:
    """Each envelope reaches exactly one channel"""

    @pytest.mark.asyncio
    async def test_control_goes_to_direct_tag_only(self, config):
        recorder = RelayRecorder()
        router, sink = make_router(recorder, config)

        channel = await router.dispatch(page_view(Variant.CONTROL, config))

        assert channel is Channel.DIRECT_TAG
        assert len(sink.calls) == 1
        assert recorder.requests == []

        event_name, parameters = sink.calls[0]
        assert event_name == "page_view"
        assert parameters["exp_variant_string"] == "controle"

    @pytest.mark.asyncio
    async def test_test_goes_to_relay_only(self, config):
        recorder = RelayRecorder()
        router, sink = make_router(recorder, config)

        channel = await router.dispatch(page_view(Variant.TEST, config))

        assert channel is Channel.RELAY
        assert sink.calls == []
        assert len(recorder.requests) == 1
        assert str(recorder.requests[0].url) == RELAY_URL

    @pytest.mark.asyncio
    async def test_mixed_stream_is_partitioned(self, config, sneaker):
        recorder = RelayRecorder()
        router, sink = make_router(recorder, config)
        control = EventNormalizer(Variant.CONTROL, config)
        test = EventNormalizer(Variant.TEST, config)

        for envelope in [control.view_item(sneaker), test.view_item(sneaker),
                         control.add_to_cart(sneaker), test.add_to_cart(sneaker)]:
            await router.dispatch(envelope)

        assert all(p["exp_variant_string"] == "controle" for _, p in sink.calls)
        assert all(b["parameters"]["exp_variant_string"] == "teste" for b in recorder.bodies)
        assert len(sink.calls) == len(recorder.requests) == 2

    @pytest.mark.asyncio
    async def test_missing_variant_rejected(self, config):
        recorder = RelayRecorder()
        router, sink = make_router(recorder, config)

        with pytest.raises(MissingVariantError):
            await router.dispatch(page_view(None, config))

        assert sink.calls == []
        assert recorder.requests == []


class TestRelayFailures:
    """Relay transport failures surface as DispatchError, without retry"""

    @pytest.mark.asyncio
    async def test_server_error(self, config):
        recorder = RelayRecorder(status_code=500)
        router, _ = make_router(recorder, config)

        with pytest.raises(DispatchError):
            await router.dispatch(page_view(Variant.TEST, config))

        assert len(recorder.requests) == 1

    @pytest.mark.asyncio
    async def test_connection_error(self, config):
        recorder = RelayRecorder(error=httpx.ConnectError("connection refused"))
        router, _ = make_router(recorder, config)

        with pytest.raises(DispatchError, match="Relay delivery failed"):
            await router.dispatch(page_view(Variant.TEST, config))

        assert len(recorder.requests) == 1

    @pytest.mark.asyncio
    async def test_fire_absorbs_failures(self, config):
        router, _ = make_router(RelayRecorder(status_code=503), config)

        assert await router.fire(page_view(Variant.TEST, config)) is False
        assert await router.fire(page_view(None, config)) is False

    @pytest.mark.asyncio
    async def test_fire_reports_success(self, config):
        router, _ = make_router(RelayRecorder(), config)

        assert await router.fire(page_view(Variant.TEST, config)) is True
        assert await router.fire(page_view(Variant.CONTROL, config)) is True


class FailingSink:
    """Direct-tag sink whose runtime raises on every emit"""

    def __init__(self):
        self.attempts = 0

    def emit(self, event_name, parameters):
        self.attempts += 1
        raise RuntimeError("sink down")


class TestDirectTagFailures:
    """Direct-tag sink failures surface as DispatchError"""

    @pytest.mark.asyncio
    async def test_sink_failure_becomes_dispatch_error(self, config):
        recorder = RelayRecorder()
        sink = FailingSink()
        relay = RelayChannel(RELAY_URL, client=httpx.AsyncClient(transport=httpx.MockTransport(recorder)), config=config)
        router = DispatchRouter(sink, relay)

        with pytest.raises(DispatchError, match="Direct tag delivery failed"):
            await router.dispatch(page_view(Variant.CONTROL, config))

        assert sink.attempts == 1
        assert recorder.requests == []

    @pytest.mark.asyncio
    async def test_fire_absorbs_sink_failure(self, config):
        recorder = RelayRecorder()
        relay = RelayChannel(RELAY_URL, client=httpx.AsyncClient(transport=httpx.MockTransport(recorder)), config=config)
        router = DispatchRouter(FailingSink(), relay)

        assert await router.fire(page_view(Variant.CONTROL, config)) is False
        assert recorder.requests == []


class TestRelayChannel:
    """Tests for the relay request body"""

    @pytest.mark.asyncio
    async def test_payload_includes_page_context(self, config, sneaker):
        recorder = RelayRecorder()
        router, _ = make_router(recorder, config)
        envelope = EventNormalizer(Variant.TEST, config).view_item(sneaker)
        context = PageContext(
            page_url="https://shop.example.com/produto/air-max-revolution",
            page_title="Air Max Revolution - TenisShop",
            user_agent="Mozilla/5.0 (iPhone)",
            timestamp=datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc),
        )

        await router.dispatch(envelope, context)

        body = recorder.bodies[0]
        assert body["event_name"] == "view_item"
        assert body["page_url"] == context.page_url
        assert body["page_title"] == context.page_title
        assert body["user_agent"] == "Mozilla/5.0 (iPhone)"
        assert body["timestamp"] == "2026-10-19T12:00:00+00:00"
        assert body["parameters"]["currency"] == "BRL"
        assert body["parameters"]["items"][0]["item_id"] == "1"

    def test_payload_without_context_uses_emit_time(self, config):
        relay = RelayChannel(RELAY_URL, client=httpx.AsyncClient(), config=config)
        envelope = CanonicalEnvelope(event_name=EventName.PAGE_VIEW, variant=Variant.TEST)

        payload = relay.build_payload(envelope)

        assert payload["timestamp"] == envelope.emitted_at.isoformat()
        assert payload["page_url"] == ""


class TestTagRuntimeSink:
    """Tests for the direct-tag sink readiness handling"""

    def test_emits_directly_when_ready(self):
        calls = []
        sink = TagRuntimeSink(lambda name, params: calls.append(name))

        sink.emit("page_view", {})

        assert calls == ["page_view"]

    def test_queues_until_runtime_attached(self):
        calls = []
        sink = TagRuntimeSink()

        sink.emit("page_view", {})
        sink.emit("view_item_list", {})
        assert sink.ready is False
        assert sink.pending == 2

        sink.attach(lambda name, params: calls.append(name))

        assert calls == ["page_view", "view_item_list"]
        assert sink.pending == 0

    def test_full_queue_drops_oldest(self):
        calls = []
        sink = TagRuntimeSink(max_queue=2)

        for name in ["page_view", "view_item", "add_to_cart"]:
            sink.emit(name, {})
        sink.attach(lambda name, params: calls.append(name))

        assert calls == ["view_item", "add_to_cart"]

    def test_runtime_failure_does_not_raise(self, caplog):
        def broken(name, params):
            raise RuntimeError("gtag not defined")

        sink = TagRuntimeSink(broken)
        sink.emit("page_view", {})

        assert "Tag runtime failed on page_view" in caplog.text
