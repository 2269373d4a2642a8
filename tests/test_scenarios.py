"""End-to-end scenarios across gate, normalizer, router and relay endpoint"""

import re

import httpx
import pytest

from storefront_ab.cart import Cart, InMemoryCartStorage
from storefront_ab.dispatch import DispatchRouter, RelayChannel
from storefront_ab.events import EventNormalizer
from storefront_ab.gating import VariantGate
from storefront_ab.models import PageContext, Variant
from storefront_ab.relay import create_app

from .conftest import FixedEntropy, RecordingForwarder, RecordingSink

HOME_URL = "https://shop.example.com/"


def build_stack(config, forwarder):
    relay_app = create_app(config, forwarder=forwarder)
    client = httpx.AsyncClient(
        transport=httpx.ASGITransport(app=relay_app),
        base_url="http://testserver"
    )
    sink = RecordingSink()
    relay = RelayChannel("http://testserver/track", client=client, config=config)
    return DispatchRouter(sink, relay), sink, client


class TestHomePageVisit:
    """Fresh visitor lands on the home page"""

    @pytest.mark.asyncio
    async def test_test_arm_routes_to_relay_and_provisions_fpid(self, config, sneaker, casual):
        forwarder = RecordingForwarder()
        router, sink, client = build_stack(config, forwarder)

        session, cookie = VariantGate(config, FixedEntropy(bit=1)).assign({})
        assert session.variant is Variant.TEST
        assert cookie is not None

        normalizer = EventNormalizer(session.variant, config)
        context = PageContext(page_url=HOME_URL, page_title="TenisShop", user_agent="Safari")
        await router.dispatch(normalizer.page_view("TenisShop", HOME_URL, "/"), context)
        await router.dispatch(normalizer.view_item_list([sneaker, casual]), context)
        await client.aclose()

        assert sink.calls == []
        assert [e.event_name.value for e in forwarder.events] == ["page_view", "view_item_list"]

        fpid = client.cookies.get("fpid")
        assert re.match(r"^\d+\.\d+$", fpid)
        assert {e.fpid for e in forwarder.events} == {fpid}
        assert "ab-group" not in client.cookies

    @pytest.mark.asyncio
    async def test_control_arm_never_touches_relay(self, config, sneaker):
        forwarder = RecordingForwarder()
        router, sink, client = build_stack(config, forwarder)

        session, _ = VariantGate(config, FixedEntropy(bit=0)).assign({})
        normalizer = EventNormalizer(session.variant, config)
        await router.dispatch(normalizer.page_view("TenisShop", HOME_URL, "/"))
        await router.dispatch(normalizer.view_item_list([sneaker]))
        await client.aclose()

        assert [name for name, _ in sink.calls] == ["page_view", "view_item_list"]
        assert forwarder.events == []
        assert "fpid" not in client.cookies


class TestShoppingJourney:
    """Cart behaviour through to purchase"""

    def test_adding_same_product_twice(self, config, sneaker):
        cart = Cart(InMemoryCartStorage(), config)

        cart.add(sneaker)
        cart.add(sneaker)

        assert len(cart.items) == 1
        assert cart.items[0].quantity == 2
        assert cart.total_value == round(2 * sneaker.price, 2)

    @pytest.mark.asyncio
    async def test_purchase_is_relayed_and_cart_cleared(self, config, sneaker):
        forwarder = RecordingForwarder()
        router, _, client = build_stack(config, forwarder)
        cart = Cart(InMemoryCartStorage(), config)
        cart.add(sneaker, 1, size="42")
        normalizer = EventNormalizer(Variant.TEST, config)

        await router.dispatch(normalizer.begin_checkout(cart))
        await router.dispatch(normalizer.purchase(cart, "2026-00000042"))
        cart.checkout_completed()
        await client.aclose()

        purchase = forwarder.events[-1]
        assert purchase.event_name.value == "purchase"
        assert purchase.parameters["transaction_id"] == "2026-00000042"
        assert purchase.parameters["shipping"] == 0
        assert purchase.parameters["value"] == 299.99
        assert cart.items == []
        assert Cart(cart.storage, config).items == []
