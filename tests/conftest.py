"""Shared fixtures for storefront_ab tests"""

import pytest

from storefront_ab.models import ExperimentConfig, Product


class FixedEntropy:
    """Entropy source returning fixed draws"""

    def __init__(self, bit: int = 0, value: int = 123456789):
        self.bit = bit
        self.value = value
        self.draws = 0

    def random_bit(self) -> int:
        self.draws += 1
        return self.bit

    def randbelow(self, n: int) -> int:
        self.draws += 1
        return self.value % n


class BrokenEntropy:
    """Entropy source that is unavailable"""

    def random_bit(self) -> int:
        raise OSError("entropy pool unavailable")

    def randbelow(self, n: int) -> int:
        raise OSError("entropy pool unavailable")


class RecordingSink:
    """Direct-tag sink that records every emit"""

    def __init__(self):
        self.calls = []

    def emit(self, event_name, parameters):
        self.calls.append((event_name, parameters))


class RecordingForwarder:
    """Forwarder that keeps every event it receives"""

    def __init__(self):
        self.events = []

    async def forward(self, event):
        self.events.append(event)


@pytest.fixture
def config():
    return ExperimentConfig()


@pytest.fixture
def sneaker():
    return Product(
        id="1",
        slug="air-max-revolution",
        name="Air Max Revolution",
        price=299.99,
        category="Running",
        brand="SportMax",
        image="/placeholder-sneaker-1.jpg",
        sizes=["38", "39", "40", "41", "42", "43", "44"],
    )


@pytest.fixture
def casual():
    return Product(
        id="2",
        slug="urban-street-classic",
        name="Urban Street Classic",
        price=199.99,
        category="Casual",
        brand="StreetWear",
    )
