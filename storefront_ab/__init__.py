"""
Storefront A/B Analytics Dispatch

Assigns visitors to one of two experiment arms and routes e-commerce events
to the arm's delivery channel: the in-page tagging runtime (control) or the
first-party relay endpoint (test).
"""

from .errors import (
    TrackingError,
    ValidationError,
    MissingVariantError,
    DispatchError,
    PersistenceError
)
from .entropy import EntropySource, SystemEntropy, SeededEntropy
from .models import (
    Variant,
    Channel,
    ActionKind,
    EventName,
    ExperimentConfig,
    CanonicalEnvelope,
    PageContext,
    Product,
    LineItem
)
from .gating import VariantGate, VariantGateMiddleware
from .identity import IdentifierStore
from .cart import Cart, CookieCartStorage, InMemoryCartStorage, order_totals
from .events import EventNormalizer
from .dispatch import DispatchRouter, RelayChannel, TagRuntimeSink

__version__ = "1.0.0"

__all__ = [
    # Errors
    "TrackingError",
    "ValidationError",
    "MissingVariantError",
    "DispatchError",
    "PersistenceError",
    # Entropy
    "EntropySource",
    "SystemEntropy",
    "SeededEntropy",
    # Models
    "Variant",
    "Channel",
    "ActionKind",
    "EventName",
    "ExperimentConfig",
    "CanonicalEnvelope",
    "PageContext",
    "Product",
    "LineItem",
    # Components
    "VariantGate",
    "VariantGateMiddleware",
    "IdentifierStore",
    "Cart",
    "CookieCartStorage",
    "InMemoryCartStorage",
    "order_totals",
    "EventNormalizer",
    "DispatchRouter",
    "RelayChannel",
    "TagRuntimeSink",
]
