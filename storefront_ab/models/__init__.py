"""Storefront A/B dispatch models"""

from .experiment_models import (
    Variant,
    Channel,
    EventName,
    ActionKind,
    ACTION_EVENTS,
    VARIANT_CHANNELS,
    channel_for,
    ExperimentConfig,
    CookieWrite,
    VisitorSession,
    Product,
    LineItem,
    Item,
    CanonicalEnvelope,
    PageContext,
    TrackRequest,
    TrackResponse,
    TrackStatus,
    TrackError,
    ForwardedEvent,
)

__all__ = [
    "Variant",
    "Channel",
    "EventName",
    "ActionKind",
    "ACTION_EVENTS",
    "VARIANT_CHANNELS",
    "channel_for",
    "ExperimentConfig",
    "CookieWrite",
    "VisitorSession",
    "Product",
    "LineItem",
    "Item",
    "CanonicalEnvelope",
    "PageContext",
    "TrackRequest",
    "TrackResponse",
    "TrackStatus",
    "TrackError",
    "ForwardedEvent",
]
