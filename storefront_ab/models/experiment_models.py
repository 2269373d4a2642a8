"""
Core data models for the storefront A/B dispatch layer.

These models define the structure of visitor assignments, cart line items,
canonical analytics envelopes and the relay ingestion contract.
"""

import os
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import List, Optional, Dict, Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Variant(str, Enum):
    """Experiment arms, valued with the tokens stored in the ab-group cookie"""
    CONTROL = "controle"  # arm A
    TEST = "teste"        # arm B

    @classmethod
    def parse(cls, raw: Optional[str]) -> Optional["Variant"]:
        """Return the arm for a raw cookie value, or None if it is not a valid token"""
        if raw is None:
            return None
        try:
            return cls(raw.strip())
        except ValueError:
            return None


class Channel(str, Enum):
    """Delivery channels for analytics events"""
    DIRECT_TAG = "direct_tag"
    RELAY = "relay"


VARIANT_CHANNELS = {
    Variant.CONTROL: Channel.DIRECT_TAG,
    Variant.TEST: Channel.RELAY,
}


def channel_for(variant: Variant) -> Channel:
    """Map an arm to its delivery channel"""
    return VARIANT_CHANNELS[variant]


class EventName(str, Enum):
    """Closed vocabulary of GA4 e-commerce events"""
    VIEW_ITEM_LIST = "view_item_list"
    SELECT_ITEM = "select_item"
    VIEW_ITEM = "view_item"
    ADD_TO_CART = "add_to_cart"
    VIEW_CART = "view_cart"
    BEGIN_CHECKOUT = "begin_checkout"
    PURCHASE = "purchase"
    PAGE_VIEW = "page_view"


class ActionKind(str, Enum):
    """Storefront actions that produce analytics events"""
    LIST_VIEWED = "list_viewed"
    ITEM_SELECTED = "item_selected"
    ITEM_VIEWED = "item_viewed"
    ADDED_TO_CART = "added_to_cart"
    CART_VIEWED = "cart_viewed"
    CHECKOUT_BEGUN = "checkout_begun"
    PURCHASE_COMPLETED = "purchase_completed"
    PAGE_VIEWED = "page_viewed"


ACTION_EVENTS = {
    ActionKind.LIST_VIEWED: EventName.VIEW_ITEM_LIST,
    ActionKind.ITEM_SELECTED: EventName.SELECT_ITEM,
    ActionKind.ITEM_VIEWED: EventName.VIEW_ITEM,
    ActionKind.ADDED_TO_CART: EventName.ADD_TO_CART,
    ActionKind.CART_VIEWED: EventName.VIEW_CART,
    ActionKind.CHECKOUT_BEGUN: EventName.BEGIN_CHECKOUT,
    ActionKind.PURCHASE_COMPLETED: EventName.PURCHASE,
    ActionKind.PAGE_VIEWED: EventName.PAGE_VIEW,
}


# Configuration

class ExperimentConfig(BaseModel):
    """Configuration for the experiment, cookies and dispatch"""
    # Assignment cookie
    assignment_cookie: str = "ab-group"
    assignment_max_age: int = 30 * 24 * 60 * 60  # 30 days
    default_variant: Variant = Variant.CONTROL

    # Durable first-party identifier
    fpid_cookie: str = "fpid"
    fpid_max_age: int = 400 * 24 * 60 * 60  # ~13 months
    fpid_preview_length: int = 10

    # Cart state
    cart_cookie: str = "cart"
    cart_max_age: int = 7 * 24 * 60 * 60  # 7 days

    # Store economics
    currency: str = "BRL"
    free_shipping_threshold: float = 200.0
    shipping_fee: float = 15.99
    tax: float = 0.0

    # Dispatch
    relay_path: str = "/track"
    relay_endpoint: str = "http://localhost:8000/track"
    relay_timeout: float = 5.0
    tag_queue_size: int = 100

    @classmethod
    def from_env(cls) -> "ExperimentConfig":
        """Build a config, overriding defaults with environment variables"""
        defaults = cls()
        return cls(
            assignment_cookie=os.getenv("AB_COOKIE_NAME", defaults.assignment_cookie),
            default_variant=Variant(os.getenv("AB_DEFAULT_VARIANT", defaults.default_variant.value)),
            fpid_cookie=os.getenv("FPID_COOKIE_NAME", defaults.fpid_cookie),
            cart_cookie=os.getenv("CART_COOKIE_NAME", defaults.cart_cookie),
            currency=os.getenv("STORE_CURRENCY", defaults.currency),
            free_shipping_threshold=float(
                os.getenv("FREE_SHIPPING_THRESHOLD", defaults.free_shipping_threshold)
            ),
            shipping_fee=float(os.getenv("SHIPPING_FEE", defaults.shipping_fee)),
            relay_endpoint=os.getenv("RELAY_ENDPOINT", defaults.relay_endpoint),
            relay_timeout=float(os.getenv("RELAY_TIMEOUT", defaults.relay_timeout)),
        )


# Cookie models

class CookieWrite(BaseModel):
    """Instruction to set a cookie on the outgoing response"""
    model_config = ConfigDict(frozen=True)

    name: str
    value: str
    max_age: int
    http_only: bool = False
    same_site: str = "lax"
    path: str = "/"

    def apply(self, response) -> None:
        """Write this cookie onto a Starlette/FastAPI response"""
        response.set_cookie(
            key=self.name,
            value=self.value,
            max_age=self.max_age,
            path=self.path,
            httponly=self.http_only,
            samesite=self.same_site,
        )


class VisitorSession(BaseModel):
    """Experiment assignment for the current visitor"""
    variant: Variant
    assigned_at: Optional[datetime] = None  # set only when assigned on this request
    is_new: bool = False

    @property
    def channel(self) -> Channel:
        return channel_for(self.variant)


# Catalog and cart models

class Product(BaseModel):
    """Product display data, as provided by the catalog"""
    id: str
    slug: str
    name: str
    price: float = Field(ge=0.0)
    category: Optional[str] = None
    brand: Optional[str] = None
    image: Optional[str] = None
    sizes: List[str] = Field(default_factory=list)
    in_stock: bool = True


class LineItem(BaseModel):
    """One line of the cart, unique by product and size"""
    product_id: str
    size: Optional[str] = None
    name: str
    unit_price: float = Field(ge=0.0)
    quantity: int = Field(default=1, ge=1)
    category: Optional[str] = None
    brand: Optional[str] = None
    slug: Optional[str] = None
    image: Optional[str] = None

    @property
    def line_id(self) -> str:
        """Cart key: product id, suffixed with the size when one was chosen"""
        if self.size:
            return f"{self.product_id}-{self.size}"
        return self.product_id

    @property
    def subtotal(self) -> float:
        return self.unit_price * self.quantity

    @classmethod
    def from_product(
        cls,
        product: Product,
        quantity: int = 1,
        size: Optional[str] = None
    ) -> "LineItem":
        return cls(
            product_id=product.id,
            size=size,
            name=product.name,
            unit_price=product.price,
            quantity=quantity,
            category=product.category,
            brand=product.brand,
            slug=product.slug,
            image=product.image,
        )


class Item(BaseModel):
    """Flattened GA4 item projection"""
    item_id: str
    item_name: str
    item_category: Optional[str] = None
    item_brand: Optional[str] = None
    item_variant: Optional[str] = None
    price: float
    quantity: int = Field(default=1, ge=1)


# Event models

def _freeze(value: Any) -> Any:
    if isinstance(value, Mapping):
        return MappingProxyType({k: _freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(v) for v in value)
    return value


def _thaw(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: _thaw(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return [_thaw(v) for v in value]
    return value


class CanonicalEnvelope(BaseModel):
    """
    Normalized, variant-tagged analytics event ready for dispatch.

    Attributes are stored as read-only mappings and tuples all the way down;
    parameters() hands each channel its own plain copy.
    """
    model_config = ConfigDict(frozen=True)

    event_name: EventName
    attributes: Mapping[str, Any] = Field(default_factory=dict, validate_default=True)
    emitted_at: datetime = Field(default_factory=utcnow)
    variant: Optional[Variant] = None

    @field_validator("attributes", mode="after")
    @classmethod
    def freeze_attributes(cls, v):
        return _freeze(v)

    def parameters(self) -> Dict[str, Any]:
        """Attributes as sent to a channel, tagged with the experiment arm"""
        params = _thaw(self.attributes)
        if self.variant is not None:
            params["exp_variant_string"] = self.variant.value
        return params


class PageContext(BaseModel):
    """Browser context sent along with relayed events"""
    page_url: str = ""
    page_title: str = ""
    user_agent: str = ""
    timestamp: datetime = Field(default_factory=utcnow)


# Relay request/response models

class TrackRequest(BaseModel):
    """Body of POST /track"""
    event_name: EventName
    parameters: Dict[str, Any] = Field(default_factory=dict)
    page_url: str = ""
    page_title: str = ""
    timestamp: Optional[datetime] = None
    user_agent: str = ""

    @field_validator("event_name", mode="before")
    @classmethod
    def event_name_present(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            raise ValueError("event_name is required")
        return v


class TrackResponse(BaseModel):
    """Acknowledgement from POST /track"""
    status: str = "success"
    fpid: str


class TrackStatus(BaseModel):
    """Response from GET /track"""
    status: str = "ok"
    fpid_exists: bool
    fpid: Optional[str] = None


class TrackError(BaseModel):
    """Error body returned by the relay endpoint"""
    status: str = "error"
    message: str


class ForwardedEvent(BaseModel):
    """Event as handed to a collector forwarder, keyed by the durable identifier"""
    fpid: str
    event_name: EventName
    parameters: Dict[str, Any] = Field(default_factory=dict)
    page_url: str = ""
    page_title: str = ""
    user_agent: str = ""
    timestamp: Optional[datetime] = None
    received_at: datetime = Field(default_factory=utcnow)
