"""
Event normalizer: storefront actions -> canonical envelopes.

Each action kind maps to exactly one GA4 event name with a fixed set of
required attributes. The visitor's arm is attached here and only here.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from pydantic import ValidationError as SchemaError

from ..cart.checkout import order_totals
from ..cart.store import Cart
from ..errors import ValidationError
from ..models.experiment_models import (
    ACTION_EVENTS,
    ActionKind,
    CanonicalEnvelope,
    EventName,
    ExperimentConfig,
    Item,
    LineItem,
    Product,
    Variant
)


HOME_LIST_ID = "homepage_products"
HOME_LIST_NAME = "Produtos em Destaque"

# Required payload keys per event; currency is filled in by the normalizer
REQUIRED_ATTRIBUTES: Dict[EventName, List[str]] = {
    EventName.VIEW_ITEM_LIST: ["list_id", "list_name", "items"],
    EventName.SELECT_ITEM: ["list_id", "list_name", "items"],
    EventName.VIEW_ITEM: ["value", "items"],
    EventName.ADD_TO_CART: ["value", "items"],
    EventName.VIEW_CART: ["value", "items"],
    EventName.BEGIN_CHECKOUT: ["value", "items"],
    EventName.PURCHASE: ["transaction_id", "value", "tax", "shipping", "items"],
    EventName.PAGE_VIEW: ["page_title", "page_location", "page_path"],
}

CURRENCY_EVENTS = {
    EventName.VIEW_ITEM,
    EventName.ADD_TO_CART,
    EventName.VIEW_CART,
    EventName.BEGIN_CHECKOUT,
    EventName.PURCHASE,
}

# Payload keys renamed to their GA4 parameter names
ATTRIBUTE_NAMES = {
    "list_id": "item_list_id",
    "list_name": "item_list_name",
}

ItemLike = Union[Item, LineItem, Product, Mapping[str, Any]]


def project_item(item: ItemLike, quantity: Optional[int] = None) -> Item:
    """Flatten a product, cart line or mapping into a GA4 item"""
    if isinstance(item, Item):
        projected = item
    elif isinstance(item, LineItem):
        projected = Item(
            item_id=item.line_id,
            item_name=item.name,
            item_category=item.category,
            item_brand=item.brand,
            item_variant=item.size,
            price=item.unit_price,
            quantity=item.quantity,
        )
    elif isinstance(item, Product):
        projected = Item(
            item_id=item.id,
            item_name=item.name,
            item_category=item.category,
            item_brand=item.brand,
            price=item.price,
        )
    elif isinstance(item, Mapping):
        try:
            projected = Item.model_validate(dict(item))
        except SchemaError as e:
            raise ValidationError(f"Invalid item: {e}")
    else:
        raise ValidationError(f"Cannot project {type(item).__name__} into an item")

    if quantity is not None:
        projected = projected.model_copy(update={"quantity": quantity})
    return projected


class EventNormalizer:
    """
    Builds canonical envelopes for one visitor.

    The normalizer is bound to the visitor's arm at construction so callers
    never set it on individual events.
    """

    def __init__(self, variant: Optional[Variant], config: ExperimentConfig = None):
        self.variant = variant
        self.config = config or ExperimentConfig()

    def normalize(
        self,
        action_kind: Union[ActionKind, str],
        payload: Mapping[str, Any]
    ) -> CanonicalEnvelope:
        """
        Map a storefront action to its canonical envelope.

        Raises:
            ValidationError: unknown action kind, missing required attribute
                or malformed item
        """
        try:
            kind = ActionKind(action_kind)
        except ValueError:
            raise ValidationError(f"Unknown action kind: {action_kind!r}")

        event_name = ACTION_EVENTS[kind]
        missing = [key for key in REQUIRED_ATTRIBUTES[event_name] if payload.get(key) is None]
        if missing:
            raise ValidationError(
                f"{event_name.value} is missing required attribute(s): {', '.join(missing)}"
            )

        attributes: Dict[str, Any] = {}
        for key, value in payload.items():
            if key == "currency":
                continue
            if key == "items":
                if isinstance(value, (str, bytes, Mapping)) or not isinstance(value, Iterable):
                    raise ValidationError("items must be a list")
                value = [project_item(item).model_dump(exclude_none=True) for item in value]
            attributes[ATTRIBUTE_NAMES.get(key, key)] = value

        if event_name in CURRENCY_EVENTS:
            attributes["currency"] = self.config.currency

        return CanonicalEnvelope(
            event_name=event_name,
            attributes=attributes,
            variant=self.variant,
        )

    # Storefront helpers

    def page_view(self, title: str, location: str, path: str) -> CanonicalEnvelope:
        return self.normalize(ActionKind.PAGE_VIEWED, {
            "page_title": title,
            "page_location": location,
            "page_path": path,
        })

    def view_item_list(
        self,
        products: List[ItemLike],
        list_id: str = HOME_LIST_ID,
        list_name: str = HOME_LIST_NAME
    ) -> CanonicalEnvelope:
        return self.normalize(ActionKind.LIST_VIEWED, {
            "list_id": list_id,
            "list_name": list_name,
            "items": products,
        })

    def select_item(
        self,
        product: ItemLike,
        list_id: str = HOME_LIST_ID,
        list_name: str = HOME_LIST_NAME
    ) -> CanonicalEnvelope:
        return self.normalize(ActionKind.ITEM_SELECTED, {
            "list_id": list_id,
            "list_name": list_name,
            "items": [product],
        })

    def view_item(self, product: Product) -> CanonicalEnvelope:
        return self.normalize(ActionKind.ITEM_VIEWED, {
            "value": product.price,
            "items": [product],
        })

    def add_to_cart(self, product: Product, quantity: int = 1) -> CanonicalEnvelope:
        return self.normalize(ActionKind.ADDED_TO_CART, {
            "value": round(product.price * quantity, 2),
            "items": [project_item(product, quantity)],
        })

    def view_cart(self, cart: Cart) -> CanonicalEnvelope:
        return self.normalize(ActionKind.CART_VIEWED, {
            "value": cart.total_value,
            "items": cart.items,
        })

    def begin_checkout(self, cart: Cart) -> CanonicalEnvelope:
        totals = order_totals(cart, self.config)
        return self.normalize(ActionKind.CHECKOUT_BEGUN, {
            "value": totals.total,
            "items": cart.items,
        })

    def purchase(self, cart: Cart, transaction_id: str) -> CanonicalEnvelope:
        totals = order_totals(cart, self.config)
        return self.normalize(ActionKind.PURCHASE_COMPLETED, {
            "transaction_id": transaction_id,
            "value": totals.total,
            "tax": totals.tax,
            "shipping": totals.shipping,
            "items": cart.items,
        })
