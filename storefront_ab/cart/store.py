"""
Cart state persisted in a client-side cookie.

The cart is an ordered list of line items, unique by product and size. The
full list is serialized back to storage on every mutation; derived totals are
always recomputed.
"""

import json
import logging
from typing import Dict, List, Mapping, Optional, Protocol, Union
from urllib.parse import quote, unquote

from pydantic import ValidationError as SchemaError

from ..errors import PersistenceError, ValidationError
from ..models.experiment_models import CookieWrite, ExperimentConfig, LineItem, Product

logger = logging.getLogger(__name__)


class CartStorage(Protocol):
    def read(self) -> Optional[str]: ...

    def write(self, raw: str) -> None: ...


class InMemoryCartStorage:
    """Cart storage held in memory (tests, server-side sessions)"""

    def __init__(self, raw: Optional[str] = None):
        self.raw = raw
        self.writes = 0

    def read(self) -> Optional[str]:
        return self.raw

    def write(self, raw: str) -> None:
        self.raw = raw
        self.writes += 1


class CookieCartStorage:
    """
    Cart storage backed by the ``cart`` cookie.

    Reads from the request cookies; the last write is exposed as a
    CookieWrite to apply on the response.
    """

    def __init__(self, cookies: Mapping[str, str], config: ExperimentConfig = None):
        self.config = config or ExperimentConfig()
        self._raw = cookies.get(self.config.cart_cookie)
        self.cookie_write: Optional[CookieWrite] = None

    def read(self) -> Optional[str]:
        return self._raw

    def write(self, raw: str) -> None:
        self._raw = raw
        self.cookie_write = CookieWrite(
            name=self.config.cart_cookie,
            value=raw,
            max_age=self.config.cart_max_age,
            http_only=False,
        )


def encode_items(items: List[LineItem]) -> str:
    """Compact, URL-encoded JSON form of the line items"""
    data = [item.model_dump(exclude_none=True) for item in items]
    return quote(json.dumps(data, separators=(",", ":"), ensure_ascii=False), safe="")


def decode_items(raw: str) -> List[LineItem]:
    try:
        data = json.loads(unquote(raw))
    except json.JSONDecodeError as e:
        raise PersistenceError(f"Cart state is not valid JSON: {e}")

    if not isinstance(data, list):
        raise PersistenceError("Cart state must be a list of line items")

    try:
        return [LineItem.model_validate(entry) for entry in data]
    except SchemaError as e:
        raise PersistenceError(f"Cart state has an invalid line item: {e}")


def _check_quantity(quantity: int) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError(f"Quantity must be a whole number, got {quantity!r}")


def _rebuild(line: LineItem, **changes) -> LineItem:
    """Copy a line with changes applied, re-running field validation"""
    try:
        return LineItem.model_validate({**line.model_dump(), **changes})
    except SchemaError as e:
        raise ValidationError(f"Invalid line item {line.line_id}: {e}")


class Cart:
    """Mutable cart rehydrated from and saved back to a CartStorage"""

    def __init__(self, storage: CartStorage, config: ExperimentConfig = None):
        self.storage = storage
        self.config = config or ExperimentConfig()
        self.items: List[LineItem] = self.load()

    def load(self) -> List[LineItem]:
        """Read persisted line items; missing or corrupt state yields an empty cart"""
        raw = self.storage.read()
        if not raw:
            return []
        try:
            return decode_items(raw)
        except PersistenceError as e:
            logger.warning(f"Discarding unreadable cart state: {e.message}")
            return []

    def save(self, items: Optional[List[LineItem]] = None) -> None:
        if items is not None:
            self.items = list(items)
        self.storage.write(encode_items(self.items))

    def add(
        self,
        item: Union[Product, LineItem],
        quantity: int = 1,
        size: Optional[str] = None
    ) -> LineItem:
        """
        Add a product to the cart.

        An existing line with the same product and size has its quantity
        incremented instead of being duplicated.

        Returns:
            The resulting line item
        """
        _check_quantity(quantity)
        if quantity < 1:
            raise ValidationError(f"Quantity must be at least 1, got {quantity}")

        if isinstance(item, Product):
            line = LineItem.from_product(item, quantity=quantity, size=size)
        else:
            line = _rebuild(item, quantity=quantity, size=size or item.size)

        for index, existing in enumerate(self.items):
            if existing.line_id == line.line_id:
                merged = _rebuild(existing, quantity=existing.quantity + quantity)
                self.items[index] = merged
                self.save()
                return merged

        self.items.append(line)
        self.save()
        return line

    def update_quantity(self, line_id: str, quantity: int) -> None:
        """
        Set a line's quantity; zero or less removes the line.

        Raises:
            ValidationError: quantity is not a whole number (cart left unchanged)
        """
        _check_quantity(quantity)
        if quantity <= 0:
            self.remove(line_id)
            return

        self.items = [
            _rebuild(item, quantity=quantity) if item.line_id == line_id else item
            for item in self.items
        ]
        self.save()

    def remove(self, line_id: str) -> None:
        self.items = [item for item in self.items if item.line_id != line_id]
        self.save()

    def clear(self) -> None:
        self.items = []
        self.save()

    def checkout_completed(self) -> None:
        """Empty the cart once a purchase has gone through"""
        logger.info(f"Purchase completed, clearing {self.item_count} item(s) from cart")
        self.clear()

    def get(self, line_id: str) -> Optional[LineItem]:
        for item in self.items:
            if item.line_id == line_id:
                return item
        return None

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)

    @property
    def total_value(self) -> float:
        return round(sum(item.subtotal for item in self.items), 2)

    def to_dict(self) -> Dict:
        return {
            "items": [item.model_dump(exclude_none=True) for item in self.items],
            "item_count": self.item_count,
            "total_value": self.total_value,
        }
