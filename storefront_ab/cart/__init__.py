"""Cart state store and checkout helpers"""

from .store import (
    Cart,
    CartStorage,
    CookieCartStorage,
    InMemoryCartStorage,
    encode_items,
    decode_items
)
from .checkout import OrderTotals, shipping_for, order_totals, generate_transaction_id

__all__ = [
    "Cart",
    "CartStorage",
    "CookieCartStorage",
    "InMemoryCartStorage",
    "encode_items",
    "decode_items",
    "OrderTotals",
    "shipping_for",
    "order_totals",
    "generate_transaction_id",
]
