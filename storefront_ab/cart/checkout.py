"""Order totals and transaction ids for the checkout flow"""

from datetime import datetime, timezone
from typing import Callable, Union

from pydantic import BaseModel

from ..entropy import EntropySource, SystemEntropy
from ..models.experiment_models import ExperimentConfig
from .store import Cart


class OrderTotals(BaseModel):
    subtotal: float
    shipping: float
    tax: float
    total: float


def shipping_for(subtotal: float, config: ExperimentConfig = None) -> float:
    """Free shipping strictly above the threshold, flat fee otherwise"""
    config = config or ExperimentConfig()
    if subtotal > config.free_shipping_threshold:
        return 0.0
    return config.shipping_fee


def order_totals(cart: Union[Cart, float], config: ExperimentConfig = None) -> OrderTotals:
    config = config or ExperimentConfig()
    subtotal = cart.total_value if isinstance(cart, Cart) else float(cart)
    shipping = shipping_for(subtotal, config)
    tax = config.tax
    return OrderTotals(
        subtotal=round(subtotal, 2),
        shipping=shipping,
        tax=tax,
        total=round(subtotal + shipping + tax, 2),
    )


def generate_transaction_id(
    entropy: EntropySource = None,
    clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)
) -> str:
    """Transaction id of the form YYYY-NNNNNNNN"""
    entropy = entropy or SystemEntropy()
    return f"{clock().year}-{entropy.randbelow(100_000_000):08d}"
