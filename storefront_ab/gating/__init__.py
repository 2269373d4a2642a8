"""Experiment assignment gate"""

from .variant_gate import VariantGate, UNGATED_PATH
from .middleware import VariantGateMiddleware

__all__ = ["VariantGate", "UNGATED_PATH", "VariantGateMiddleware"]
