"""Durable first-party identifier store"""

from .fpid_store import IdentifierStore, FPID_RANDOM_RANGE

__all__ = ["IdentifierStore", "FPID_RANDOM_RANGE"]
