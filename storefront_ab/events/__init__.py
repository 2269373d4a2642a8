"""Canonical event normalization"""

from .normalizer import (
    EventNormalizer,
    project_item,
    REQUIRED_ATTRIBUTES,
    HOME_LIST_ID,
    HOME_LIST_NAME
)

__all__ = ["EventNormalizer", "project_item", "REQUIRED_ATTRIBUTES", "HOME_LIST_ID", "HOME_LIST_NAME"]
