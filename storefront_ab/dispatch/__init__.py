"""Channel-aware event dispatch"""

from .channels import DirectTagSink, TagRuntimeSink, RelayChannel
from .router import DispatchRouter

__all__ = ["DirectTagSink", "TagRuntimeSink", "RelayChannel", "DispatchRouter"]
