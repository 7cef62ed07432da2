"""Reading store adapters."""

from .adapter import ReadingStore
from .http_adapter import HttpReadingStore
from .memory_adapter import InMemoryReadingStore

__all__ = ["HttpReadingStore", "InMemoryReadingStore", "ReadingStore"]
