"""Process store adapters."""

from .adapter import ProcessStore
from .memory_adapter import InMemoryProcessStore

__all__ = ["InMemoryProcessStore", "ProcessStore"]
