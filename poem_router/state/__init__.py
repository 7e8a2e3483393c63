from .base import AbstractCounterStore
from .memory import InMemoryCounterStore

__all__ = ["AbstractCounterStore", "InMemoryCounterStore"]
