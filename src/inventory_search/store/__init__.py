from .base import ORDER_RECENT, ORDER_SEQUENCE, DocumentStore
from .memory import InMemoryStore

__all__ = ["DocumentStore", "InMemoryStore", "ORDER_RECENT", "ORDER_SEQUENCE"]
