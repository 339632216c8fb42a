"""Storage access for the sync engine."""

from .base import Retriever
from .kv import StoreRetriever
from .mock import MockRetriever, node_link

__all__ = ["MockRetriever", "Retriever", "StoreRetriever", "node_link"]
