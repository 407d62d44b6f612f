"""
Storage Module
Item store repository and artifact download.
"""
from .fetcher import ArtifactFetcher
from .item_store import BaseItemStore, InMemoryItemStore, JsonFileItemStore

__all__ = [
    "ArtifactFetcher",
    "BaseItemStore",
    "InMemoryItemStore",
    "JsonFileItemStore",
]
