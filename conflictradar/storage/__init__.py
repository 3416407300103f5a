"""Key-value storage with expiring records."""

from .cache import InMemoryCache, JsonFileCache, KeyValueCache

__all__ = ["KeyValueCache", "InMemoryCache", "JsonFileCache"]
