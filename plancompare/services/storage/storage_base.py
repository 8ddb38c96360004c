"""Storage interface for uploaded sources and processed results."""

import asyncio
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Optional, Tuple

from plancompare.utils.logging import get_logger

LOGGER = get_logger(__name__)


class BaseStorage(ABC):
    """Object storage used by the pipeline's upload and save stages."""

    @abstractmethod
    async def upload(self, key: str, content: bytes, content_type: str) -> str:
        """Store ``content`` under ``key``.

        Returns:
            Location of the stored object (URL or URI)
        """
        pass

    @abstractmethod
    async def download(self, key: str) -> Optional[bytes]:
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove the object under ``key``; False when there was none."""
        pass


class InMemoryStorage(BaseStorage):
    """Process-local storage for development and tests.

    Holds at most ``max_objects`` objects; the oldest upload is evicted
    first once the limit is reached.
    """

    def __init__(self, scheme: str = "memory", max_objects: int = 200):
        self.scheme = scheme
        self.max_objects = max_objects
        self._objects: "OrderedDict[str, Tuple[bytes, str]]" = OrderedDict()
        self._lock = asyncio.Lock()

    async def upload(self, key: str, content: bytes, content_type: str) -> str:
        async with self._lock:
            self._objects[key] = (content, content_type)
            self._objects.move_to_end(key)
            while len(self._objects) > self.max_objects:
                evicted, _ = self._objects.popitem(last=False)
                LOGGER.info("Evicted stored object", extra={"key": evicted})
        return f"{self.scheme}://{key}"

    async def download(self, key: str) -> Optional[bytes]:
        async with self._lock:
            stored = self._objects.get(key)
        return stored[0] if stored else None

    async def delete(self, key: str) -> bool:
        async with self._lock:
            return self._objects.pop(key, None) is not None

    def keys(self) -> list:
        return list(self._objects)
