from plancompare.services.storage.storage_base import BaseStorage, InMemoryStorage

__all__ = ["BaseStorage", "InMemoryStorage"]
