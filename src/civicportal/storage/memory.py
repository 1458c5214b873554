"""In-process storage. Nothing survives a restart; used by tests and
short-lived embeddings."""

from typing import Optional

from civicportal.storage.base import KeyValueStore


class MemoryStore(KeyValueStore):
    def __init__(self, initial: Optional[dict[str, str]] = None):
        self.data: dict[str, str] = dict(initial or {})

    @property
    def name(self) -> str:
        return "memory"

    async def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    async def set_many(self, items: dict[str, str]) -> None:
        self.data.update(items)

    async def delete(self, *keys: str) -> None:
        for key in keys:
            self.data.pop(key, None)
