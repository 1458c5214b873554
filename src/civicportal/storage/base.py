"""Key-value storage base — where the local session record lives.

Learn: The session store needs exactly what a browser's localStorage
offers: string keys, string values, get/set/remove. The one extra
requirement is that the user record and the token are written together
or not at all, so backends expose set_many() and must make it atomic
(one file replace, one Redis MSET, one dict update).

Backends raise StorageError for every failure so callers handle a
single exception type.
"""

from abc import ABC, abstractmethod
from typing import Optional


class KeyValueStore(ABC):
    """Abstract base for session storage backends."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Backend identifier, e.g. 'file', 'memory', 'redis'."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None if the key is absent."""

    @abstractmethod
    async def set_many(self, items: dict[str, str]) -> None:
        """Write all items atomically: afterwards either all are stored or none changed."""

    @abstractmethod
    async def delete(self, *keys: str) -> None:
        """Remove keys. Missing keys are ignored."""

    async def close(self) -> None:
        """Release connections or handles. Default: nothing to release."""
