"""Session storage backends.

Learn: The backend is chosen by CIVIC_STORAGE_BACKEND:
    store = create_store()              # from settings
    store = create_store("memory")      # explicit

Backends are looked up by name, so an embedding application can add its
own with register_store().
"""

from typing import Callable, Optional

from civicportal.config import Settings, settings
from civicportal.storage.base import KeyValueStore
from civicportal.storage.file import FileStore
from civicportal.storage.memory import MemoryStore
from civicportal.storage.redis import RedisStore

__all__ = [
    "FileStore",
    "KeyValueStore",
    "MemoryStore",
    "RedisStore",
    "create_store",
    "register_store",
]

# ─── Registry ──────────────────────────────────────────────

_STORES: dict[str, Callable[[Settings], KeyValueStore]] = {
    "file": lambda cfg: FileStore(cfg.storage_path),
    "memory": lambda cfg: MemoryStore(),
    "redis": lambda cfg: RedisStore(url=cfg.redis_url),
}


def create_store(name: Optional[str] = None, cfg: Optional[Settings] = None) -> KeyValueStore:
    """Build a storage backend by name (default: settings.storage_backend).

    Raises ValueError if the backend is not registered.
    """
    cfg = cfg or settings
    key = name or cfg.storage_backend
    factory = _STORES.get(key)
    if not factory:
        available = ", ".join(sorted(_STORES.keys()))
        raise ValueError(f"Unknown storage backend '{key}'. Available: {available}")
    return factory(cfg)


def register_store(name: str, factory: Callable[[Settings], KeyValueStore]) -> None:
    """Register a custom backend factory."""
    _STORES[name] = factory
