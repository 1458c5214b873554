"""JSON file storage — the default for the CLI.

Learn: All keys live in one small JSON object on disk. Writes go to a
temporary file in the same directory followed by os.replace(), which is
atomic on POSIX and Windows, so a crash mid-write leaves either the old
file or the new one, never a truncated mix. The file holds a session
token, so it is created readable by the owner only.

Disk access runs in the default executor, one operation at a time, so
the event loop never blocks on the file and writes land in call order.

A file that is not a JSON object is treated as empty; the next write
replaces it.
"""

import asyncio
import json
import os
import tempfile
from pathlib import Path
from typing import Optional

import structlog

from civicportal.errors import StorageError
from civicportal.storage.base import KeyValueStore

logger = structlog.get_logger()


class FileStore(KeyValueStore):
    def __init__(self, path: str | os.PathLike):
        self.path = Path(path).expanduser()
        self._lock = asyncio.Lock()

    @property
    def name(self) -> str:
        return "file"

    def _read(self) -> dict[str, str]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            raise StorageError() from e

        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("storage.file_corrupt", path=str(self.path))
            return {}
        if not isinstance(data, dict):
            logger.warning("storage.file_corrupt", path=str(self.path))
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _write(self, data: dict[str, str]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(data, fh)
                os.chmod(tmp_path, 0o600)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            logger.error("storage.file_write_failed", path=str(self.path), error=str(e))
            raise StorageError() from e

    def _set_many(self, items: dict[str, str]) -> None:
        data = self._read()
        data.update(items)
        self._write(data)

    def _delete(self, keys: tuple[str, ...]) -> None:
        data = self._read()
        if not any(key in data for key in keys):
            return
        for key in keys:
            data.pop(key, None)
        self._write(data)

    async def _in_thread(self, fn, *args):
        # One operation at a time, in call order, off the event loop
        async with self._lock:
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(None, fn, *args)

    async def get(self, key: str) -> Optional[str]:
        data = await self._in_thread(self._read)
        return data.get(key)

    async def set_many(self, items: dict[str, str]) -> None:
        await self._in_thread(self._set_many, dict(items))

    async def delete(self, *keys: str) -> None:
        await self._in_thread(self._delete, keys)
