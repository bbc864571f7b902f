import asyncio
import logging
import mimetypes
import uuid
from functools import lru_cache
from pathlib import Path
from typing import Protocol

from app.core.files.schemas import IncomingFile
from app.settings import get_settings

logger = logging.getLogger(__name__)


class FileStore(Protocol):
    async def save(self, file: IncomingFile, prefix: str) -> str: ...

    async def save_bytes(self, content: bytes, filename: str) -> str: ...

    async def delete(self, path: str) -> None: ...

    async def exists(self, path: str) -> bool: ...

    def resolve(self, path: str) -> Path: ...


class LocalFileStore:
    """
    Stores blobs under one directory. Paths handed back to callers are bare
    file names, relative to that directory.
    """

    def __init__(self, root: str | Path, timeout: float = 30.0):
        self.root = Path(root)
        self.timeout = timeout

    def resolve(self, path: str) -> Path:
        candidate = (self.root / path).resolve()
        if self.root.resolve() not in candidate.parents:
            raise ValueError(f"Path escapes upload directory: {path}")
        return candidate

    async def _run(self, func, *args):
        return await asyncio.wait_for(asyncio.to_thread(func, *args), timeout=self.timeout)

    def _write(self, name: str, content: bytes) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        self.resolve(name).write_bytes(content)

    async def save(self, file: IncomingFile, prefix: str) -> str:
        suffix = Path(file.filename).suffix.lower() or (mimetypes.guess_extension(file.content_type) or "")
        name = f"{prefix}-{uuid.uuid4()}{suffix}"
        await self._run(self._write, name, file.content)
        logger.debug("Stored %s (%d bytes)", name, len(file.content))
        return name

    async def save_bytes(self, content: bytes, filename: str) -> str:
        await self._run(self._write, filename, content)
        return filename

    async def delete(self, path: str) -> None:
        """Best effort: failures are logged, never raised."""
        try:
            await self._run(self._unlink, path)
        except Exception:
            logger.warning("Could not delete stored file %s", path, exc_info=True)

    def _unlink(self, path: str) -> None:
        target = self.resolve(path)
        if target.exists():
            target.unlink()

    async def exists(self, path: str) -> bool:
        try:
            return await self._run(lambda: self.resolve(path).is_file())
        except ValueError:
            return False


@lru_cache
def get_file_store() -> LocalFileStore:
    settings = get_settings()
    return LocalFileStore(settings.UPLOAD_PATH, timeout=settings.IO_TIMEOUT_SECONDS)
