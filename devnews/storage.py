"""
Local filesystem storage for uploaded bytes.

Metadata lives in the ``files`` table; this class only owns the bytes.
"""
import logging
from pathlib import Path

import aiofiles
import aiofiles.os

from devnews.config import settings

logger = logging.getLogger(__name__)


class LocalFileStorage:
    """Store uploads on local disk under ``base_path``."""

    def __init__(self, base_path: str) -> None:
        self.base_path = Path(base_path)

    def ensure_dir(self) -> None:
        self.base_path.mkdir(parents=True, exist_ok=True)

    async def save(self, data: bytes, filename: str) -> str:
        """Write *data* as *filename* and return the stored path."""
        self.ensure_dir()
        path = self.base_path / filename
        async with aiofiles.open(path, "wb") as f:
            await f.write(data)
        logger.debug("Stored %d bytes at %s", len(data), path)
        return str(path)

    async def delete(self, path: str) -> None:
        """Remove the bytes at *path*; raises OSError if they cannot be removed."""
        await aiofiles.os.remove(path)
        logger.debug("Removed %s", path)


storage = LocalFileStorage(settings.UPLOAD_DIR)


def get_storage() -> LocalFileStorage:
    return storage
