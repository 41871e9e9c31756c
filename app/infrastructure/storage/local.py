"""Local filesystem blob store for uploaded material files."""

import hashlib
import logging
from pathlib import Path

import aiofiles
import aiofiles.os

from app.domain.repositories import IStorageService

logger = logging.getLogger(__name__)


class LocalStorageService(IStorageService):
    """Content-addressed files under *base_path* (``<hash[:2]>/<hash>_<name>``)."""

    def __init__(self, base_path: str = "./storage"):
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _resolve(self, file_path: str) -> Path:
        full_path = (self.base_path / file_path).resolve()
        if self.base_path.resolve() not in full_path.parents:
            raise FileNotFoundError(file_path)
        return full_path

    async def save_file(self, file_content: bytes, filename: str) -> str:
        file_hash = hashlib.sha256(file_content).hexdigest()
        storage_dir = self.base_path / file_hash[:2]
        storage_dir.mkdir(parents=True, exist_ok=True)
        file_path = storage_dir / f"{file_hash}_{Path(filename).name}"

        async with aiofiles.open(file_path, "wb") as f:
            await f.write(file_content)

        logger.info("File saved: %s (%d bytes)", file_path.name, len(file_content))
        return str(file_path.relative_to(self.base_path))

    async def get_file(self, file_path: str) -> bytes:
        async with aiofiles.open(self._resolve(file_path), "rb") as f:
            content = await f.read()
        logger.debug("File retrieved: %s (%d bytes)", file_path, len(content))
        return content

    async def delete_file(self, file_path: str) -> bool:
        try:
            await aiofiles.os.remove(self._resolve(file_path))
        except FileNotFoundError:
            logger.warning("File not found for deletion: %s", file_path)
            return False
        logger.info("File deleted: %s", file_path)
        return True
