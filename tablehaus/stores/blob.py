"""Proof-of-payment blob storage"""

import asyncio
import secrets
import time
from pathlib import Path, PurePosixPath
from typing import Dict

import structlog

from tablehaus.exceptions import BlobNotFoundError, StoreUnavailableError, UploadError
from tablehaus.schemas.booking import ProofFile
from tablehaus.stores.base import BlobStore

logger = structlog.get_logger()


def _blob_name(filename: str) -> str:
    """slip_<millis>_<random>.<ext>, never derived from user-supplied path parts"""
    suffix = PurePosixPath(filename).suffix.lower()[:10]
    return f"slip_{int(time.time() * 1000)}_{secrets.token_hex(5)}{suffix}"


class LocalBlobStore(BlobStore):
    """Stores files in a local directory"""

    def __init__(self, root: str):
        self.root = Path(root)

    def _path(self, reference: str) -> Path:
        path = (self.root / reference).resolve()
        if path.parent != self.root.resolve():
            raise BlobNotFoundError(reference)
        return path

    def _write(self, name: str, content: bytes) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        (self.root / name).write_bytes(content)

    async def upload(self, file: ProofFile) -> str:
        if not file.content:
            raise UploadError("Empty file")
        name = _blob_name(file.filename)
        try:
            await asyncio.to_thread(self._write, name, file.content)
        except OSError as exc:
            logger.error("Proof upload failed", filename=file.filename, error=str(exc))
            raise UploadError(str(exc)) from exc
        logger.info("Proof uploaded", reference=name, size=len(file.content))
        return name

    async def open(self, reference: str) -> bytes:
        path = self._path(reference)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError as exc:
            raise BlobNotFoundError(reference) from exc

    async def delete(self, reference: str) -> None:
        path = self._path(reference)
        try:
            await asyncio.to_thread(path.unlink, missing_ok=True)
        except OSError as exc:
            raise StoreUnavailableError(str(exc)) from exc
        logger.info("Proof deleted", reference=reference)


class InMemoryBlobStore(BlobStore):
    """Keeps blobs in a dict"""

    def __init__(self):
        self.blobs: Dict[str, bytes] = {}

    async def upload(self, file: ProofFile) -> str:
        if not file.content:
            raise UploadError("Empty file")
        await asyncio.sleep(0)
        name = _blob_name(file.filename)
        self.blobs[name] = file.content
        return name

    async def open(self, reference: str) -> bytes:
        try:
            return self.blobs[reference]
        except KeyError as exc:
            raise BlobNotFoundError(reference) from exc

    async def delete(self, reference: str) -> None:
        self.blobs.pop(reference, None)
