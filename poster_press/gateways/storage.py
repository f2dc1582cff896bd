# poster_press/gateways/storage.py
"""
Object storage gateways.

Keys are ``<bucket>/<path>`` strings. Uploads replace the whole object or
fail; readers never observe a partially written object.
"""

import asyncio
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from urllib.parse import quote

import httpx

from poster_press.errors import ObjectNotFoundError, StorageError

from .rest import RestClient

logger = logging.getLogger(__name__)


def split_key(key: str) -> tuple[str, str]:
    """Split ``bucket/path`` into (bucket, path)."""
    bucket, _, path = key.partition("/")
    if not bucket or not path:
        raise StorageError(f"Invalid storage key (expected bucket/path): {key!r}")
    return bucket, path


class ObjectStore(ABC):
    """Abstract get/put-by-key object store."""

    @abstractmethod
    async def get(self, key: str) -> bytes:
        """
        Read a whole object.

        Raises:
            ObjectNotFoundError: If the key does not exist
            StorageError: On any other failure
        """

    @abstractmethod
    async def put(self, key: str, data: bytes, content_type: str) -> None:
        """
        Write a whole object, overwriting any existing one.

        Raises:
            StorageError: If the upload failed
        """

    async def close(self) -> None:
        """Release resources. No-op by default."""


class LocalObjectStore(ObjectStore):
    """
    Directory-backed object store.

    Each key maps to ``root/<bucket>/<path>``. Writes go to a temp file in
    the destination directory and are moved into place with os.replace.
    """

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root).resolve()
        self._root.mkdir(parents=True, exist_ok=True)
        logger.info(f"Initialized LocalObjectStore at {self._root}")

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, key: str) -> Path:
        """Filesystem path of a key; keys resolving outside root are rejected."""
        split_key(key)
        path = (self._root / key).resolve()
        if not path.is_relative_to(self._root):
            raise StorageError(f"Storage key escapes root: {key!r}")
        return path

    async def get(self, key: str) -> bytes:
        path = self.path_for(key)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError:
            raise ObjectNotFoundError(key)
        except OSError as e:
            raise StorageError(f"Failed to read {key}: {e}") from e

    async def put(self, key: str, data: bytes, content_type: str) -> None:
        path = self.path_for(key)
        try:
            await asyncio.to_thread(self._write_atomic, path, data)
        except OSError as e:
            raise StorageError(f"Failed to write {key}: {e}") from e
        logger.info(f"Stored {key} ({len(data)} bytes, {content_type})")

    @staticmethod
    def _write_atomic(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


class RestObjectStore(ObjectStore):
    """Object store backed by the hosted storage API (``/storage/v1/object``)."""

    def __init__(self, client: RestClient) -> None:
        self._client = client

    @staticmethod
    def _object_url(key: str) -> str:
        bucket, path = split_key(key)
        return f"/storage/v1/object/{quote(bucket)}/{quote(path)}"

    async def get(self, key: str) -> bytes:
        try:
            response = await self._client.request("GET", self._object_url(key))
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            # The storage API reports missing objects as 400 with a not_found body
            if status == 404 or (status == 400 and "not found" in e.response.text.lower()):
                raise ObjectNotFoundError(key) from e
            raise StorageError(f"Download failed for {key}: HTTP {status}") from e
        except httpx.HTTPError as e:
            raise StorageError(f"Download failed for {key}: {e}") from e
        return response.content

    async def put(self, key: str, data: bytes, content_type: str) -> None:
        try:
            await self._client.request(
                "POST",
                self._object_url(key),
                content=data,
                headers={"Content-Type": content_type, "x-upsert": "true"},
            )
        except httpx.HTTPError as e:
            raise StorageError(f"Upload failed for {key}: {e}") from e
        logger.info(f"Uploaded {key} ({len(data)} bytes, {content_type})")

    async def close(self) -> None:
        await self._client.aclose()
