"""Source image loading for the bundled engine.

Relative locators are files under ``settings.storage_dir``; absolute
``http(s)://`` locators are downloaded with httpx. Either way the caller gets
the raw encoded bytes.
"""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from urllib.parse import urlsplit

import httpx

from image_gateway.config import get_settings

logger = logging.getLogger(__name__)

_REMOTE_SCHEMES = ("http", "https")


class ImageSourceError(Exception):
    """Raised when a source image cannot be located or fetched."""

    def __init__(self, locator: str, message: str, status: int | None = None):
        super().__init__(f"{message}: {locator}")
        self.locator = locator
        self.status = status


class SourceLoader:
    """Read source images from local storage or remote hosts."""

    def __init__(
        self,
        *,
        storage_dir: str | Path,
        remote_domains: list[str] | None = None,
        timeout: float = 10.0,
        max_bytes: int = 20 * 1024 * 1024,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._root = Path(storage_dir).resolve()
        self._domains = {d.lower() for d in remote_domains or []}
        self._timeout = timeout
        self._max_bytes = max_bytes
        self._transport = transport

    @classmethod
    def from_settings(cls) -> "SourceLoader":
        settings = get_settings()
        return cls(
            storage_dir=settings.storage_dir,
            remote_domains=settings.remote_domains,
            timeout=settings.fetch_timeout,
            max_bytes=settings.max_source_bytes,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def load(self, locator: str) -> bytes:
        if urlsplit(locator).scheme.lower() in _REMOTE_SCHEMES:
            return await self._fetch_remote(locator)
        return await self._read_local(locator)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def local_path(self, locator: str) -> Path:
        candidate = (self._root / locator.lstrip("/")).resolve()
        if not candidate.is_relative_to(self._root):
            raise ImageSourceError(locator, "Path escapes storage directory")
        return candidate

    async def _read_local(self, locator: str) -> bytes:
        path = self.local_path(locator)
        if not path.is_file():
            raise ImageSourceError(locator, "File not found", status=404)
        if path.stat().st_size > self._max_bytes:
            raise ImageSourceError(locator, "Source image too large")
        logger.debug("Reading %s", path)
        return await asyncio.to_thread(path.read_bytes)

    async def _fetch_remote(self, locator: str) -> bytes:
        host = (urlsplit(locator).hostname or "").lower()
        if self._domains and host not in self._domains:
            raise ImageSourceError(locator, f"Host '{host}' is not allowed", status=403)

        logger.debug("GET %s", locator)
        async with httpx.AsyncClient(
            timeout=self._timeout,
            follow_redirects=True,
            transport=self._transport,
        ) as client:
            async with client.stream("GET", locator) as resp:
                if resp.status_code >= 400:
                    raise ImageSourceError(
                        locator, f"Upstream responded with {resp.status_code}", status=resp.status_code
                    )
                chunks: list[bytes] = []
                size = 0
                async for chunk in resp.aiter_bytes():
                    size += len(chunk)
                    if size > self._max_bytes:
                        raise ImageSourceError(locator, "Source image too large")
                    chunks.append(chunk)
        return b"".join(chunks)
