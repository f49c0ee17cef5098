"""Where resource text comes from: offline bundle, persisted cache, or network."""
from __future__ import annotations
import asyncio
import logging
import pathlib
from typing import TYPE_CHECKING, Any

import httpx

if TYPE_CHECKING:
    from feature_loader.core.user_settings import UserSettings
    from feature_loader.resources.catalog import Resource

_log = logging.getLogger(__name__)

_DEFAULT_HEADERS = {"Accept": "*/*", "User-Agent": "feature-loader"}


class ResourceDownloadError(Exception):
    """A resource's content could not be retrieved."""

    def __init__(self, key: str, url: str, reason: Any):
        super().__init__(f"download failed key={key} url={url}: {reason}")
        self.key = key
        self.url = url
        self.reason = reason


class ResourceDownloader:
    """Lazily created shared ``httpx.AsyncClient`` for fetching resource text."""

    def __init__(
        self,
        *,
        timeout: float | httpx.Timeout = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
        follow_redirects: bool = True,
    ) -> None:
        self._timeout = timeout
        self._transport = transport
        self._follow_redirects = follow_redirects
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()
        self.request_count = 0

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            async with self._client_lock:
                if self._client is None:
                    self._client = httpx.AsyncClient(
                        timeout=self._timeout,
                        headers=_DEFAULT_HEADERS,
                        follow_redirects=self._follow_redirects,
                        transport=self._transport,
                    )
        return self._client

    async def get_text(self, url: str) -> str:
        client = await self._get_client()
        self.request_count += 1
        response = await client.get(url)
        response.raise_for_status()
        return response.text

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


class ContentSource:
    """Resolves a resource's text for :meth:`Resource.download`.

    Lookup order: the offline bundle directory when configured, then the
    persisted cache when ``use_cache`` is on, then the network. Network text is
    written back into the cache so the next session can skip the round trip.
    """

    def __init__(
        self,
        downloader: ResourceDownloader,
        user_settings: 'UserSettings',
        offline_dir: pathlib.Path | None = None,
    ) -> None:
        self.downloader = downloader
        self.user_settings = user_settings
        self.offline_dir = pathlib.Path(offline_dir) if offline_dir else None

    @property
    def offline(self) -> bool:
        return self.offline_dir is not None

    async def load(self, resource: 'Resource') -> str:
        if self.offline_dir is not None:
            path = self.offline_dir / resource.key
            try:
                return path.read_text(encoding='utf-8')
            except OSError as e:
                raise ResourceDownloadError(resource.key, str(path), e) from e

        cache = self.user_settings.cache
        if self.user_settings.use_cache:
            cached = cache.get(resource.key)
            if isinstance(cached, str):
                _log.debug("cache hit key=%s", resource.key)
                return cached

        _log.debug("downloading key=%s url=%s", resource.key, resource.url)
        try:
            text = await self.downloader.get_text(resource.url)
        except httpx.HTTPStatusError as e:
            raise ResourceDownloadError(resource.key, resource.url, e.response.status_code) from e
        except httpx.HTTPError as e:
            raise ResourceDownloadError(resource.key, resource.url, repr(e)) from e
        if self.user_settings.use_cache:
            cache[resource.key] = text
        return text
