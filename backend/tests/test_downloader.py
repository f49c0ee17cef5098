"""
Content source tests: offline bundle, persisted cache, network and single-flight downloads.
"""

import asyncio

import httpx
import pytest

from feature_loader.core.user_settings import UserSettings
from feature_loader.resources.catalog import Resource, ResourceType
from feature_loader.resources.downloader import ContentSource, ResourceDownloadError, ResourceDownloader
from conftest import FakeServer, url_for


def _resource(key='a'):
    return Resource(key=key, display_name=key, type=ResourceType.script, url=url_for(key))


def _source(server, **settings):
    downloader = ResourceDownloader(timeout=5.0, transport=server.transport)
    return ContentSource(downloader, UserSettings(current_version='1.0', **settings))


class TestContentSource:

    @pytest.mark.asyncio
    async def test_network_text_written_to_cache(self):
        server = FakeServer({url_for('a'): 'body'})
        source = _source(server)
        assert await source.load(_resource()) == 'body'
        assert source.user_settings.cache == {'a': 'body'}
        await source.downloader.close()

    @pytest.mark.asyncio
    async def test_cache_hit_skips_network(self):
        server = FakeServer()
        source = _source(server, cache={'a': 'cached'})
        assert await source.load(_resource()) == 'cached'
        assert server.requests == []

    @pytest.mark.asyncio
    async def test_use_cache_off_neither_reads_nor_writes(self):
        server = FakeServer({url_for('a'): 'fresh'})
        source = _source(server, cache={'a': 'cached'}, use_cache=False)
        assert await source.load(_resource()) == 'fresh'
        assert source.user_settings.cache == {'a': 'cached'}
        await source.downloader.close()

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        server = FakeServer({url_for('a'): 500})
        source = _source(server)
        with pytest.raises(ResourceDownloadError) as excinfo:
            await source.load(_resource())
        assert excinfo.value.reason == 500
        assert excinfo.value.key == 'a'
        assert source.user_settings.cache == {}
        await source.downloader.close()

    @pytest.mark.asyncio
    async def test_transport_error_is_wrapped(self):
        def handler(request):
            raise httpx.ConnectError('refused', request=request)

        downloader = ResourceDownloader(transport=httpx.MockTransport(handler))
        source = ContentSource(downloader, UserSettings())
        with pytest.raises(ResourceDownloadError):
            await source.load(_resource())
        await downloader.close()

    @pytest.mark.asyncio
    async def test_offline_bundle(self, tmp_path):
        (tmp_path / 'a').write_text('bundled', encoding='utf-8')
        server = FakeServer({url_for('a'): 'network'})
        source = ContentSource(ResourceDownloader(transport=server.transport), UserSettings(), offline_dir=tmp_path)
        assert source.offline is True
        assert await source.load(_resource('a')) == 'bundled'
        with pytest.raises(ResourceDownloadError):
            await source.load(_resource('b'))
        assert server.requests == []


class TestResourceDownload:

    @pytest.mark.asyncio
    async def test_concurrent_downloads_share_one_request(self):
        server = FakeServer({url_for('a'): 'body'}, delay=0.02)
        source = _source(server, use_cache=False)
        resource = _resource()
        texts = await asyncio.gather(*(resource.download(source) for _ in range(5)))
        assert texts == ['body'] * 5
        assert server.count('a') == 1
        assert source.downloader.request_count == 1
        assert resource.downloaded is True and resource.text == 'body'
        await source.downloader.close()

    @pytest.mark.asyncio
    async def test_downloaded_resource_is_not_refetched(self):
        server = FakeServer({url_for('a'): 'body'})
        source = _source(server, use_cache=False)
        resource = _resource()
        await resource.download(source)
        await resource.download(source)
        assert server.count('a') == 1
        await source.downloader.close()

    @pytest.mark.asyncio
    async def test_failure_is_retried_on_next_call(self):
        server = FakeServer({url_for('a'): 503})
        source = _source(server, use_cache=False)
        resource = _resource()
        with pytest.raises(ResourceDownloadError):
            await resource.download(source)
        assert resource.downloaded is False
        server.routes[url_for('a')] = 'recovered'
        assert await resource.download(source) == 'recovered'
        assert server.count('a') == 2
        await source.downloader.close()
