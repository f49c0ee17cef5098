"""Runtime helpers: build the process-wide resource manager and run fetch passes."""
from __future__ import annotations

import asyncio
import logging
from typing import Callable

import httpx
from sqlalchemy.orm import Session

from feature_loader.core.config import Settings, settings as default_settings
from feature_loader.core.user_settings import SettingsStore
from feature_loader.loader.manager import FetchResult, ResourceManager
from feature_loader.loader.page import MemoryPage, Page
from feature_loader.resources.catalog import Catalog, CatalogError, ResourceRegistry, load_catalog
from feature_loader.resources.downloader import ContentSource, ResourceDownloader

_log = logging.getLogger(__name__)

_manager: ResourceManager | None = None
_fetch_lock: asyncio.Lock | None = None
_refresh_task: asyncio.Task[None] | None = None
_refresh_again = False


def _load_catalog_or_empty(cfg: Settings) -> Catalog:
    try:
        return load_catalog(cfg.catalog_file)
    except CatalogError as e:
        _log.error("%s; starting with an empty catalog", e)
        return Catalog(registry=ResourceRegistry())


def create_manager(
    cfg: Settings | None = None,
    *,
    catalog: Catalog | None = None,
    session_factory: Callable[[], Session] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    page: Page | None = None,
) -> ResourceManager:
    cfg = cfg or default_settings
    catalog = catalog if catalog is not None else _load_catalog_or_empty(cfg)
    store = SettingsStore(session_factory)
    user_settings = store.load(cfg.version, catalog.default_features)
    downloader = ResourceDownloader(timeout=cfg.download_timeout, transport=transport)
    source = ContentSource(downloader, user_settings, offline_dir=cfg.offline_bundle_dir)
    return ResourceManager(
        catalog.registry,
        user_settings,
        store=store,
        source=source,
        page=page if page is not None else MemoryPage(),
    )


def set_manager(manager: ResourceManager | None) -> None:
    global _manager, _fetch_lock
    _manager = manager
    _fetch_lock = None


def get_manager() -> ResourceManager:
    if _manager is None:
        raise RuntimeError("resource manager not initialized")
    return _manager


async def run_fetch() -> FetchResult:
    """Run one orchestration pass; concurrent callers wait for the running one to finish first."""
    global _fetch_lock
    manager = get_manager()
    if _fetch_lock is None:
        _fetch_lock = asyncio.Lock()
    async with _fetch_lock:
        return await manager.fetch()


async def _execute_refresh() -> None:
    global _refresh_task, _refresh_again
    try:
        await run_fetch()
    except Exception:  # pragma: no cover - fetch contains its own failures
        _log.exception("background fetch failed")
    finally:
        _refresh_task = None
        if _refresh_again:
            _log.debug("queuing another fetch pass after in-flight execution")
            _refresh_again = False
            schedule_refresh()


def schedule_refresh() -> bool:
    """Schedule a background fetch pass. Requests made while one runs are coalesced into one rerun.

    Returns True when a new pass was started, False when it was queued behind a running one.
    """
    global _refresh_task, _refresh_again
    if _refresh_task is not None:
        _refresh_again = True
        return False
    loop = asyncio.get_running_loop()
    _refresh_task = loop.create_task(_execute_refresh())
    return True


async def shutdown() -> None:
    global _refresh_task, _refresh_again
    _refresh_again = False
    task = _refresh_task
    if task is not None:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        _refresh_task = None
    if _manager is not None:
        await _manager.source.downloader.close()
