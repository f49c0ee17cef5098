import sys
import os
import pathlib
import tempfile
import asyncio
from typing import Any, Callable, Dict, List

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Keep the default data dir (sqlite file, catalog lookup) out of the working tree
_TEST_DATA_DIR = tempfile.mkdtemp(prefix='feature-loader-tests-')
os.environ.setdefault('FEATURE_LOADER_DATA_DIR', _TEST_DATA_DIR)
os.environ.setdefault('FEATURE_LOADER_CATALOG', str(pathlib.Path(_TEST_DATA_DIR) / 'resources.yml'))

# Ensure backend root (containing the 'feature_loader' package) is on sys.path
BACKEND_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from feature_loader.core.config import Settings
from feature_loader.core.runtime import create_manager
from feature_loader.core.user_settings import SettingsStore
from feature_loader.db.session import init_db
from feature_loader.loader.page import MemoryPage
from feature_loader.resources.catalog import parse_catalog

BASE_URL = 'https://cdn.test'


def url_for(key: str, suffix: str = '.js') -> str:
    return f"{BASE_URL}/{key}{suffix}"


def script(body: str = "    return {}") -> str:
    """Component source whose factory body is ``body`` (already indented)."""
    return "def component(settings, manager):\n" + body + "\n"


class FakeServer:
    """Serves resource text over ``httpx.MockTransport`` and records every request."""

    def __init__(self, routes: Dict[str, Any] | None = None, delay: float = 0.0):
        self.routes: Dict[str, Any] = dict(routes or {})
        self.delay = delay
        self.requests: List[str] = []

    async def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests.append(url)
        if self.delay:
            await asyncio.sleep(self.delay)
        body = self.routes.get(url)
        if body is None:
            return httpx.Response(404, text='not found')
        if isinstance(body, int):
            return httpx.Response(body, text='error')
        return httpx.Response(200, text=body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def count(self, key: str, suffix: str = '.js') -> int:
        return self.requests.count(url_for(key, suffix))


class RecordingNotifier:
    def __init__(self):
        self.errors: List[tuple] = []
        self.infos: List[tuple] = []
        self.dismissed = 0

    def error(self, message, title):
        self.errors.append((message, title))

    def info(self, message, title):
        self.infos.append((message, title))
        notifier = self

        class _Handle:
            def dismiss(self_inner):
                notifier.dismissed += 1

        return _Handle()


@pytest.fixture
def session_factory():
    """Fresh in-memory SQLite database per test."""
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
        future=True,
    )
    init_db(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def store(session_factory) -> SettingsStore:
    return SettingsStore(session_factory)


@pytest.fixture
def page() -> MemoryPage:
    return MemoryPage(poll_interval=0.001, max_retry=5)


@pytest.fixture
def make_manager(session_factory, page) -> Callable[..., Any]:
    """Build a ResourceManager over an in-memory catalog.

    ``resources`` maps key -> (type, body, dependencies) or a full catalog entry dict.
    Script/markup/style bodies are served by a FakeServer at ``url_for(key)``.
    ``use_cache=None`` keeps the value loaded from the settings store.
    """
    def _factory(
        resources: Dict[str, Any],
        features: Dict[str, bool] | None = None,
        *,
        version: str = '1.0',
        use_cache: bool | None = False,
        server: FakeServer | None = None,
        offline_dir: pathlib.Path | None = None,
        notifier: Any = None,
    ):
        server = server if server is not None else FakeServer()
        entries: Dict[str, Any] = {}
        for key, spec in resources.items():
            if isinstance(spec, dict):
                entries[key] = spec
                continue
            rtype, body, deps = spec
            entries[key] = {
                'display_name': key.upper(),
                'type': rtype,
                'url': url_for(key),
                'dependencies': list(deps),
            }
            if body is not None:
                server.routes.setdefault(url_for(key), body)
        catalog = parse_catalog({'resources': entries, 'features': dict(features or {})})
        cfg = Settings(version=version, offline_bundle_dir=offline_dir, download_timeout=5.0)
        manager = create_manager(
            cfg,
            catalog=catalog,
            session_factory=session_factory,
            transport=server.transport,
            page=page,
        )
        if use_cache is not None:
            manager.settings.use_cache = use_cache
        if notifier is not None:
            manager.notifier = notifier
        manager.server = server
        manager.events = []
        return manager

    return _factory
