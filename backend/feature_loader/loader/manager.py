"""Resolve, download, cache and execute the enabled feature components.

``ResourceManager.fetch`` is one orchestration pass: validate the cache, load
the ``toast`` notification bootstrap first, fetch every other enabled feature
concurrently, persist the settings and hand the resulting exports to the
dropdown and widget installers.

No failure inside a single component's pipeline escapes a pass. Missing keys
land in ``skipped_import``; download and execution errors are logged and
reported through the notification channel.
"""
from __future__ import annotations
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from feature_loader.core.user_settings import SettingsStore, UserSettings
from feature_loader.loader.attributes import AttributeStore, ComponentAttributes
from feature_loader.loader.cache import VERSION_KEY, validate_cache
from feature_loader.loader.executor import compile_factory, run_factory
from feature_loader.loader.installers import install_dropdowns, install_widgets
from feature_loader.loader.notifications import LogNotifier, Notifier, resolve_notifier
from feature_loader.loader.page import MemoryPage, Page
from feature_loader.loader.styles import StyleManager
from feature_loader.loader.theme import THEME_STYLE_ID, build_theme_variables
from feature_loader.resources.catalog import Resource, ResourceRegistry, ResourceType
from feature_loader.resources.downloader import ContentSource, ResourceDownloadError

_log = logging.getLogger(__name__)

NOTIFICATION_BOOTSTRAP_KEY = 'toast'
ERROR_TITLE = 'Error'


@dataclass
class FetchResult:
    cache_valid: bool
    loaded: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    cache_saved: bool = False

    def summary(self) -> dict:
        return {
            'cache_valid': self.cache_valid,
            'loaded': self.loaded,
            'failed': self.failed,
            'skipped': self.skipped,
            'cache_saved': self.cache_saved,
        }


class ResourceManager:
    def __init__(
        self,
        registry: ResourceRegistry,
        user_settings: UserSettings,
        *,
        store: SettingsStore,
        source: ContentSource,
        page: Page | None = None,
        notifier: Notifier | None = None,
    ):
        self.registry = registry
        self.settings = user_settings
        self.store = store
        self.source = source
        self.page: Page = page if page is not None else MemoryPage()
        self.notifier: Notifier = notifier if notifier is not None else LogNotifier()
        self.skipped_import: List[str] = []
        self.attributes = AttributeStore()
        self.style_manager = StyleManager(self)
        self.last_result: FetchResult | None = None
        # Page contributions already made, so later passes do not repeat them
        self.installed_widgets: Set[str] = set()
        self.installed_options: Dict[str, List[Any]] = {}
        self._failures: Set[str] = set()
        # Per-pass memo of fetch_by_key tasks; None outside fetch()
        self._in_flight: Optional[Dict[str, asyncio.Future]] = None
        # key -> dependency keys it is currently awaiting, for cycle detection
        self._awaiting: Dict[str, List[str]] = {}
        self.setup_colors()

    # ---- styles ---------------------------------------------------------

    def setup_colors(self) -> None:
        try:
            text = build_theme_variables(self.settings)
        except ValueError:
            _log.warning("invalid theme colour %r; theme variables not applied", self.settings.custom_style_color)
            return
        self.apply_style_from_text(text, THEME_STYLE_ID)

    def apply_style(self, key: str, element_id: str | None = None) -> bool:
        return self.style_manager.apply_style(key, element_id)

    def apply_style_from_text(self, text: str, element_id: str) -> None:
        self.style_manager.apply_style_from_text(text, element_id)

    def remove_style(self, key: str) -> None:
        self.style_manager.remove_style(key)

    # ---- reporting ------------------------------------------------------

    def _report_failure(self, message: str, error: BaseException) -> None:
        if self.settings.toast_internal_error:
            message += f"\n{error}"
        try:
            self.notifier.error(message, ERROR_TITLE)
        except Exception:
            _log.exception("notification channel failed; message=%s", message)

    # ---- import ---------------------------------------------------------

    def import_(self, key: str) -> Any:
        """Return a loaded resource's text (markup/style) or component export (script)."""
        resource = self.registry.get(key)
        alias = None
        if resource is None:
            alias = self.registry.find_key_by_filename(key)
            if alias is None:
                self.skipped_import.append(key)
                return None
        if resource is not None and resource.type in (ResourceType.markup, ResourceType.style):
            if not resource.downloaded:
                _log.error('Import failed: component "%s" is not loaded.', key)
                return None
            return resource.text
        attrs = self.attributes.get(key)
        if attrs is None:
            if alias is None:
                alias = self.registry.find_key_by_filename(key)
            if alias is not None:
                attrs = self.attributes.get(alias)
        if attrs is None:
            _log.error('Import failed: component "%s" is not loaded.', key)
            return None
        return attrs.export

    async def import_async(self, key: str) -> Any:
        resource = self.registry.get(key)
        if resource is not None and not resource.downloaded:
            if await self.download(resource) is None:
                return None
        return self.import_(key)

    # ---- fetch ----------------------------------------------------------

    async def download(self, resource: Resource) -> str | None:
        """Download ``resource``; on failure notify and return None instead of raising."""
        try:
            return await resource.download(self.source)
        except Exception as e:
            reason = e.reason if isinstance(e, ResourceDownloadError) else e
            _log.error("Download error key=%s: %s", resource.key, reason)
            self._failures.add(resource.key)
            self._report_failure(f"Failed to download component <span>{resource.display_name}</span>", e)
            return None

    def _would_deadlock(self, waiter: str, target: str) -> bool:
        stack = [target]
        seen: Set[str] = set()
        while stack:
            key = stack.pop()
            if key == waiter:
                return True
            if key in seen:
                continue
            seen.add(key)
            stack.extend(self._awaiting.get(key, ()))
        return False

    async def fetch_by_key(self, key: str, parent: str | None = None) -> ComponentAttributes | None:
        """Fetch ``key`` and its dependency closure, then execute it.

        During a :meth:`fetch` pass each key is fetched once and shared by every
        dependent; outside a pass every call re-traverses.
        """
        if parent is not None:
            if self._would_deadlock(parent, key):
                _log.warning("dependency cycle: %s -> %s; edge skipped", parent, key)
                return None
            self._awaiting.setdefault(parent, []).append(key)
        try:
            in_flight = self._in_flight
            if in_flight is None:
                return await self._fetch_by_key(key)
            task = in_flight.get(key)
            if task is None:
                task = asyncio.ensure_future(self._fetch_by_key(key))
                in_flight[key] = task
            return await task
        finally:
            if parent is not None:
                waiting = self._awaiting.get(parent)
                if waiting is not None:
                    waiting.remove(key)
                    if not waiting:
                        del self._awaiting[parent]

    async def _fetch_by_key(self, key: str) -> ComponentAttributes | None:
        resource = self.registry.get(key)
        if resource is None:
            _log.warning("component %s is not in the catalog; skipped", key)
            self.skipped_import.append(key)
            return None
        text = await self.download(resource)

        styles: List[str] = []
        scripts: List[str] = []
        for dep in resource.dependencies:
            dep_resource = self.registry.get(dep)
            if dep_resource is None:
                _log.warning("component %s depends on unknown %s", key, dep)
                self.skipped_import.append(dep)
            elif dep_resource.type is ResourceType.style:
                styles.append(dep)
            elif dep_resource.type is ResourceType.script:
                scripts.append(dep)

        if styles:
            await asyncio.gather(*(self.style_manager.fetch_style_by_key(d) for d in styles))
        if scripts:
            await asyncio.gather(*(self.fetch_by_key(d, parent=key) for d in scripts))
        return await self.apply_component(key, text)

    async def apply_component(self, key: str, text: str | None) -> ComponentAttributes | None:
        resource = self.registry.get(key)
        if resource is None:
            return None
        if text is None:
            _log.warning("component %s has no content; not applied", key)
            return None
        if resource.type is ResourceType.style:
            self.style_manager.apply_style(key)
            return None
        if resource.type is ResourceType.markup:
            return None
        try:
            factory = compile_factory(key, text)
            result = await run_factory(factory, self.settings, self)
        except Exception as e:
            _log.error('Failed to apply feature "%s": %s', key, e, exc_info=True)
            self._failures.add(key)
            self._report_failure(f"Failed to load component <span>{resource.display_name}</span>", e)
            return None
        _log.debug("component applied key=%s", key)
        return self.attributes.set(key, result)

    def _adopt_notifier(self) -> None:
        attrs = self.attributes.get(NOTIFICATION_BOOTSTRAP_KEY)
        notifier = resolve_notifier(attrs.export) if attrs is not None else None
        if notifier is None:
            _log.warning("notification bootstrap unavailable; failures are reported to the log only")
            return
        self.notifier = notifier

    def save_settings(self) -> bool:
        self.settings.cache[VERSION_KEY] = self.settings.current_version
        try:
            self.store.save(self.settings)
        except Exception:
            _log.exception("failed to persist settings after fetch")
            return False
        return True

    async def fetch(self) -> FetchResult:
        self._failures = set()
        skipped_before = len(self.skipped_import)
        cache_valid = validate_cache(self.settings, self.store, offline=self.source.offline)
        loading = None
        self._in_flight = {}
        try:
            if self.settings.features.get(NOTIFICATION_BOOTSTRAP_KEY) is True:
                await self.fetch_by_key(NOTIFICATION_BOOTSTRAP_KEY)
                self._adopt_notifier()
                if not cache_valid and self.settings.use_cache:
                    try:
                        loading = self.notifier.info('<div class="loading"></div>Initializing components', 'Initializing')
                    except Exception:
                        _log.exception("failed to show loading notification")
            keys = [k for k in self.settings.enabled_features() if k != NOTIFICATION_BOOTSTRAP_KEY]
            results = await asyncio.gather(*(self.fetch_by_key(k) for k in keys), return_exceptions=True)
            for key, outcome in zip(keys, results):
                if isinstance(outcome, Exception):
                    _log.error("unexpected failure fetching %s", key, exc_info=outcome)
                    self._failures.add(key)
        finally:
            self._in_flight = None
            self._awaiting.clear()

        saved = self.save_settings()
        if loading is not None:
            try:
                loading.dismiss()
            except Exception:
                _log.exception("failed to dismiss loading notification")
        await install_dropdowns(self)
        await install_widgets(self)

        result = FetchResult(
            cache_valid=cache_valid,
            loaded=self.attributes.keys(),
            failed=sorted(self._failures),
            skipped=self.skipped_import[skipped_before:],
            cache_saved=saved,
        )
        self.last_result = result
        _log.info(
            "fetch complete loaded=%d failed=%d skipped=%d cache_valid=%s",
            len(result.loaded), len(result.failed), len(result.skipped), cache_valid,
        )
        return result
