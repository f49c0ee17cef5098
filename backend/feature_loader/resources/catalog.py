"""Resource catalog: typed, named units of content and their dependency keys.

The catalog is declared in YAML::

    resources:
      toast:
        display_name: Toast notifications
        type: script
        url: https://cdn.example.com/toast.min.js
        dependencies: [toast-style]
    features:
      toast: true

A bare mapping of key -> entry (without the ``resources`` section) is accepted
as well.
"""
from __future__ import annotations
import asyncio
import enum
import logging
import pathlib
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Iterable, Iterator, List, Optional

import yaml

if TYPE_CHECKING:
    from feature_loader.resources.downloader import ContentSource

_log = logging.getLogger(__name__)


def normalize_null_strings(obj: Any) -> Any:
    """Recursively convert YAML placeholder strings 'null' to None."""
    if isinstance(obj, str):
        return None if obj.lower() == "null" else obj
    if isinstance(obj, dict):
        return {k: normalize_null_strings(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [normalize_null_strings(v) for v in obj]
    return obj


# Keys that share the persisted cache record with resource texts
RESERVED_KEYS = frozenset({'version'})


class CatalogError(Exception):
    """Raised when the catalog file itself cannot be read or parsed."""


class ResourceType(str, enum.Enum):
    markup = 'markup'
    style = 'style'
    script = 'script'

    @classmethod
    def parse(cls, raw: Any) -> 'ResourceType | None':
        text = str(raw or '').strip().lower()
        return _TYPE_ALIASES.get(text)


_TYPE_ALIASES = {
    'markup': ResourceType.markup,
    'html': ResourceType.markup,
    'style': ResourceType.style,
    'css': ResourceType.style,
    'script': ResourceType.script,
    'js': ResourceType.script,
}


def _sanitize_dependency_list(raw: Any) -> List[str]:
    """Normalize dependency declarations by removing placeholder null strings."""
    normalized = normalize_null_strings(raw)
    if isinstance(normalized, (list, tuple, set)):
        items: Iterable[Any] = normalized
    elif normalized is None:
        return []
    else:
        items = (normalized,)
    cleaned: List[str] = []
    for item in items:
        if item is None:
            continue
        text = str(item).strip()
        if not text or text.lower() in {"null", "none"}:
            continue
        if text not in cleaned:
            cleaned.append(text)
    return cleaned


@dataclass
class Resource:
    key: str
    display_name: str
    type: ResourceType
    url: str
    dependencies: List[str] = field(default_factory=list)
    dropdown: Any = None
    downloaded: bool = False
    text: Optional[str] = None
    _pending: Optional[asyncio.Future] = field(default=None, repr=False, compare=False)

    async def download(self, source: 'ContentSource') -> str:
        """Return this resource's text, downloading it at most once.

        Concurrent callers share one in-flight download. A failed download is
        not remembered, so a later call retries.
        """
        if self.downloaded:
            return self.text  # type: ignore[return-value]
        pending = self._pending
        if pending is None:
            pending = asyncio.ensure_future(self._download(source))
            self._pending = pending
            pending.add_done_callback(self._clear_pending)
        return await pending

    async def _download(self, source: 'ContentSource') -> str:
        text = await source.load(self)
        self.text = text
        self.downloaded = True
        return text

    def _clear_pending(self, _fut: asyncio.Future) -> None:
        self._pending = None


class ResourceRegistry:
    def __init__(self, resources: Iterable[Resource] = ()):
        self._resources: Dict[str, Resource] = {}
        for resource in resources:
            self.add(resource)

    def add(self, resource: Resource) -> None:
        if resource.key in self._resources:
            raise ValueError(f"duplicate resource key {resource.key!r}")
        self._resources[resource.key] = resource

    def get(self, key: str) -> Resource | None:
        return self._resources.get(key)

    def __contains__(self, key: object) -> bool:
        return key in self._resources

    def __iter__(self) -> Iterator[Resource]:
        return iter(self._resources.values())

    def __len__(self) -> int:
        return len(self._resources)

    def keys(self) -> List[str]:
        return list(self._resources)

    def find_key_by_filename(self, key: str) -> str | None:
        """Return the key of the first entry whose URL names ``<key>.min.js``."""
        keyword = f"{key}.min.js"
        for name, resource in self._resources.items():
            if keyword in resource.url:
                return name
        return None


@dataclass
class Catalog:
    registry: ResourceRegistry
    default_features: Dict[str, bool] = field(default_factory=dict)


def _parse_entry(key: str, data: Any) -> Resource | None:
    if not isinstance(data, dict):
        _log.warning("catalog entry %s is not a mapping; skipped", key)
        return None
    data = normalize_null_strings(data)
    rtype = ResourceType.parse(data.get('type'))
    url = data.get('url')
    if rtype is None or not url:
        _log.warning("catalog entry %s missing type/url (type=%r); skipped", key, data.get('type'))
        return None
    display_name = data.get('display_name') or data.get('displayName') or key
    return Resource(
        key=key,
        display_name=str(display_name),
        type=rtype,
        url=str(url),
        dependencies=_sanitize_dependency_list(data.get('dependencies')),
        dropdown=data.get('dropdown'),
    )


def parse_catalog(data: Any) -> Catalog:
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise CatalogError("catalog root must be a mapping")
    entries = data.get('resources') if isinstance(data.get('resources'), dict) else data
    registry = ResourceRegistry()
    for key, raw in entries.items():
        if key == 'features' and entries is data:
            continue
        if str(key) in RESERVED_KEYS:
            _log.warning("catalog entry %s uses a reserved key; skipped", key)
            continue
        resource = _parse_entry(str(key), raw)
        if resource is not None:
            registry.add(resource)
    features: Dict[str, bool] = {}
    raw_features = data.get('features')
    if isinstance(raw_features, dict):
        features = {str(k): v is True for k, v in raw_features.items()}
    for resource in registry:
        missing = [d for d in resource.dependencies if d not in registry]
        if missing:
            _log.warning("resource %s references unknown dependencies %s", resource.key, missing)
    return Catalog(registry=registry, default_features=features)


def load_catalog(path: pathlib.Path) -> Catalog:
    try:
        raw = yaml.safe_load(pathlib.Path(path).read_text(encoding='utf-8'))
    except FileNotFoundError as e:
        raise CatalogError(f"catalog not found: {path}") from e
    except (OSError, yaml.YAMLError) as e:
        raise CatalogError(f"failed to read catalog {path}: {e}") from e
    catalog = parse_catalog(raw)
    _log.info("loaded catalog path=%s resources=%d", path, len(catalog.registry))
    return catalog
