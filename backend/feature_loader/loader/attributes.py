"""Component attributes: what a script factory hands back, keyed by resource key."""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional

_log = logging.getLogger(__name__)

_MISSING = object()


def _field(bag: Any, name: str, default: Any = None) -> Any:
    if isinstance(bag, dict):
        return bag.get(name, default)
    return getattr(bag, name, default)


@dataclass
class WidgetDescriptor:
    condition: Any = True
    content: Any = None
    success: Optional[Callable[[], Any]] = None

    @classmethod
    def from_raw(cls, raw: Any) -> 'WidgetDescriptor | None':
        if raw is None:
            return None
        if isinstance(raw, cls):
            return raw
        return cls(
            condition=_field(raw, 'condition', True),
            content=_field(raw, 'content'),
            success=_field(raw, 'success'),
        )


@dataclass
class DropdownDescriptor:
    key: str
    items: List[Any] = field(default_factory=list)

    @classmethod
    def from_raw(cls, raw: Any) -> 'DropdownDescriptor | None':
        if isinstance(raw, cls):
            return raw
        key = _field(raw, 'key')
        if not key:
            return None
        items = _field(raw, 'items') or []
        if isinstance(items, (str, bytes, dict)):
            items = None
        else:
            try:
                items = list(items)
            except TypeError:
                items = None
        if items is None:
            _log.warning("dropdown %s items must be a list; descriptor dropped", key)
            return None
        return cls(key=str(key), items=items)


def flatten_dropdowns(raw: Any) -> List[DropdownDescriptor]:
    """Dropdown declarations may be a single descriptor or arbitrarily nested lists."""
    if raw is None:
        return []
    if isinstance(raw, (list, tuple)):
        out: List[DropdownDescriptor] = []
        for item in raw:
            out.extend(flatten_dropdowns(item))
        return out
    descriptor = DropdownDescriptor.from_raw(raw)
    return [descriptor] if descriptor is not None else []


@dataclass
class ComponentAttributes:
    key: str
    raw: Any

    @property
    def export(self) -> Any:
        value = _field(self.raw, 'export', _MISSING)
        return self.raw if value is _MISSING else value

    @property
    def widget(self) -> WidgetDescriptor | None:
        return WidgetDescriptor.from_raw(_field(self.raw, 'widget'))

    @property
    def dropdowns(self) -> List[DropdownDescriptor]:
        return flatten_dropdowns(_field(self.raw, 'dropdown'))


class AttributeStore:
    """Exports of executed components. A later store under the same key replaces the earlier one."""

    def __init__(self) -> None:
        self._attributes: Dict[str, ComponentAttributes] = {}

    def set(self, key: str, raw: Any) -> ComponentAttributes:
        attrs = ComponentAttributes(key=key, raw={} if raw is None else raw)
        self._attributes[key] = attrs
        return attrs

    def get(self, key: str) -> ComponentAttributes | None:
        return self._attributes.get(key)

    def __contains__(self, key: object) -> bool:
        return key in self._attributes

    def __iter__(self) -> Iterator[ComponentAttributes]:
        return iter(list(self._attributes.values()))

    def __len__(self) -> int:
        return len(self._attributes)

    def keys(self) -> List[str]:
        return list(self._attributes)
