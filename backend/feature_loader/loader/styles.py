from __future__ import annotations
import logging
import re
from typing import TYPE_CHECKING

from feature_loader.resources.catalog import ResourceType

if TYPE_CHECKING:
    from feature_loader.loader.manager import ResourceManager

_log = logging.getLogger(__name__)

_CAMEL_RE = re.compile(r'([a-z])([A-Z])')


def style_element_id(key: str) -> str:
    """``blurVideoControl`` -> ``blur-video-control-style``."""
    return _CAMEL_RE.sub(lambda m: f"{m.group(1)}-{m.group(2).lower()}", key) + '-style'


class StyleManager:
    def __init__(self, manager: 'ResourceManager'):
        self.manager = manager

    def apply_style(self, key: str, element_id: str | None = None) -> bool:
        text = self.manager.import_(key)
        if text is None:
            return False
        self.apply_style_from_text(text, element_id or style_element_id(key))
        return True

    def apply_style_from_text(self, text: str, element_id: str) -> None:
        self.manager.page.apply_style(element_id, text)

    def remove_style(self, key: str) -> None:
        self.manager.page.remove_style(style_element_id(key))

    async def fetch_style_by_key(self, key: str) -> bool:
        resource = self.manager.registry.get(key)
        if resource is None:
            self.manager.skipped_import.append(key)
            return False
        if resource.type is not ResourceType.style:
            _log.warning("fetch_style_by_key called for non-style resource %s (%s)", key, resource.type.value)
            return False
        text = await self.manager.download(resource)
        if text is None:
            return False
        return self.apply_style(key)
