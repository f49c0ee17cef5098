"""Hand component widgets and dropdown options to the page.

Every candidate is installed concurrently and in isolation: one failing
condition, content fragment or callback is logged and does not stop the rest.
"""
from __future__ import annotations
import asyncio
import inspect
import logging
from typing import TYPE_CHECKING, Any, List

from feature_loader.loader.attributes import DropdownDescriptor, WidgetDescriptor, flatten_dropdowns
from feature_loader.loader.page import Page, dropdown_selector

if TYPE_CHECKING:
    from feature_loader.loader.manager import ResourceManager

_log = logging.getLogger(__name__)


async def _evaluate_condition(condition) -> bool:
    if callable(condition):
        try:
            condition = condition()
            if inspect.isawaitable(condition):
                condition = await condition
        except Exception:
            _log.debug("widget condition failed; treated as false", exc_info=True)
            return False
    return condition is True


async def install_widget(page: Page, widget: WidgetDescriptor) -> bool:
    if not await _evaluate_condition(widget.condition):
        return False
    if widget.content:
        page.append_widget(widget.content)
    if widget.success is not None:
        outcome = widget.success()
        if inspect.isawaitable(outcome):
            await outcome
    return True


async def install_widgets(manager: 'ResourceManager') -> List[str]:
    """Install each component's widget once; components installed by an earlier pass are skipped."""
    candidates = []
    for attrs in manager.attributes:
        if attrs.key in manager.installed_widgets:
            continue
        try:
            widget = attrs.widget
        except Exception:
            _log.exception("invalid widget declaration for %s; skipped", attrs.key)
            continue
        if widget is not None:
            candidates.append((attrs.key, widget))
    if not candidates:
        return []
    results = await asyncio.gather(
        *(install_widget(manager.page, widget) for _, widget in candidates),
        return_exceptions=True,
    )
    installed: List[str] = []
    for (key, _), outcome in zip(candidates, results):
        if isinstance(outcome, Exception):
            _log.error("widget install failed for %s: %s", key, outcome, exc_info=outcome)
            # content may already be on the page
            manager.installed_widgets.add(key)
        elif outcome:
            installed.append(key)
    manager.installed_widgets.update(installed)
    _log.debug("widgets installed=%s", installed)
    return installed


async def install_dropdown(
    page: Page,
    descriptor: DropdownDescriptor,
    installed: List[Any] | None = None,
) -> bool:
    """Add ``descriptor``'s items as options; items already in ``installed`` are not added again."""
    dropdown = await page.wait_for(dropdown_selector(descriptor.key))
    if dropdown is None:
        _log.warning("dropdown %s not found on page; options not added", descriptor.key)
        return False
    for item in descriptor.items:
        if installed is not None:
            if item in installed:
                continue
            installed.append(item)
        dropdown.add_option(item, lambda item=item: dropdown.set_value(item))
    return True


def _descriptors_from(source: str, read) -> List[DropdownDescriptor]:
    try:
        return read()
    except Exception:
        _log.exception("invalid dropdown declaration from %s; skipped", source)
        return []


def collect_dropdowns(manager: 'ResourceManager') -> List[DropdownDescriptor]:
    descriptors: List[DropdownDescriptor] = []
    for resource in manager.registry:
        descriptors.extend(_descriptors_from(resource.key, lambda r=resource: flatten_dropdowns(r.dropdown)))
    for attrs in manager.attributes:
        descriptors.extend(_descriptors_from(attrs.key, lambda a=attrs: a.dropdowns))
    return descriptors


async def install_dropdowns(manager: 'ResourceManager') -> List[str]:
    descriptors = collect_dropdowns(manager)
    if not descriptors:
        return []
    results = await asyncio.gather(
        *(
            install_dropdown(manager.page, d, manager.installed_options.setdefault(d.key, []))
            for d in descriptors
        ),
        return_exceptions=True,
    )
    installed: List[str] = []
    for descriptor, outcome in zip(descriptors, results):
        if isinstance(outcome, Exception):
            _log.error("dropdown install failed for %s: %s", descriptor.key, outcome, exc_info=outcome)
        elif outcome:
            installed.append(descriptor.key)
    return installed
