"""The page surface the loader contributes widgets, styles and options to."""
from __future__ import annotations
import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Protocol, Tuple, Union

_log = logging.getLogger(__name__)

Query = Union[str, Callable[[], Any]]


async def spin_query(
    query: Callable[[], Any | Awaitable[Any]],
    *,
    interval: float = 0.1,
    max_retry: int = 30,
) -> Any | None:
    """Poll ``query`` until it returns something truthy, at most ``max_retry`` times."""
    for _ in range(max(1, max_retry)):
        result = query()
        if inspect.isawaitable(result):
            result = await result
        if result:
            return result
        await asyncio.sleep(interval)
    return None


def dropdown_selector(key: str) -> str:
    return f"dropdown[key={key}]"


class Page(Protocol):
    def append_widget(self, fragment: Any) -> None: ...

    def apply_style(self, element_id: str, text: str) -> None: ...

    def remove_style(self, element_id: str) -> None: ...

    def query(self, selector: str) -> Any | None: ...

    async def wait_for(self, target: Query) -> Any | None: ...


@dataclass
class Dropdown:
    key: str
    value: Any = None
    options: List[Tuple[Any, Callable[[], None]]] = field(default_factory=list)
    listeners: List[Callable[[Any], None]] = field(default_factory=list)

    def add_option(self, item: Any, on_select: Callable[[], None]) -> None:
        self.options.append((item, on_select))

    def items(self) -> List[Any]:
        return [item for item, _ in self.options]

    def select(self, item: Any) -> None:
        for candidate, on_select in self.options:
            if candidate == item:
                on_select()
                return
        raise KeyError(item)

    def set_value(self, value: Any) -> None:
        self.value = value
        for listener in list(self.listeners):
            listener(value)


class MemoryPage:
    """In-process page used by the service and the tests."""

    def __init__(self, *, poll_interval: float = 0.1, max_retry: int = 30):
        self.widgets: List[Any] = []
        self.styles: Dict[str, str] = {}
        self.elements: Dict[str, Any] = {}
        self.poll_interval = poll_interval
        self.max_retry = max_retry

    def append_widget(self, fragment: Any) -> None:
        self.widgets.append(fragment)

    def apply_style(self, element_id: str, text: str) -> None:
        self.styles[element_id] = text

    def remove_style(self, element_id: str) -> None:
        self.styles.pop(element_id, None)

    def add_element(self, selector: str, element: Any) -> Any:
        self.elements[selector] = element
        return element

    def add_dropdown(self, key: str) -> Dropdown:
        return self.add_element(dropdown_selector(key), Dropdown(key=key))

    def query(self, selector: str) -> Any | None:
        return self.elements.get(selector)

    async def wait_for(self, target: Query) -> Any | None:
        if callable(target):
            probe = target
        else:
            probe = lambda: self.query(target)  # noqa: E731
        return await spin_query(probe, interval=self.poll_interval, max_retry=self.max_retry)
