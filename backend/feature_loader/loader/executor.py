"""Turn downloaded script text into a live component.

A component's source is executed in a fresh namespace and must define a
module-level callable named ``component``::

    def component(settings, manager):
        return {'export': ..., 'widget': {...}, 'dropdown': {...}}

The factory may be a coroutine function. Returning ``None`` stores ``{}``.
"""
from __future__ import annotations
import inspect
import logging
from typing import Any, Callable

_log = logging.getLogger(__name__)

FACTORY_NAME = 'component'


class ComponentExecutionError(Exception):
    """The component source did not produce a usable factory."""


def compile_factory(key: str, text: str) -> Callable[..., Any]:
    namespace: dict = {'__name__': f'feature_loader.components.{key}'}
    code = compile(text, f'<component {key}>', 'exec')
    exec(code, namespace, namespace)
    factory = namespace.get(FACTORY_NAME)
    if not callable(factory):
        raise ComponentExecutionError(f"component {key!r} does not define a callable {FACTORY_NAME}()")
    return factory


async def run_factory(factory: Callable[..., Any], settings: Any, manager: Any) -> Any:
    result = factory(settings, manager)
    if inspect.isawaitable(result):
        result = await result
    return {} if result is None else result
