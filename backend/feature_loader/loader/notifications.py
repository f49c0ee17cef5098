"""Notification channel used to surface component failures to the user.

Until the ``toast`` bootstrap component supplies a real channel, failures are
reported through :class:`LogNotifier`, which only writes to the log.
"""
from __future__ import annotations
import logging
from typing import Any, Protocol, runtime_checkable

_log = logging.getLogger(__name__)


@runtime_checkable
class NotificationHandle(Protocol):
    def dismiss(self) -> None: ...


@runtime_checkable
class Notifier(Protocol):
    def error(self, message: str, title: str) -> Any: ...

    def info(self, message: str, title: str) -> NotificationHandle: ...


class _LogHandle:
    def __init__(self, title: str):
        self.title = title
        self.dismissed = False

    def dismiss(self) -> None:
        if not self.dismissed:
            self.dismissed = True
            _log.debug("notification dismissed title=%s", self.title)


class LogNotifier:
    """Console-only notification channel."""

    def error(self, message: str, title: str) -> _LogHandle:
        _log.error("[%s] %s", title, message)
        return _LogHandle(title)

    def info(self, message: str, title: str) -> _LogHandle:
        _log.info("[%s] %s", title, message)
        return _LogHandle(title)


def resolve_notifier(export: Any) -> Notifier | None:
    """Pick the notification channel out of the bootstrap component's export.

    The export either is the channel itself or carries it as ``Toast``.
    """
    if export is None:
        return None
    candidate = export.get('Toast') if isinstance(export, dict) else getattr(export, 'Toast', None)
    for obj in (candidate, export):
        if obj is None:
            continue
        if callable(getattr(obj, 'error', None)) and callable(getattr(obj, 'info', None)):
            return obj
    return None
