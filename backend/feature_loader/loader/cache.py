from __future__ import annotations
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from feature_loader.core.user_settings import SettingsStore, UserSettings

_log = logging.getLogger(__name__)

VERSION_KEY = 'version'


def _persist(user_settings: 'UserSettings', store: 'SettingsStore') -> None:
    try:
        store.save(user_settings)
    except Exception:
        _log.exception("failed to persist validated resource cache")


def validate_cache(user_settings: 'UserSettings', store: 'SettingsStore', *, offline: bool = False) -> bool:
    """Decide whether the persisted cache can be used by the running version.

    The branches are evaluated in this order and must not be reordered:
    offline bundle, empty cache, unversioned cache (adopted), stale version
    (cleared), current. A failed save is logged; the in-memory decision stands.
    """
    if offline:  # pre-embedded resources always count as cached
        return True
    cache = user_settings.cache
    if len(cache) == 0:
        _log.info("resource cache empty; full download required")
        return False
    if cache.get(VERSION_KEY) is None:
        cache[VERSION_KEY] = user_settings.current_version
        _persist(user_settings, store)
        _log.info("adopted unversioned resource cache as version=%s", user_settings.current_version)
        return True
    if cache[VERSION_KEY] != user_settings.current_version:
        _log.info(
            "resource cache version=%s does not match running version=%s; clearing",
            cache[VERSION_KEY], user_settings.current_version,
        )
        cache.clear()
        _persist(user_settings, store)
        return False
    return True
