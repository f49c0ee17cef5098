"""User settings handed to every component factory, persisted as JSON rows.

Each top-level field is stored as one ``loader_settings`` row so that a save
after a fetch pass only rewrites what changed. ``current_version`` is never
persisted: it always reflects the running build.
"""
from __future__ import annotations
import json
import logging
from typing import Any, Callable, Dict, Mapping

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import select
from sqlalchemy.orm import Session

from feature_loader.db.session import SessionLocal
from feature_loader.models.settings import LoaderSetting

_log = logging.getLogger(__name__)

_TRANSIENT_FIELDS = {'current_version'}


class UserSettings(BaseModel):
    model_config = ConfigDict(extra='allow')

    current_version: str = '0.0.0+local'
    features: Dict[str, bool] = Field(default_factory=dict)
    cache: Dict[str, Any] = Field(default_factory=dict)
    use_cache: bool = True
    toast_internal_error: bool = False
    custom_style_color: str = '#00A0D8'
    blur_background_opacity: float = 0.382
    custom_control_background_opacity: float = 0.64

    def enabled_features(self) -> list[str]:
        return [key for key, enabled in self.features.items() if enabled is True]


def _json_safe(key: str, value: Any) -> bool:
    try:
        json.dumps(value)
        return True
    except (TypeError, ValueError):
        _log.debug("skipping non-serializable setting key=%s type=%s", key, type(value).__name__)
        return False


class SettingsStore:
    def __init__(self, session_factory: Callable[[], Session] | None = None):
        self._session_factory = session_factory or SessionLocal

    def load(self, current_version: str, default_features: Mapping[str, bool] | None = None) -> UserSettings:
        db = self._session_factory()
        try:
            rows = db.execute(select(LoaderSetting)).scalars().all()
            data: Dict[str, Any] = {r.key: r.value for r in rows if r.value is not None}
        finally:
            db.close()
        features = dict(default_features or {})
        stored_features = data.get('features')
        if isinstance(stored_features, dict):
            features.update(stored_features)
        data['features'] = features
        data['current_version'] = current_version
        return UserSettings.model_validate(data)

    def save(self, user_settings: UserSettings) -> None:
        payload = user_settings.model_dump(exclude=_TRANSIENT_FIELDS)
        db = self._session_factory()
        try:
            existing = {r.key: r for r in db.execute(select(LoaderSetting)).scalars().all()}
            for key, value in payload.items():
                if not _json_safe(key, value):
                    continue
                row = existing.get(key)
                if row is None:
                    db.add(LoaderSetting(key=key, value=value))
                elif row.value != value:
                    row.value = value
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
        _log.debug("settings saved cache_entries=%d", len(user_settings.cache))
