from __future__ import annotations
from datetime import datetime, timezone
from typing import Any
from sqlalchemy import Integer, String, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column
from feature_loader.db.session import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LoaderSetting(Base):
    """One persisted top-level field of the user settings (features, cache, ...)."""
    __tablename__ = 'loader_settings'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    key: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    value: Mapped[Any | None] = mapped_column(JSON(none_as_null=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)
