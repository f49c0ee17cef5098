from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from feature_loader.core.config import settings


engine = create_engine(
    settings.database_url,
    connect_args={'check_same_thread': False},
    future=True,
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

class Base(DeclarativeBase):
    pass

def init_db(bind=None) -> None:
    # Import models so their tables register on Base.metadata
    from feature_loader.models import settings as _settings_models  # noqa: F401
    Base.metadata.create_all(bind=bind or engine)
