from pathlib import Path
from pydantic import BaseModel
import os
from dotenv import load_dotenv
from feature_loader import __version__

# Optionally load a config.env file so local runs can keep overrides out of the
# shell environment.
cfg_override = os.getenv('FEATURE_LOADER_CONFIG_FILE')
_env_candidates = []
if cfg_override:
    _env_candidates.append(Path(cfg_override))
_env_candidates.append(Path.cwd() / 'config.env')
_env_candidates.append(Path.cwd() / 'backend' / 'config.env')

for _p in _env_candidates:
    try:
        if _p.exists():
            load_dotenv(str(_p))
            break
    except OSError:
        continue

"""Central configuration.

Env vars:
  FEATURE_LOADER_DATA_DIR          - directory for writable application data (created)
  FEATURE_LOADER_DB_PATH           - explicit path to the SQLite settings db
  FEATURE_LOADER_VERSION           - override the running version (gates the cache)
  FEATURE_LOADER_LOG_LEVEL         - DEBUG, INFO, WARNING, ERROR, CRITICAL
  FEATURE_LOADER_CATALOG           - path to the resources.yml catalog
  FEATURE_LOADER_DOWNLOAD_TIMEOUT  - per-download timeout in seconds
  FEATURE_LOADER_OFFLINE_BUNDLE    - directory of pre-embedded resource texts
"""

_diagnostics: list[str] = []


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError:
        _diagnostics.append(f"invalid_float {name}={value!r} using={default}")
        return default


env_data_dir = os.getenv('FEATURE_LOADER_DATA_DIR')

# Build ordered candidate list (dedup while preserving order)
_candidates = []
for c in [env_data_dir, str(Path.cwd() / 'data')]:
    if c and c not in _candidates:
        _candidates.append(c)

data_dir = None
for cand in _candidates:
    p = Path(cand)
    try:
        p.mkdir(parents=True, exist_ok=True)
        data_dir = p
        _diagnostics.append(f"selected_data_dir={p} (candidate)")
        break
    except OSError as e:  # pragma: no cover
        _diagnostics.append(f"candidate_failed path={p} err={e}")
        continue

if data_dir is None:  # pragma: no cover
    data_dir = Path(__file__).resolve().parent.parent.parent / 'data'
    data_dir.mkdir(parents=True, exist_ok=True)
    _diagnostics.append(f"fallback_package_dir={data_dir}")

db_path = os.getenv('FEATURE_LOADER_DB_PATH')
if db_path:
    db_path = Path(db_path)
else:
    db_path = data_dir / 'loader.db'

catalog_path = os.getenv('FEATURE_LOADER_CATALOG')
if catalog_path:
    catalog_path = Path(catalog_path)
else:
    catalog_path = data_dir / 'resources.yml'

offline_bundle = os.getenv('FEATURE_LOADER_OFFLINE_BUNDLE')


class Settings(BaseModel):
    app_name: str = 'Feature Loader'
    database_url: str = f'sqlite:///{db_path}'
    api_v1_prefix: str = '/api/v1'
    version: str = os.getenv('FEATURE_LOADER_VERSION', __version__)
    data_dir: Path = data_dir
    db_file: Path = db_path
    catalog_file: Path = catalog_path
    offline_bundle_dir: Path | None = Path(offline_bundle) if offline_bundle else None
    download_timeout: float = _env_float('FEATURE_LOADER_DOWNLOAD_TIMEOUT', 30.0)
    # Logging level for the loader (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    log_level: str = os.getenv('FEATURE_LOADER_LOG_LEVEL', 'INFO')
    host: str = os.getenv('FEATURE_LOADER_HOST', '127.0.0.1')
    port: int = int(os.getenv('FEATURE_LOADER_PORT', '4160'))
    diagnostics: list[str] | None = _diagnostics

settings = Settings()
