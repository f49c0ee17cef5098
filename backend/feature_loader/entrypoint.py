from __future__ import annotations
from feature_loader.core.config import settings
from feature_loader.core.logging_config import configure_logging


def main():
    configure_logging(settings.log_level)
    print(f"[entrypoint] starting version={settings.version} db={settings.database_url} log_level={settings.log_level}", flush=True)
    print(f"[entrypoint] data_dir={settings.data_dir} catalog={settings.catalog_file}", flush=True)
    if settings.offline_bundle_dir:
        print(f"[entrypoint] offline bundle={settings.offline_bundle_dir}", flush=True)
    for line in settings.diagnostics or ():
        print(f"[entrypoint][config] {line}", flush=True)
    import uvicorn
    from uvicorn.config import LOGGING_CONFIG
    print(f"[entrypoint] launching uvicorn on {settings.host}:{settings.port}", flush=True)
    try:
        uvicorn.run(
            'feature_loader.main:app',
            host=settings.host,
            port=settings.port,
            reload=False,
            log_level=settings.log_level.lower(),
            log_config=LOGGING_CONFIG,
        )
    except BaseException as exc:  # catch SystemExit too
        import traceback
        print(f"[entrypoint] uvicorn crashed: {exc}", flush=True)
        traceback.print_exc()
        raise
    finally:
        print("[entrypoint] uvicorn stopped", flush=True)


if __name__ == '__main__':  # pragma: no cover
    main()
