from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from feature_loader.core.config import settings
from feature_loader.core.logging_config import configure_logging
from feature_loader.core import runtime
from feature_loader.api import resources as resources_router
from feature_loader.db.session import init_db


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the settings table, build the resource manager and run the first fetch pass.

    Tests (or embedding hosts) may install their own manager through
    ``runtime.set_manager`` before startup; it is reused as-is.
    """
    configure_logging(settings.log_level)

    try:
        init_db()
    except Exception as e:
        print(f"[db] init error: {e}", flush=True)
        raise

    try:
        manager = runtime.get_manager()
    except RuntimeError:
        manager = runtime.create_manager(settings)
        runtime.set_manager(manager)
    print(f"[loader] catalog resources={len(manager.registry)} enabled={len(manager.settings.enabled_features())}", flush=True)

    try:
        result = await runtime.run_fetch()
        print(f"[loader] initial fetch loaded={len(result.loaded)} failed={len(result.failed)} skipped={len(result.skipped)}", flush=True)
    except Exception as e:  # a broken pass must not keep the status API down
        print(f"[loader] initial fetch error: {e}", flush=True)

    yield

    await runtime.shutdown()


app = FastAPI(title=settings.app_name, version=settings.version, lifespan=lifespan)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    print('[validation_error] url=', request.url, 'errors=', exc.errors(), flush=True)
    return JSONResponse(status_code=422, content={'detail': exc.errors()})


app.include_router(resources_router.router, prefix=settings.api_v1_prefix)

app.add_middleware(
    CORSMiddleware,
    allow_origins=['*'],
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)


@app.get('/')
async def root():
    return {'status': 'ok', 'app': settings.app_name, 'version': settings.version}
