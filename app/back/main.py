import asyncio
import contextlib
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from app.back.core.config import Settings, settings as default_settings
from app.back.routers import api_admin_models, api_auth, api_models, api_upload
from app.back.services.catalog_service import CatalogRepository
from app.back.services.file_service import FileStore
from app.back.services.lifecycle_service import (
    ConversionFailedError,
    FileTooLargeError,
    LifecycleService,
    ModelNotFoundError,
    UploadValidationError,
)
from app.back.services.session_service import SessionRepository
from app.back.services.user_service import UserRepository

logger = logging.getLogger(__name__)


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(UploadValidationError)
    async def validation_error_handler(request: Request, exc: UploadValidationError):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(FileTooLargeError)
    async def too_large_handler(request: Request, exc: FileTooLargeError):
        return JSONResponse(status_code=413, content={"detail": str(exc)})

    @app.exception_handler(ConversionFailedError)
    async def conversion_error_handler(request: Request, exc: ConversionFailedError):
        return JSONResponse(status_code=500, content={"detail": str(exc)})

    @app.exception_handler(ModelNotFoundError)
    async def not_found_handler(request: Request, exc: ModelNotFoundError):
        return JSONResponse(status_code=404, content={"detail": "Model not found"})

    # 내부 예외 메시지는 밖으로 내보내지 않음
    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or default_settings

    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
    )

    app = FastAPI(
        title="AR Model Viewer",
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url=None,
    )

    file_store = FileStore(settings.UPLOAD_DIR, settings.PUBLIC_UPLOAD_PREFIX)
    file_store.ensure_directories()

    catalog = CatalogRepository(file_store)
    sessions = SessionRepository()

    app.state.settings = settings
    app.state.file_store = file_store
    app.state.catalog = catalog
    app.state.sessions = sessions
    app.state.users = UserRepository()
    app.state.lifecycle = LifecycleService(settings, file_store, catalog, sessions)
    app.state.sweeper_task = None

    _register_exception_handlers(app)

    # 업로드 파일은 누구나 접근 가능 (AR 뷰어가 다른 origin 에서 불러옴)
    @app.middleware("http")
    async def uploads_cors(request: Request, call_next):
        response = await call_next(request)
        if request.url.path.startswith(settings.PUBLIC_UPLOAD_PREFIX + "/"):
            response.headers["Access-Control-Allow-Origin"] = "*"
        return response

    app.mount(
        settings.PUBLIC_UPLOAD_PREFIX,
        StaticFiles(directory=str(file_store.root)),
        name="uploads",
    )

    # 라우터 등록
    app.include_router(api_auth.router)
    app.include_router(api_upload.router)
    app.include_router(api_models.router)
    app.include_router(api_admin_models.router)

    @app.get("/health")
    async def health_check():
        return {"status": "ok"}

    @app.on_event("startup")
    async def on_startup():
        await app.state.users.seed_admin(settings.ADMIN_USERNAME, settings.ADMIN_PASSWORD)
        await catalog.load_from_disk()
        app.state.sweeper_task = asyncio.create_task(app.state.lifecycle.run_expiry_sweeper())

    @app.on_event("shutdown")
    async def on_shutdown():
        task = app.state.sweeper_task
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    return app


app = create_app()
