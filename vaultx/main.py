from typing import Optional

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .config import VERSION, Settings, settings as default_settings
from .core.errors import Conflict, InternalError, ServiceError
from .core.logging import configure_logging
from .database import Store
from .routers import auth as auth_router
from .routers import budgets as budgets_router
from .routers import dashboard as dashboard_router
from .routers import goals as goals_router
from .routers import graph as graph_router
from .routers import profiles as profiles_router


log = structlog.get_logger(__name__)


def _register_error_handlers(app: FastAPI) -> None:
    def error_response(exc: ServiceError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=exc.headers)

    @app.exception_handler(ServiceError)
    def service_error(request: Request, exc: ServiceError):
        return error_response(exc)

    @app.exception_handler(RequestValidationError)
    def validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(IntegrityError)
    def integrity_error(request: Request, exc: IntegrityError):
        log.warning("integrity_error", path=request.url.path, error=str(exc.orig))
        return error_response(Conflict())

    @app.exception_handler(SQLAlchemyError)
    def database_error(request: Request, exc: SQLAlchemyError):
        log.exception("database_error", path=request.url.path)
        return error_response(InternalError())


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or default_settings
    configure_logging(settings.log_level, json_logs=settings.is_production)

    app = FastAPI(title="Vault-X Budget Backend", version=VERSION)
    app.state.settings = settings
    app.state.store = Store(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Origin", "Content-Type", "Authorization"],
    )
    _register_error_handlers(app)

    @app.on_event("startup")
    def on_startup():
        app.state.store.init_db()
        log.info("startup_complete", environment=settings.environment, version=VERSION)

    @app.on_event("shutdown")
    def on_shutdown():
        app.state.store.dispose()

    @app.get("/health")
    def health():
        return {"status": "operational", "version": VERSION}

    app.include_router(auth_router.router)
    app.include_router(profiles_router.router)
    app.include_router(graph_router.router)
    app.include_router(budgets_router.router)
    app.include_router(goals_router.router)
    app.include_router(dashboard_router.router)

    return app


app = create_app()
