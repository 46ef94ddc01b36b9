"""
CourseCRM FastAPI Application
Role-based authorization and automatic audit trail around the CRM API
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Callable, Optional

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.responses import Response

from .config import SECURITY_HEADERS, Settings, get_settings
from .database import SessionFactory, check_database_health, create_db_engine, create_session_factory, create_tables
from .logging_config import configure_logging
from .middleware.audit_middleware import AuditMiddleware
from .middleware.authorization_middleware import AuthorizationMiddleware
from .middleware.error_handling import ErrorHandlingMiddleware, register_exception_handlers
from .rbac import RBACManager, get_rbac_manager
from .repositories import AuditRepository
from .routes import audit, consent, contacts, organizations
from .services.audit import AuditDispatcher, AuditQueryService
from .services.audit.dispatcher import AuditWriter
from .services.authorization import OperationRegistry, RequestGate

logger = logging.getLogger(__name__)

ROUTE_MODULES = (audit, organizations, contacts, consent)


def build_operation_registry() -> OperationRegistry:
    """Registry of every guarded operation the routers declare"""
    registry = OperationRegistry()
    for module in ROUTE_MODULES:
        registry.update(module.GUARDED_OPERATIONS)
    return registry


def create_app(
    settings: Optional[Settings] = None,
    session_factory: Optional[SessionFactory] = None,
    audit_store: Optional[AuditWriter] = None,
    rbac: Optional[RBACManager] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Defaults to the cached environment settings
        session_factory: Defaults to a factory over settings.database_url
            (tables are created on first use)
        audit_store: Where audit records are written; defaults to the
            SQLAlchemy AuditRepository over session_factory
        rbac: Evaluator over the permission matrix; defaults to the built-in matrix
    """
    settings = settings or get_settings()
    configure_logging(settings)

    if session_factory is None:
        engine = create_db_engine(settings.database_url)
        create_tables(engine)
        session_factory = create_session_factory(engine)

    repository = AuditRepository(session_factory)
    dispatcher = AuditDispatcher(audit_store or repository, max_queue_size=settings.audit_queue_size)
    rbac = rbac or get_rbac_manager()
    registry = build_operation_registry()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan management."""
        logger.info(f"Starting {settings.app_name} {settings.app_version}...")
        await dispatcher.start()
        yield
        logger.info(f"Shutting down {settings.app_name}...")
        await dispatcher.stop(timeout=settings.audit_shutdown_timeout)

    app = FastAPI(
        title=settings.app_name,
        description="Course management CRM with role-based access control and audit logging",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.rbac = rbac
    app.state.audit_dispatcher = dispatcher
    app.state.audit_query_service = AuditQueryService(repository)

    # Last added runs first: errors -> authorization -> audit -> route
    app.add_middleware(AuditMiddleware, dispatcher=dispatcher)
    app.add_middleware(AuthorizationMiddleware, registry=registry, gate=RequestGate(rbac), settings=settings)

    @app.middleware("http")
    async def security_headers_middleware(request: Request, call_next: Callable[[Request], Any]) -> Response:
        """Add security headers to all responses."""
        response = await call_next(request)
        for header, value in SECURITY_HEADERS.items():
            response.headers[header] = value
        return response

    app.add_middleware(ErrorHandlingMiddleware, include_debug_info=settings.debug)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE"],
        allow_headers=["Authorization", "Content-Type"],
    )

    register_exception_handlers(app)

    for module in ROUTE_MODULES:
        app.include_router(module.router)

    # Health Check Endpoint
    @app.get("/health")
    async def health_check() -> JSONResponse:
        """Health check endpoint for container orchestration."""
        database_ok = await run_in_threadpool(check_database_health, session_factory)
        health_status = {
            "status": "healthy" if database_ok else "degraded",
            "timestamp": time.time(),
            "version": settings.app_version,
            "database": "healthy" if database_ok else "unhealthy",
            "audit_dispatcher": "running" if dispatcher.is_running else "stopped",
            "audit_records_dropped": dispatcher.dropped,
        }
        status_code = status.HTTP_200_OK if database_ok else status.HTTP_503_SERVICE_UNAVAILABLE
        return JSONResponse(content=health_status, status_code=status_code)

    logger.info(f"{settings.app_name} configured with {len(registry)} guarded operations")
    return app


def main() -> None:
    settings = get_settings()
    # Development server configuration
    uvicorn.run(
        "coursecrm.main:create_app",
        factory=True,
        host="0.0.0.0",  # nosec B104 - Intentional for container binding
        port=8000,
        log_level=settings.log_level.lower(),
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
