from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi
from starlette.middleware.base import BaseHTTPMiddleware

from src.config import Settings, get_settings
from src.dependencies import extract_bearer_token
from src.factories import Services, build_services_from_settings
from src.identity.api.routes import users_router
from src.instances.api.routes import instances_router, test_console_router
from src.shared import security
from src.shared.database import close_database, create_all_tables, get_session_factory, init_database
from src.shared.exceptions import UnauthorizedError, register_exception_handlers  # central mapping
from src.shared.http.middleware import RequestIdMiddleware
from src.shared.logging import bind_request_context, get_logger, setup_logging

logger = get_logger(__name__)


class JwtContextMiddleware(BaseHTTPMiddleware):
    """
    Parses Bearer JWT and attaches claims to request.state.user_claims.
    Routes turn missing claims into 401 through get_current_actor.
    """

    async def dispatch(self, request: Request, call_next):
        token = extract_bearer_token(request)
        request.state.user_claims = None
        if token:
            try:
                claims = security.decode_token(token)
                request.state.user_claims = {
                    "sub": claims.get("sub"),
                    "role": claims.get("role"),
                }
                bind_request_context(user_id=claims.get("sub"), role=claims.get("role"))
            except UnauthorizedError as e:
                logger.info("Rejected bearer token", reason=e.message)

        return await call_next(request)


def create_app(settings: Optional[Settings] = None, services: Optional[Services] = None) -> FastAPI:
    """
    Build the API application.

    When `services` is given (tests), the lifespan uses it as-is and owns
    no database or gateway resources.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(settings)
        if services is not None:
            app.state.services = services
            yield
            return

        engine = await init_database(settings.DATABASE_URL)
        if settings.DB_CREATE_ALL:
            await create_all_tables(engine)
        app.state.services = await build_services_from_settings(settings, get_session_factory())
        logger.info("Application started", environment=settings.ENVIRONMENT)
        try:
            yield
        finally:
            await app.state.services.aclose()
            await close_database()
            logger.info("Application stopped")

    app = FastAPI(
        title="WhatsApp Instance Control Plane API",
        version=settings.PROJECT_VERSION,
        swagger_ui_parameters={"persistAuthorization": True},
        lifespan=lifespan,
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
        allow_credentials=True,
    )

    # JWT → request.state.user_claims
    app.add_middleware(JwtContextMiddleware)
    # Outermost: request id is bound before anything logs
    app.add_middleware(RequestIdMiddleware)

    # Routers
    app.include_router(users_router)
    app.include_router(instances_router)
    app.include_router(test_console_router)

    # Centralized error handling → {code, message, details?, correlation_id?}
    register_exception_handlers(app)

    @app.get("/health", tags=["Health"])
    async def health():
        return {"status": "ok", "version": settings.PROJECT_VERSION}

    # Root endpoint
    @app.get("/", tags=["Root"])
    async def root():
        """Root endpoint."""
        return {
            "message": "WhatsApp Instance Control Plane API",
            "docs": "/docs",
            "health": "/health",
        }

    # ---- Custom OpenAPI to add Bearer auth ----
    def custom_openapi():
        if app.openapi_schema:
            return app.openapi_schema
        schema = get_openapi(
            title=app.title,
            version=app.version,
            routes=app.routes,
        )
        schema.setdefault("components", {}).setdefault("securitySchemes", {})["bearerAuth"] = {
            "type": "http",
            "scheme": "bearer",
            "bearerFormat": "JWT",
        }
        schema["security"] = [{"bearerAuth": []}]
        app.openapi_schema = schema
        return schema

    app.openapi = custom_openapi

    return app


app = create_app()
