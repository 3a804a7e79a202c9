"""
Account service — application entry point.

This is the **only** file that assembles the app.  All business logic
lives in the `services/`, `repositories/`, `models/`, and `core/` packages.
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1.api import api_router
from app.api.v1.endpoints.auth import limiter
from app.core.config import settings
from app.core.exceptions import register_exception_handlers
from app.core.security import password_hasher, token_issuer
from app.db.base import Base
from app.db.session import async_session_factory, engine
from app.models.user import UserRole
from app.repositories.user_repository import SqlAlchemyUserRepository
from app.schemas.user import UserCreate, UserFilters
from app.services.predicates import build_user_predicate
from app.services.user_service import UserService

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


async def seed_admin(session_factory=async_session_factory) -> None:
    """Create the first admin account when no admin exists yet.

    No fallback password exists: without FIRST_ADMIN_PASSWORD nothing is seeded.
    """
    if not settings.FIRST_ADMIN_PASSWORD:
        logger.warning("FIRST_ADMIN_PASSWORD not set; skipping admin seeding")
        return

    async with session_factory() as session:
        service = UserService(
            repository=SqlAlchemyUserRepository(session),
            hasher=password_hasher,
            token_issuer=token_issuer,
            logger=logger,
        )
        _, admin_count = await service.repository.query_page(
            1, 1, build_user_predicate(UserFilters(role=UserRole.ADMIN))
        )
        if admin_count:
            logger.info("Admin account present; skipping admin seeding")
            return
        result = await service.register_user(
            UserCreate(
                username=settings.FIRST_ADMIN_USERNAME,
                email=settings.FIRST_ADMIN_EMAIL,
                password=settings.FIRST_ADMIN_PASSWORD,
                first_name="System",
                last_name="Administrator",
            ),
            role=UserRole.ADMIN,
        )
        if result.ok:
            logger.info(
                "Default admin created: %s (password: <redacted>)",
                settings.FIRST_ADMIN_USERNAME,
            )
        else:
            logger.error("Default admin seeding failed: %s", result.error.message)  # type: ignore[union-attr]


# ── Lifespan ────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(_app: FastAPI):
    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialised")

    await seed_admin()

    logger.info("%s v%s started", settings.PROJECT_NAME, settings.VERSION)
    yield
    await engine.dispose()
    logger.info("Shutdown complete")


# ── App factory ─────────────────────────────────────────────────────
def create_app() -> FastAPI:
    application = FastAPI(
        title=settings.PROJECT_NAME,
        description="User accounts, authentication and role-based user management",
        version=settings.VERSION,
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Rate limiter state (used by slowapi on the login route)
    application.state.limiter = limiter

    # CORS
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # One log line per request with status and duration
    @application.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        logger.info(
            "%s %s -> %d (%.1f ms)",
            request.method,
            request.url.path,
            response.status_code,
            (time.perf_counter() - start) * 1000,
        )
        return response

    # Global exception handlers (prevent stack-trace leakage)
    register_exception_handlers(application)

    # Mount API v1
    application.include_router(api_router, prefix=settings.API_V1_PREFIX)

    return application


app = create_app()
