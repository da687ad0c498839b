"""
FastAPI application factory and entry point.

This module creates and configures the FastAPI application:
  1. Lifespan manager — logging, DB table creation, role seeding, and the
     rate limiter's background sweep
  2. Middleware — rate limiting, CORS, Vary: Authorization and error recovery
  3. Exception handlers — maps domain errors to HTTP responses
  4. Principal resolution — an application-wide dependency, so every route
     sees a resolved principal before its own guards run
  5. Router registration — mounts all API endpoint groups under /v1

Request pipeline, outermost first:

    RateLimitMiddleware -> CORSMiddleware -> VaryAuthorizationMiddleware
        -> RecoverPanicMiddleware
        -> resolve_principal -> route guards -> handler

Running locally:
    uvicorn impart.main:app --reload

The --reload flag watches for file changes and restarts automatically,
which is ideal for development but should not be used in production.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from impart.config import settings
from impart.database import AsyncSessionLocal, Base, engine
from impart.dependencies import resolve_principal
from impart.exceptions import register_exception_handlers
from impart.logger import configure_logging
from impart.middleware import RecoverPanicMiddleware, VaryAuthorizationMiddleware
from impart.rate_limit import RateLimiter, RateLimitMiddleware
from impart.routers import roles, teachers, tokens, users
from impart.services.role_service import seed_roles


logger = logging.getLogger(__name__)

rate_limiter = RateLimiter(
    rate=settings.LIMITER_RPS,
    burst=settings.LIMITER_BURST,
    enabled=settings.LIMITER_ENABLED,
    idle_seconds=settings.LIMITER_IDLE_SECONDS,
    sweep_seconds=settings.LIMITER_SWEEP_SECONDS,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager (replaces deprecated @app.on_event).

    Startup:
      Creates all database tables if they don't exist and seeds the default
      role catalogue. This is a convenience for development — in production,
      you'd use Alembic migrations exclusively so you have version-controlled,
      reversible schema changes. Then starts the rate limiter's idle sweep.

    Shutdown:
      Stops the sweep and disposes of the database engine, closing all
      connections cleanly.
    """
    # --- Startup ---
    configure_logging()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with AsyncSessionLocal() as session:
        await seed_roles(session)
        await session.commit()
    if rate_limiter.enabled:
        rate_limiter.start()
    logger.info("starting %s env=%s", settings.APP_NAME, settings.ENVIRONMENT)
    yield
    # --- Shutdown ---
    await rate_limiter.stop()
    await engine.dispose()
    logger.info("stopped %s", settings.APP_NAME)


# Create the FastAPI application instance
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Teacher credentialing REST API: users, roles, tokens and teacher profiles",
    lifespan=lifespan,
    dependencies=[Depends(resolve_principal)],
)

# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------
# Starlette wraps each new middleware around the ones added before it, so the
# last one added here is the first to see a request.

app.add_middleware(RecoverPanicMiddleware)
app.add_middleware(VaryAuthorizationMiddleware)

# CORS: Allow specified frontend origins to make requests.
# In production, lock this down to your actual frontend domain(s).
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_origin_regex=settings.ALLOWED_ORIGIN_REGEX,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RateLimitMiddleware, limiter=rate_limiter)

# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------

register_exception_handlers(app)

# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

app.include_router(users.router, prefix="/v1/users", tags=["Users"])
app.include_router(roles.router, prefix="/v1/roles", tags=["Roles"])
app.include_router(tokens.router, prefix="/v1/tokens", tags=["Tokens"])
app.include_router(teachers.router, prefix="/v1/teachers", tags=["Teachers"])


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------

@app.get("/v1/healthcheck", tags=["Health"])
async def health_check():
    """
    Health check endpoint for deployment probes (Kubernetes, Docker, etc.).

    Open to anonymous callers. Load balancers and orchestrators use this to
    determine if the container should receive traffic.
    """
    return {
        "status": "available",
        "environment": settings.ENVIRONMENT,
        "version": settings.APP_VERSION,
    }
