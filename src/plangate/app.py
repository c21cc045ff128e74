"""HTTP surface of the entitlement service.

Services ask ``/users/{id}/features`` what a user may do; admins manage
the plan catalog, user plans and per-user overrides, and read the audit
log. Everything except ``/health`` requires the API key.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from plangate.common.config import get_settings
from plangate.common.schemas import HealthResponse


def create_app() -> FastAPI:
    """Build the app. Catalog and override tables are created on startup;
    seeding the default plans is left to ``plangate seed``."""
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        from plangate.deps import get_db
        db = get_db()
        await db.init()
        await db.create_all()
        yield
        await db.close()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", response_model=HealthResponse)
    async def health():
        return HealthResponse(version=settings.api_version)

    # Read path first, then the admin surfaces.
    from plangate.entitlements.router import router as entitlements_router
    from plangate.catalog.router import router as catalog_router
    from plangate.users.router import router as users_router
    from plangate.overrides.router import router as overrides_router
    from plangate.audit.router import router as audit_router

    prefix = settings.api_prefix
    app.include_router(entitlements_router, prefix=prefix, tags=["entitlements"])
    app.include_router(catalog_router, prefix=prefix, tags=["catalog"])
    app.include_router(users_router, prefix=prefix, tags=["users"])
    app.include_router(overrides_router, prefix=prefix, tags=["overrides"])
    app.include_router(audit_router, prefix=prefix, tags=["audit"])

    return app
