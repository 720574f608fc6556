"""
FastAPI application factory and entry point.

This module creates and configures the FastAPI application:
  1. Lifespan manager — logging, table creation, cross-reference engine
     startup (the index is loaded from the database), engine disposal
  2. CORS middleware
  3. Exception handlers — maps XrefError kinds to HTTP responses
  4. Router registration

Running locally:
    uvicorn app.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app import models  # noqa: F401  (registers every table on Base.metadata)
from app.config import settings
from app.database import AsyncSessionLocal, Base, engine
from app.dependencies import init_xref_engine
from app.exceptions import register_exception_handlers
from app.logging_config import configure_logging
from app.routers import accounts, admin, cards, customers, xref

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup:
      Configures logging, creates missing tables (Alembic would own this in
      production), then builds the cross-reference engine and loads the
      index from card_xrefs.

    Shutdown:
      Disposes of the database engine, closing all connections cleanly.
    """
    # --- Startup ---
    configure_logging(settings)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    index = await init_xref_engine(app.state, AsyncSessionLocal)
    logger.info("%s %s started with %d cross-references",
                settings.APP_NAME, settings.APP_VERSION, await index.count())
    yield
    # --- Shutdown ---
    await engine.dispose()


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Card / account / customer cross-reference index with paged card browsing",
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------

register_exception_handlers(app)

# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

app.include_router(xref.router, prefix="/xref", tags=["Cross-References"])
app.include_router(cards.router, prefix="/cards", tags=["Cards"])
app.include_router(accounts.router, prefix="/accounts", tags=["Accounts"])
app.include_router(customers.router, prefix="/customers", tags=["Customers"])
app.include_router(admin.router, prefix="/admin/xref", tags=["Admin"])


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------

@app.get("/health", tags=["Health"])
async def health_check():
    """Liveness check used by deployments."""
    return {"status": "ok", "version": settings.APP_VERSION}
