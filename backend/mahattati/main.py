import logging
from contextlib import asynccontextmanager
from pathlib import Path
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from slowapi.middleware import SlowAPIMiddleware
from mahattati.api.error_handlers import register_exception_handlers
from mahattati.api.routes import (
    admin, ads, auth, blog, comments, messages, news_ticker,
    notifications, payments, sponsored_ads, subscriptions, users,
)
from mahattati.core.config import settings
from mahattati.core.database import engine, init_db
from mahattati.core.rate_limit import limiter
from mahattati.core.scheduler import start_scheduler, stop_scheduler

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage app lifecycle events.

    Startup: create missing tables, start the background scheduler
    Shutdown: stop the scheduler and close pooled connections
    """
    # Startup
    # In production, use migrations (Alembic) instead of create_all
    init_db()
    if settings.SCHEDULER_ENABLED:
        start_scheduler()
    logger.info("Mahattati API started")
    yield
    # Shutdown
    stop_scheduler()
    engine.dispose()


app = FastAPI(
    title="Mahattati API",
    description="Bilingual marketplace for fuel station advertisements",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware - allows frontend to make requests to backend
# Without this, browser would block requests due to same-origin policy
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),  # List of allowed frontend URLs
    allow_credentials=True,  # Allow cookies/auth headers
    allow_methods=["*"],  # Allow all HTTP methods
    allow_headers=["*"],  # Allow all headers
)

# Per-IP rate limiting; the limiter's default limit applies to every route
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)

register_exception_handlers(app)

# Register API route modules
# All routes are prefixed with /api for consistency
app.include_router(auth.router, prefix="/api")
app.include_router(users.router, prefix="/api")
app.include_router(ads.router, prefix="/api")
app.include_router(comments.router, prefix="/api")
app.include_router(messages.router, prefix="/api")
app.include_router(notifications.router, prefix="/api")
app.include_router(subscriptions.router, prefix="/api")
app.include_router(payments.router, prefix="/api")
app.include_router(blog.router, prefix="/api")
app.include_router(admin.router, prefix="/api")
app.include_router(sponsored_ads.router, prefix="/api")
app.include_router(news_ticker.router, prefix="/api")

# Uploaded images and media are served straight from disk
Path(settings.UPLOAD_DIR).mkdir(parents=True, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=settings.UPLOAD_DIR), name="uploads")


@app.get("/api/health")
async def health():
    """Health check endpoint - used by monitoring/deployment tools"""
    return {"status": "OK", "message": "Mahattati API is running"}
