from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from redis.exceptions import RedisError
from app.core.config import settings
from app.core.database import engine, Base
from app.core.redis import get_redis, close_redis
from app.core.responses import register_exception_handlers
from app.api.routes import (
    auth, users, organizations, expenses, finance, invitations, notifications, projects, tasks, timesheets, events, admin
)
from app.services.cleanup_service import cleanup_service
from app import models  # noqa: F401
import logging

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)
logger = logging.getLogger(__name__)

# Create database tables
Base.metadata.create_all(bind=engine)

# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Projects, tasks, expenses, vendor bills and team management"
)

register_exception_handlers(app)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in settings.CORS_ORIGINS.split(",") if origin.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(auth.router, prefix="/api")
app.include_router(users.router, prefix="/api")
app.include_router(organizations.router, prefix="/api")
app.include_router(expenses.router, prefix="/api")
app.include_router(finance.router, prefix="/api")
app.include_router(invitations.router, prefix="/api")
app.include_router(notifications.router, prefix="/api")
app.include_router(projects.router, prefix="/api")
app.include_router(tasks.router, prefix="/api")
app.include_router(timesheets.router, prefix="/api")
app.include_router(events.router, prefix="/api")
app.include_router(admin.router, prefix="/api")


# Startup and shutdown events
@app.on_event("startup")
async def startup_event():
    """Initialize services on startup."""
    logger.info("Starting up...")
    try:
        redis = await get_redis()
        await redis.ping()
        logger.info("✅ Redis connected")
    except (RedisError, OSError) as e:
        logger.warning(f"⚠️ Redis connection failed: {e}")

    if settings.CLEANUP_ENABLED:
        cleanup_service.start_scheduler()

    logger.info("✅ Application started")


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown."""
    logger.info("Shutting down...")
    if cleanup_service.running:
        cleanup_service.stop_scheduler()
    await close_redis()
    logger.info("✅ Application stopped")


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": f"{settings.APP_NAME} API",
        "version": settings.APP_VERSION,
        "docs": "/docs"
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    try:
        redis = await get_redis()
        redis_status = "connected" if await redis.ping() else "disconnected"
    except (RedisError, OSError):
        redis_status = "disconnected"

    return {
        "status": "healthy",
        "redis": redis_status,
        "version": settings.APP_VERSION
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
