"""
Brave Things Books Backend API
FastAPI application for external book access and reading-progress sync
"""
import os
import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import uvicorn

from app.core.config import settings
from app.core.middleware import SecurityHeadersMiddleware
from app.core.responses import register_exception_handlers
from app.core.security import production_readiness_issues
from app.api.v1.router import api_router
from app.services.auth_service import AuthService
from app.services.base.store import get_store
from app.services.book_service import BookService

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management"""
    # Startup
    logger.info("🚀 Starting Brave Things Books Backend...")
    logger.debug(f"Debug mode: {settings.DEBUG}")
    logger.debug(f"Log level: {settings.LOG_LEVEL}")

    store = get_store()
    logger.info(f"✅ Document store ready ({settings.STORE_BACKEND})")

    if settings.SEED_CATALOG:
        await BookService(store).seed_catalog()

    if settings.ADMIN_EMAIL and settings.ADMIN_PASSWORD:
        await AuthService(store).ensure_admin(settings.ADMIN_EMAIL, settings.ADMIN_PASSWORD, settings.ADMIN_NAME)
        logger.info("✅ Admin account ready")

    for issue in production_readiness_issues():
        logger.warning(f"⚠️  {issue}")

    yield

    # Shutdown
    logger.info("🛑 Shutting down Brave Things Books Backend...")


# Create FastAPI app
app = FastAPI(
    title="Brave Things Books API",
    description="Book access tokens and reading-progress sync for the Brave Things Books platform",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

register_exception_handlers(app)

# Security middleware
app.add_middleware(SecurityHeadersMiddleware)

# CORS middleware - environment-based configuration
allowed_origins = settings.allowed_origins

# In production, don't use wildcard
if settings.DEBUG:
    logger.warning("⚠️  CORS wildcard enabled - DEBUG mode. Disable in production!")
    allowed_origins = allowed_origins + ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["Retry-After"],
)

# API routes
app.include_router(api_router, prefix="/api/v1")


# Health check
@app.get("/health")
async def health_check():
    return {"status": "healthy", "message": "Brave Things Books Backend is running"}


if __name__ == "__main__":
    # Read PORT from environment (Cloud Run sets this)
    port = int(os.getenv("PORT", settings.PORT))
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=port,
        reload=settings.DEBUG,
        log_level="info",
        access_log=True,
        log_config=None  # Use our custom logging config
    )
