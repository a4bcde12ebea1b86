"""Main FastAPI application."""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

from supportwidget import __version__
from supportwidget.config import settings
from supportwidget.database import Base, create_tables
from supportwidget.exceptions import SupportWidgetError
from supportwidget.routers import form_routes, search_routes, session_routes, unanswered_routes
from supportwidget.scheduler import start_scheduler, stop_scheduler

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Support Widget API",
    description="Multi-tenant support widget: knowledge search, visitor sessions and lead capture",
    version=__version__,
    redirect_slashes=False
)

# CORS middleware (the widget is embedded on customer sites)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ============================================
# ERROR HANDLERS
# ============================================

@app.exception_handler(SupportWidgetError)
async def support_widget_error_handler(request: Request, exc: SupportWidgetError):
    """Map the domain taxonomy to {success: false, message} bodies."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
        message = exc.public_message
    else:
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
        message = exc.message

    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": message}
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"success": False, "message": SupportWidgetError.public_message}
    )


# ============================================
# ROUTER REGISTRATION
# ============================================

app.include_router(search_routes.router)
app.include_router(session_routes.router)
app.include_router(unanswered_routes.router)
app.include_router(form_routes.router)

# ============================================
# HEALTH & ROOT ENDPOINTS
# ============================================

@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": __version__,
        "environment": settings.ENVIRONMENT,
        "registered_tables": len(Base.metadata.tables),
        "generator_enabled": bool(settings.OPENAI_API_KEY),
    }


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Support Widget API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health"
    }


# ============================================
# STARTUP & SHUTDOWN
# ============================================

@app.on_event("startup")
async def startup_event():
    """Run on application startup."""
    logger.info(f"Starting Support Widget API ({settings.ENVIRONMENT})...")

    if settings.AUTO_CREATE_TABLES:
        await create_tables()
        logger.info(f"Ensured {len(Base.metadata.tables)} tables: {sorted(Base.metadata.tables.keys())}")

    start_scheduler()
    logger.info("Application started successfully!")


@app.on_event("shutdown")
async def shutdown_event():
    """Run on application shutdown."""
    logger.info("Shutting down Support Widget API...")
    stop_scheduler()
