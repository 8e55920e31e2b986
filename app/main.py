"""
FastAPI application entry point.
Initializes the FastAPI app, configures logging, and includes the integration
and log viewer routes.
"""

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.models.broker import Platform
from app.routers import integrations, logs
from app.utils.logger import configure_logging

# Configure logging first
configure_logging()
logger = structlog.get_logger()

SERVICE_NAME = "Integration Broker"
VERSION = "1.0.0"

# Create FastAPI app
app = FastAPI(
    title=SERVICE_NAME,
    description="Credential storage, connectivity probing, WooCommerce catalog reads and camouflaged Shopify imports",
    version=VERSION,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(integrations.router)  # Action-tagged integration endpoint
app.include_router(logs.router)  # Activity log viewer


@app.on_event("startup")
async def startup_event():
    """Application startup event."""
    logger.info(
        f"{SERVICE_NAME} started",
        environment=settings.app_environment,
        platforms=[p.value for p in Platform],
        image_strategy=settings.camouflage_image_strategy,
        demo_fallback_enabled=settings.demo_fallback_enabled,
    )


@app.on_event("shutdown")
async def shutdown_event():
    """Application shutdown event."""
    logger.info(f"{SERVICE_NAME} shutting down")


@app.get("/")
async def root():
    """Root endpoint - also serves as a simple health check."""
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "version": VERSION,
        "platforms": [p.value for p in Platform],
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy", "platforms": [p.value for p in Platform]}


@app.get("/healthz")
async def healthz():
    """Alternative health check endpoint (Kubernetes-style)."""
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, reload=True)
