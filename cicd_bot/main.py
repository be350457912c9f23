"""
FastAPI application entry point.
"""

from fastapi import FastAPI
from cicd_bot.config import settings
from cicd_bot.api import ci_cd
from cicd_bot.utils.logging import setup_logging, get_logger

# Configure structured logging
setup_logging(settings.log_level.upper(), settings.log_format)

logger = get_logger(__name__)

# Create FastAPI application
app = FastAPI(
    title="CI/CD Bot",
    description="Adds CI/CD configuration to GitHub repositories through pull requests",
    version="0.1.0"
)


@app.get("/health")
async def health_check():
    """Health check endpoint for container orchestration."""
    return {"status": "healthy", "version": "0.1.0"}


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "CI/CD Bot API",
        "version": "0.1.0",
        "docs": "/docs"
    }


# Include API routers
app.include_router(ci_cd.router)


@app.on_event("startup")
async def startup_event():
    """Initialize services on application startup."""
    logger.info("Starting CI/CD Bot API")

    await ci_cd.ci_cd_service.logs_service.initialize()
    logger.info("Log store initialized")


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup services on application shutdown."""
    logger.info("Shutting down CI/CD Bot API")

    await ci_cd.ci_cd_service.shutdown()
    logger.info("In-flight CI/CD configuration runs completed")

    await ci_cd.ci_cd_service.logs_service.close()
    logger.info("Log store closed")


def run() -> None:
    """Console entry point."""
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)


if __name__ == "__main__":
    run()
