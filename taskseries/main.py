"""Main FastAPI application for the recurring task engine."""
import logging

from fastapi import FastAPI

from taskseries import __version__
from taskseries.config import LOG_LEVEL
from taskseries.db.init import init_db
from taskseries.middleware.cors import add_cors_middleware
from taskseries.routers import recurrence_router

logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)

# Create FastAPI application
app = FastAPI(
    title="Recurring Task Engine API",
    description="REST API for recurring task series: rules, instances and scoped edits",
    version=__version__,
)

add_cors_middleware(app)
app.include_router(recurrence_router, prefix="/api")


@app.on_event("startup")
async def startup_event():
    """Initialize database tables on startup."""
    try:
        init_db()
        logger.info("Database tables initialized successfully.")
    except Exception:
        logger.exception("Database initialization failed; database operations may fail.")


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": __version__}


@app.get("/")
async def root():
    """Root endpoint - API welcome message."""
    return {
        "title": "Recurring Task Engine API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("taskseries.main:app", host="0.0.0.0", port=8000, reload=False)
