from contextlib import asynccontextmanager
from fastapi import FastAPI
from stackrank import __version__
from stackrank.api.routes import router
from stackrank.core.cors import setup_cors
from stackrank.core.logging import setup_logging, get_logger
from stackrank.db.database import init_database

# Setup logging first
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown."""
    # Startup
    logger.info("Starting StackRank API...")
    init_database()
    logger.info("Database initialized")

    yield

    # Shutdown
    logger.info("Shutting down StackRank API...")


# Create FastAPI app
app = FastAPI(
    title="StackRank API",
    description="Priority signal classification and stack ranking of work items",
    version=__version__,
    lifespan=lifespan
)

# Setup CORS
setup_cors(app)

# Include API routes
app.include_router(router)


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "name": "StackRank API",
        "version": __version__,
        "docs": "/docs",
        "health": "/api/health"
    }
