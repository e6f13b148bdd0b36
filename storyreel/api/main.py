"""Main FastAPI application for StoryReel."""

from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from storyreel import __version__
from storyreel.core.config import get_config
from storyreel.core.logging_config import get_logger
from storyreel.api.routers import generate, videos

logger = get_logger("api.main")

# Initialize rate limiter
limiter = Limiter(key_func=get_remote_address)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Starting StoryReel API...")
    get_config().paths.ensure_directories()
    yield
    logger.info("Shutting down StoryReel API...")


app = FastAPI(
    title="StoryReel API",
    description="Story prompt to AI-generated video",
    version=__version__,
    lifespan=lifespan,
)

# Add rate limiter to app state
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS middleware for the web client
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_config().server.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(generate.router, prefix="/api", tags=["generate"])
app.include_router(videos.router, prefix="/videos", tags=["videos"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": "StoryReel API", "version": __version__}


@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


def start_server(host: str = "0.0.0.0", port: int = 8000, reload: bool = False):
    """Start the FastAPI server."""
    uvicorn.run(
        "storyreel.api.main:app",
        host=host,
        port=port,
        reload=reload,
        log_level="warning",  # Suppress INFO logs for each request
    )


if __name__ == "__main__":
    start_server()
