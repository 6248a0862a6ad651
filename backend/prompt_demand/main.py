import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .errors import ConfigurationError
from .logging_utils import setup_logging
from .routers.estimate import router as estimate_router
from .settings import load_settings


# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)


def provider_key_status() -> str:
    """Describe the Serpstat key the engine would use (config first, then env)."""
    try:
        settings = load_settings()
    except ConfigurationError as exc:
        return f"unavailable (config error: {exc})"
    return "configured" if settings.serpstat_api_key else "not set"


@asynccontextmanager
async def lifespan(app: FastAPI):

    # Startup
    setup_logging()
    logger.info("Starting Prompt Demand Estimator %s", __version__)
    logger.info("Serpstat key: %s", provider_key_status())

    yield

    logger.info("Shutting down Prompt Demand Estimator")


app = FastAPI(
    title="Prompt Demand Estimator",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)


app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(estimate_router)


@app.get(
    "/",
    summary="API Root",
    description="Welcome endpoint with API information",
    tags=["General"]
)
async def root():
    """Root endpoint with API information."""
    return {
        "name": "Prompt Demand Estimator",
        "version": __version__,
        "description": "Search demand estimates for natural-language prompts",
        "docs": "/docs",
        "endpoints": {
            "estimate": "POST /estimate - Estimate demand for a prompt",
            "batch": "POST /estimate/batch - Estimate demand for several prompts",
            "related": "POST /estimate/related - Related keywords",
            "suggestions": "POST /estimate/suggestions - Keyword suggestions",
            "health": "GET /estimate/health - Service health check"
        }
    }


@app.get(
    "/health",
    summary="Global Health Check",
    description="Check if the API server is running",
    tags=["General"]
)
async def health():
    """Global health check endpoint."""
    return {
        "status": "healthy",
        "service": "prompt-demand-estimator",
        "version": __version__
    }


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Global exception handler for unhandled errors."""
    logger.exception("Unhandled error on %s", request.url.path)
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal server error",
            "detail": str(exc) if os.getenv("DEBUG", "false").lower() == "true" else "An unexpected error occurred"
        }
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "prompt_demand.main:app",
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
        reload=os.getenv("DEBUG", "false").lower() == "true",
    )
