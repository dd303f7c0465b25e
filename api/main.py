"""FastAPI main application."""
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import get_settings
from exceptions import ConfigurationError
from logging_config import setup_logging, get_logger
from models import init_db
from api.middleware import setup_middleware
from api.routes import health, workflow

setup_logging()
logger = get_logger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application lifespan events."""
    logger.info("Starting load workflow API", environment=settings.app_env)

    problems = settings.validate_required_settings()
    if problems and settings.is_production:
        raise ConfigurationError("; ".join(problems))
    for problem in problems:
        logger.warning("Configuration problem", problem=problem)

    try:
        init_db()
        logger.info("Database initialized")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")

    yield

    logger.info("Shutting down load workflow API")


app = FastAPI(
    title="Load Workflow",
    description="Driver load execution workflow and trip delivery sequencing",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.is_development else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
setup_middleware(app)

app.include_router(health.router, tags=["Health"])
app.include_router(workflow.router, prefix="/api", tags=["Load workflow"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Load Workflow",
        "version": "1.0.0",
        "status": "running",
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
    )
