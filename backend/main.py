"""
TowDesk Backend - Main Application Entry Point
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.errors import WorkflowError
from app.core.logging import logger
from app.api.routes import accident_links, accident_form, accidents, tow_providers
from app.db.base import Base
from app.db.session import engine
from app.services.db_utils import DatabaseOperationError


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle management."""
    # Startup
    Base.metadata.create_all(bind=engine)
    logger.info(f"Starting {settings.APP_NAME} in {settings.APP_ENV} mode")
    yield
    # Shutdown
    logger.info("Shutting down...")


app = FastAPI(
    title=settings.APP_NAME,
    description="Accident intake and tow dispatch",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS Configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(WorkflowError)
async def workflow_error_handler(request: Request, exc: WorkflowError):
    logger.info(f"{request.method} {request.url.path} rejected: {exc.code}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(DatabaseOperationError)
async def database_error_handler(request: Request, exc: DatabaseOperationError):
    logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(
        status_code=503,
        content={"detail": "Service temporarily unavailable", "error": "database_unavailable"},
    )


# Include API Routers
app.include_router(accident_links.router, prefix="/accident-link", tags=["Accident Links"])
app.include_router(accident_form.router, prefix="/accident-form", tags=["Accident Form"])
app.include_router(accidents.router, prefix="/accidents", tags=["Accidents"])
app.include_router(tow_providers.router, prefix="/tow-providers", tags=["Tow Providers"])


@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "app": settings.APP_NAME,
        "env": settings.APP_ENV,
    }
