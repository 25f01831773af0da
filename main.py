"""
StreamFlex - FastAPI reference backend
Serves the video API consumed by the viewer sync client.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from config import settings, validate_storage_settings
from database import engine, Base
import models  # noqa: F401
from routers import assets, health, videos


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    # Startup
    print("🚀 Starting StreamFlex API...")
    validate_storage_settings()
    if settings.AUTO_CREATE_DB_SCHEMA:
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            print("🗄️ Database schema verified.")
        except Exception as e:
            print(f"⚠️ Database bootstrap skipped: {e}")
    print(f"📦 Asset storage backend: {settings.ASSET_STORAGE_BACKEND}")
    yield
    # Shutdown
    await engine.dispose()
    print("👋 Shutting down API...")


app = FastAPI(
    title="StreamFlex API",
    description="Upload, list and play device-adaptive videos with view analytics",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(HTTPException)
async def http_exception_handler(_request: Request, exc: HTTPException):
    """Every error body carries a ``message`` string."""
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return JSONResponse(status_code=exc.status_code, content={"message": message}, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(_request: Request, exc: RequestValidationError):
    errors = exc.errors()
    location = ".".join(str(part) for part in errors[0].get("loc", ())) if errors else "body"
    return JSONResponse(status_code=400, content={"message": f"Invalid request: {location}"})


# Include routers
app.include_router(health.router, prefix="/api", tags=["Health"])
app.include_router(videos.router, prefix="/api", tags=["Videos"])
app.include_router(assets.router, tags=["Assets"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "StreamFlex API",
        "version": "0.1.0",
        "status": "running"
    }
