"""Main FastAPI application entry point."""

import logging
from fastapi import FastAPI, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession
from pydantic import BaseModel
from typing import List, Optional

from app.config import settings, PlatformKeys
from app.database.database import init_db, get_db, SessionLocal
from app.api.credentials import router as credentials_router
from app.services.encryption_service import EncryptionService
from app.services.credential_service import UserCredentialsService

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="AI Credential Manager",
    description="Per-user encrypted AI service keys with platform fallback",
    version="0.1.0",
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(credentials_router)


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    database: str
    encryption: str
    platform_keys: List[str] = []
    message: Optional[str] = None


def build_credentials_service() -> UserCredentialsService:
    """Wire the credential service from process settings.

    Exits the process if ENCRYPTION_KEY is missing or invalid.
    """
    platform_keys = PlatformKeys.from_settings(settings)
    logger.info(
        f"Platform keys configured for: {[s.value for s in platform_keys.configured_services()] or 'none'}"
    )
    return UserCredentialsService(EncryptionService(), platform_keys, SessionLocal)


@app.on_event("startup")
async def startup_event():
    """Validate encryption, initialize database, and build the credential service."""
    app.state.credentials_service = build_credentials_service()
    await init_db()


@app.on_event("shutdown")
async def shutdown_event():
    """Let pending last-used updates finish."""
    service = getattr(app.state, "credentials_service", None)
    if service is not None:
        await service.drain_background_tasks()


@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": "AI Credential Manager API", "version": "0.1.0"}


@app.get("/api/health", response_model=HealthResponse)
async def health_check(request: Request, db: AsyncSession = Depends(get_db)):
    """Health check endpoint.

    Checks database connectivity and encryption key validity.
    """
    service: UserCredentialsService = request.app.state.credentials_service
    health_status = {
        "status": "healthy",
        "database": "connected",
        "encryption": "valid",
        "platform_keys": [s.value for s in service.platform_keys.configured_services()],
    }

    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Health check database probe failed: {e}")
        health_status["status"] = "unhealthy"
        health_status["database"] = "disconnected"
        health_status["message"] = str(e)
        return HealthResponse(**health_status)

    if not service.encryption_service.self_test():
        health_status["encryption"] = "invalid"
        health_status["status"] = "unhealthy"
        health_status["message"] = "Encryption service validation failed"

    return HealthResponse(**health_status)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host=settings.app_host, port=settings.app_port)
