"""User credential API endpoints."""

from typing import List, Optional
from fastapi import APIRouter, Depends, Header, HTTPException, Request, Response
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.database import get_db
from app.exceptions import ValidationError
from app.models.credential import CredentialInfo
from app.services.credential_service import CredentialCheck, ServiceStatus, UserCredentialsService

router = APIRouter(prefix="/api/credentials", tags=["credentials"])


class CredentialSet(BaseModel):
    """Credential store/replace request."""

    api_key: str


class CredentialConfiguredResponse(BaseModel):
    """Whether a user has an active credential for a service."""

    service: str
    configured: bool


class DeactivateResponse(BaseModel):
    """Deactivate credential response."""

    service: str
    is_active: bool


def get_credentials_service(request: Request) -> UserCredentialsService:
    """Get the credential service built at startup."""
    return request.app.state.credentials_service


def get_current_user_id(x_user_id: Optional[str] = Header(None)) -> str:
    """Identify the caller from the X-User-Id header set by the auth proxy."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return x_user_id


@router.get("", response_model=List[CredentialInfo])
async def list_credentials(
    service: Optional[str] = None,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    credentials: UserCredentialsService = Depends(get_credentials_service)
):
    """List the caller's credentials. API keys are never included."""
    try:
        return await credentials.get_user_credentials(db, user_id, service=service)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)


@router.get("/status", response_model=List[ServiceStatus])
async def list_service_statuses(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    credentials: UserCredentialsService = Depends(get_credentials_service)
):
    """Show, per service, whether a user key and a platform key are configured."""
    return await credentials.get_service_statuses(db, user_id)


@router.put("/{service}", response_model=CredentialInfo)
async def set_credential(
    service: str,
    body: CredentialSet,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    credentials: UserCredentialsService = Depends(get_credentials_service)
):
    """Store or replace the caller's API key for a service.

    The key is encrypted before storage and reactivates a disabled credential.
    """
    try:
        return await credentials.set_credential(db, user_id, service, body.api_key)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)


@router.get("/{service}", response_model=CredentialConfiguredResponse)
async def get_credential_configured(
    service: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    credentials: UserCredentialsService = Depends(get_credentials_service)
):
    """Report whether the caller has an active credential for a service."""
    configured = await credentials.has_credential(db, user_id, service)
    return CredentialConfiguredResponse(service=service, configured=configured)


@router.post("/{service}/deactivate", response_model=DeactivateResponse)
async def deactivate_credential(
    service: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    credentials: UserCredentialsService = Depends(get_credentials_service)
):
    """Disable the caller's credential without deleting it."""
    try:
        found = await credentials.deactivate_credential(db, user_id, service)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)

    if not found:
        raise HTTPException(status_code=404, detail=f"No credential found for service: {service}")
    return DeactivateResponse(service=service, is_active=False)


@router.post("/{service}/test", response_model=CredentialCheck)
async def check_credential(
    service: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    credentials: UserCredentialsService = Depends(get_credentials_service)
):
    """Check that the caller's stored key still decrypts and looks well-formed."""
    try:
        check = await credentials.check_credential(db, user_id, service)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)

    if check is None:
        raise HTTPException(status_code=404, detail=f"No credential found for service: {service}")
    return check


@router.delete("/{service}", status_code=204)
async def delete_credential(
    service: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    credentials: UserCredentialsService = Depends(get_credentials_service)
):
    """Delete the caller's credential for a service."""
    try:
        deleted = await credentials.delete_credential(db, user_id, service)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)

    if not deleted:
        raise HTTPException(status_code=404, detail=f"No credential found for service: {service}")
    return Response(status_code=204)
