"""Admin API routes."""

from typing import Optional

from fastapi import APIRouter, Depends

from pointmarket.api.dependencies import get_service, get_token
from pointmarket.schemas import Principal, UserUpsertRequest
from pointmarket.service import MarketService

router = APIRouter(prefix="/api/admin", tags=["Admin"])


@router.post("/users", response_model=Principal)
def upsert_user(
    request: UserUpsertRequest,
    token: Optional[str] = Depends(get_token),
    service: MarketService = Depends(get_service),
):
    """Create an account or reset an existing one's password."""
    return service.upsert_user(token, request.username, request.password, request.is_admin)
