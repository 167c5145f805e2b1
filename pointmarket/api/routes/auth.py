"""Session and account routes."""

from typing import Optional

from fastapi import APIRouter, Depends

from pointmarket.api.dependencies import get_service, get_token
from pointmarket.schemas import (
    LoginRequest,
    LoginResult,
    OkResponse,
    PasswordChangeRequest,
    Principal,
)
from pointmarket.service import MarketService

router = APIRouter(prefix="/api", tags=["Auth"])


@router.post("/login", response_model=LoginResult)
def login(request: LoginRequest, service: MarketService = Depends(get_service)):
    """Exchange credentials for a session token."""
    return service.login(request.username, request.password)


@router.post("/logout", response_model=OkResponse)
def logout(
    token: Optional[str] = Depends(get_token),
    service: MarketService = Depends(get_service),
):
    """End the session. Always succeeds."""
    service.logout(token)
    return OkResponse()


@router.get("/me", response_model=Principal)
def me(
    token: Optional[str] = Depends(get_token),
    service: MarketService = Depends(get_service),
):
    """Current user's name, role and balance."""
    return service.get_principal(token)


@router.post("/password", response_model=OkResponse)
def change_password(
    request: PasswordChangeRequest,
    token: Optional[str] = Depends(get_token),
    service: MarketService = Depends(get_service),
):
    service.change_password(token, request.current_password, request.new_password)
    return OkResponse()
