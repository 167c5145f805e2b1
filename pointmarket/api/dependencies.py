"""
FastAPI dependencies for the market service and bearer tokens.
"""

from typing import Optional

from fastapi import Header, Request

from pointmarket.service import MarketService


def get_service(request: Request) -> MarketService:
    """Return the service built by ``create_app``."""
    return request.app.state.service


def get_token(authorization: Optional[str] = Header(default=None)) -> Optional[str]:
    """
    Extract the session token from an ``Authorization: Bearer <token>`` header.

    Returns None when the header is missing or uses another scheme; the service
    turns that into an AuthenticationError.
    """
    if not authorization or not authorization.startswith("Bearer "):
        return None
    return authorization[len("Bearer "):].strip() or None
