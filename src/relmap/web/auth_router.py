"""FastAPI router for sign-up, sign-in and sign-out."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from relmap.auth.middleware import require_user
from relmap.auth.models import AuthCredentials, AuthResult

router = APIRouter()


class TokenRequest(BaseModel):
    token: str


class RegisterRequest(BaseModel):
    username: str
    password: str
    display_name: str = ""


def _auth_response(result: AuthResult) -> dict[str, Any]:
    if not result.success:
        raise HTTPException(status_code=401, detail=result.error or "Connexion échouée")
    return {
        "token": result.token,
        "user_id": result.user_id,
        "display_name": result.display_name,
    }


@router.post("/api/auth/register")
async def register(body: RegisterRequest, request: Request) -> dict[str, Any]:
    """Create an account and sign it in."""
    provider = request.app.state.auth_provider
    result = provider.register(
        AuthCredentials(username=body.username, password=body.password),
        display_name=body.display_name,
    )
    return _auth_response(result)


@router.post("/api/auth/login")
async def login(body: AuthCredentials, request: Request) -> dict[str, Any]:
    provider = request.app.state.auth_provider
    return _auth_response(provider.authenticate(body))


@router.post("/api/auth/refresh")
async def refresh(body: TokenRequest, request: Request) -> dict[str, Any]:
    """Exchange a live token for a fresh one; the old token stops working."""
    return _auth_response(request.app.state.auth_provider.refresh_token(body.token))


@router.post("/api/auth/logout")
async def logout(request: Request, user_id: str = Depends(require_user)) -> dict[str, Any]:
    """Revoke the token and forget the user's in-memory map."""
    request.app.state.auth_provider.revoke_token(request.state.auth_token)
    request.app.state.map_sessions.drop(user_id)
    return {"signed_out": True}
