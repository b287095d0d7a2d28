"""
Session API routes
==================

Login and logout. Phone/OTP and federated sign-in happen at the identity
provider; these endpoints exchange its token for a TipKesho session and
revoke that session again.

Routes:
  POST   /api/v1/auth/sessions          -- open a session
  DELETE /api/v1/auth/sessions/current  -- revoke the caller's session
"""

from __future__ import annotations

from fastapi import APIRouter, status

from tipkesho.api.deps import CurrentSession, DBSession
from tipkesho.api.schemas.auth import (
    LoginRequest,
    MessageResponse,
    SessionOut,
    SessionResponse,
    UserOut,
)
from tipkesho.services import auth_service

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post(
    "/sessions",
    response_model=SessionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Open a session",
    description=(
        "Exchanges an identity-provider token for a bearer session token. "
        "Returns 401 if the token is invalid or the user has no profile."
    ),
)
async def login(body: LoginRequest, db: DBSession) -> SessionResponse:
    user, token, expires_at = await auth_service.login(db, body.id_token)
    return SessionResponse(
        data=SessionOut(
            token=token,
            expires_at=expires_at,
            user=UserOut.model_validate(user),
        )
    )


@router.delete(
    "/sessions/current",
    response_model=MessageResponse,
    summary="Revoke the current session",
)
async def logout(caller: CurrentSession, db: DBSession) -> MessageResponse:
    await auth_service.close_session(db, caller.session_id)
    return MessageResponse(message="Session closed.")
