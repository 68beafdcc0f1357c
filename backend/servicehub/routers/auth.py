from fastapi import APIRouter, Depends

from servicehub.auth import require_authenticated_user
from servicehub.dependencies import get_identity_relay, raise_http_error
from servicehub.models import (
    AuthLoginResponse,
    AuthVerifyResponse,
    FirebaseLoginRequest,
    MessageResponse,
    SessionUser,
)
from servicehub.services.errors import ServiceHubError
from servicehub.services.identity import IdentityRelay

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/firebase-login", response_model=AuthLoginResponse)
def firebase_login(payload: FirebaseLoginRequest, relay: IdentityRelay = Depends(get_identity_relay)):
    try:
        token, expires_at, user = relay.login(payload)
    except ServiceHubError as exc:
        raise_http_error(exc)
    return AuthLoginResponse(token=token, expires_at=expires_at, user=user)


@router.get("/verify", response_model=AuthVerifyResponse)
def verify(user: SessionUser = Depends(require_authenticated_user)):
    return AuthVerifyResponse(user=user)


@router.post("/logout", response_model=MessageResponse)
def logout(
    user: SessionUser = Depends(require_authenticated_user),
    relay: IdentityRelay = Depends(get_identity_relay),
):
    relay.logout(user)
    return MessageResponse(message="Logged out successfully")
