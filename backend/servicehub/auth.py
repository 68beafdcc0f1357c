import base64
import hashlib
import hmac
import json
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from fastapi import Depends, Header, HTTPException, status
from pydantic import ValidationError as ModelValidationError

from servicehub.models import SessionUser

DEFAULT_TOKEN_TTL_HOURS = 24


def _read_ttl_hours() -> int:
    raw = os.getenv("AUTH_TOKEN_TTL_HOURS", str(DEFAULT_TOKEN_TTL_HOURS))
    try:
        value = int(raw)
    except ValueError:
        return DEFAULT_TOKEN_TTL_HOURS
    return value if value > 0 else DEFAULT_TOKEN_TTL_HOURS


def parse_csv_env(name: str, default: str = "") -> list[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


TOKEN_TTL_HOURS = _read_ttl_hours()
_AUTH_SECRET = os.getenv("AUTH_SECRET", "dev-insecure-secret-change-me")


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("utf-8").rstrip("=")


def _b64urldecode(value: str) -> bytes:
    padding = "=" * ((4 - len(value) % 4) % 4)
    return base64.urlsafe_b64decode((value + padding).encode("utf-8"))


def _sign(payload: bytes) -> bytes:
    return hmac.new(_AUTH_SECRET.encode("utf-8"), payload, hashlib.sha256).digest()


def create_access_token(user: SessionUser, ttl: Optional[timedelta] = None) -> tuple[str, str]:
    """Mint a session credential carrying the caller's identity claims.

    The token is ``base64url(json claims).base64url(hmac)``; it is not
    refreshable and stays valid until ``exp`` even after logout.
    """
    issued = datetime.now(timezone.utc)
    expiry = issued + (ttl if ttl is not None else timedelta(hours=TOKEN_TTL_HOURS))
    claims: Dict[str, Any] = user.model_dump(by_alias=True)
    claims["iat"] = int(issued.timestamp())
    claims["exp"] = int(expiry.timestamp())
    payload = json.dumps(claims, separators=(",", ":"), sort_keys=True).encode("utf-8")
    token = f"{_b64url(payload)}.{_b64url(_sign(payload))}"
    return token, expiry.isoformat()


def verify_access_token(token: str) -> Optional[SessionUser]:
    try:
        payload_part, sig_part = token.split(".", 1)
        payload = _b64urldecode(payload_part)
        sent_sig = _b64urldecode(sig_part)
        if not hmac.compare_digest(sent_sig, _sign(payload)):
            return None
        claims = json.loads(payload.decode("utf-8"))
        if not isinstance(claims, dict):
            return None
        if datetime.now(timezone.utc).timestamp() > int(claims.get("exp", 0)):
            return None
        return SessionUser.model_validate(claims)
    except (ValueError, TypeError, ModelValidationError):
        return None


def parse_bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    parts = authorization.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1].strip() or None


def require_authenticated_user(authorization: Optional[str] = Header(default=None)) -> SessionUser:
    token = parse_bearer_token(authorization)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access token required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    user = verify_access_token(token)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def admin_emails() -> set[str]:
    return {email.lower() for email in parse_csv_env("ADMIN_EMAILS")}


def require_admin_user(user: SessionUser = Depends(require_authenticated_user)) -> SessionUser:
    if user.email.lower() not in admin_emails():
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied - administrator role required",
        )
    return user
