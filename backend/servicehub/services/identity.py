"""Identity relay: exchange a Firebase ID token for a session credential.

The external assertion is always verified against Firebase's published keys
before anything is minted; a request without a verifiable token is rejected.
"""

import logging
import os
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Dict, Optional

from servicehub.auth import create_access_token
from servicehub.models import FirebaseLoginRequest, SessionUser
from servicehub.services.errors import AuthenticationError
from servicehub.services.storage import USERS, StorageGateway

logger = logging.getLogger(__name__)


class IdentityVerifier:
    def verify(self, id_token: str) -> Dict[str, Any]:
        """Return the verified claims of ``id_token`` or raise ``AuthenticationError``."""
        raise NotImplementedError


class FirebaseIdentityVerifier(IdentityVerifier):
    def __init__(self) -> None:
        self._lock = Lock()
        self._app = None

    def _ensure_initialized(self):
        if self._app is not None:
            return self._app
        with self._lock:
            if self._app is not None:
                return self._app
            import firebase_admin
            from firebase_admin import credentials

            credentials_path = os.getenv("FIREBASE_CREDENTIALS_PATH", "").strip()
            project_id = os.getenv("FIREBASE_PROJECT_ID", "").strip()
            options = {"projectId": project_id} if project_id else None
            cred = credentials.Certificate(credentials_path) if credentials_path else None
            try:
                self._app = firebase_admin.get_app()
            except ValueError:
                self._app = firebase_admin.initialize_app(cred, options)
                logger.info("Firebase identity verifier initialized")
            return self._app

    def verify(self, id_token: str) -> Dict[str, Any]:
        from firebase_admin import auth as firebase_auth
        from firebase_admin import exceptions as firebase_exceptions

        app = self._ensure_initialized()
        try:
            return firebase_auth.verify_id_token(id_token, app=app)
        except (ValueError, firebase_exceptions.FirebaseError) as exc:
            logger.warning("Firebase ID token rejected: %s", exc)
            raise AuthenticationError("Invalid or expired identity token") from exc


class IdentityRelay:
    def __init__(self, gateway: StorageGateway, verifier: IdentityVerifier) -> None:
        self._gateway = gateway
        self._verifier = verifier

    def login(self, request: FirebaseLoginRequest) -> tuple[str, str, SessionUser]:
        if not request.id_token:
            raise AuthenticationError("Firebase ID token required")
        claims = self._verifier.verify(request.id_token)

        uid = str(claims.get("uid") or claims.get("sub") or claims.get("user_id") or "").strip()
        email = str(claims.get("email") or "").strip()
        if not uid or not email:
            raise AuthenticationError("Identity token is missing uid or email")
        if (request.uid and request.uid != uid) or (request.email and request.email.lower() != email.lower()):
            raise AuthenticationError("Identity fields do not match the verified token")

        now = datetime.now(timezone.utc)
        user = SessionUser(
            uid=uid,
            email=email,
            display_name=str(claims.get("name") or request.display_name or email),
            photo_url=claims.get("picture") or request.photo_url,
            email_verified=bool(claims.get("email_verified", False)),
            login_time=now.isoformat(),
        )
        self._gateway.upsert_one(
            USERS,
            {"uid": uid},
            {
                "email": user.email,
                "displayName": user.display_name,
                "photoURL": user.photo_url,
                "emailVerified": user.email_verified,
                "lastLoginAt": now,
            },
            on_insert={"createdAt": now},
        )
        token, expires_at = create_access_token(user)
        logger.info("Login for %s", email)
        return token, expires_at, user

    def logout(self, user: SessionUser) -> None:
        # The credential itself stays valid until it expires.
        record = self.find_user(user.uid)
        if record is not None:
            self._gateway.update_by_id(USERS, record["_id"], {"lastLogoutAt": datetime.now(timezone.utc)})
        logger.info("Logout for %s", user.email)

    def find_user(self, uid: str) -> Optional[Dict[str, Any]]:
        rows = self._gateway.find(USERS, {"uid": uid}, newest_first=False, limit=1)
        return rows[0] if rows else None
