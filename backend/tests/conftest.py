import os
import sys
from typing import Any, Callable, Dict

import pytest
from fastapi.testclient import TestClient

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from servicehub.main import create_app
from servicehub.services.errors import AuthenticationError
from servicehub.services.identity import IdentityVerifier
from servicehub.services.memory_store import MemoryGateway


class StaticIdentityVerifier(IdentityVerifier):
    """Accepts ``valid:<uid>:<email>[:<name>]`` tokens, rejects everything else."""

    def verify(self, id_token: str) -> Dict[str, Any]:
        parts = id_token.split(":")
        if len(parts) < 3 or parts[0] != "valid":
            raise AuthenticationError("Invalid or expired identity token")
        claims: Dict[str, Any] = {"uid": parts[1], "email": parts[2], "email_verified": True}
        if len(parts) > 3:
            claims["name"] = parts[3]
        return claims


def id_token_for(email: str, name: str = "") -> str:
    uid = "uid-" + email.split("@")[0]
    return f"valid:{uid}:{email}:{name}" if name else f"valid:{uid}:{email}"


@pytest.fixture
def gateway() -> MemoryGateway:
    return MemoryGateway()


@pytest.fixture
def client(gateway: MemoryGateway) -> TestClient:
    return TestClient(create_app(gateway=gateway, verifier=StaticIdentityVerifier()))


@pytest.fixture
def login(client: TestClient) -> Callable[..., Dict[str, str]]:
    def _login(email: str, name: str = "") -> Dict[str, str]:
        response = client.post("/api/auth/firebase-login", json={"idToken": id_token_for(email, name)})
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['token']}"}

    return _login


@pytest.fixture
def create_service(client: TestClient) -> Callable[..., Dict[str, Any]]:
    def _create(headers: Dict[str, str], **overrides: Any) -> Dict[str, Any]:
        payload = {
            "serviceName": "Laptop Repair",
            "serviceDescription": "Screen, keyboard and battery replacement.",
            "servicePrice": 1500,
            "serviceArea": "Dhaka",
            "serviceImage": "https://example.com/laptop.jpg",
        }
        payload.update(overrides)
        response = client.post("/api/services", json=payload, headers=headers)
        assert response.status_code == 201, response.text
        return response.json()["service"]

    return _create
