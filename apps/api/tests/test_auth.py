from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from leadflow.core.auth import ANONYMOUS, decode_token
from leadflow.core.config import get_settings
from leadflow.main import app


@pytest.fixture(autouse=True)
def jwt_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    monkeypatch.setenv("JWT_SECRET", "test-secret")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def _token(claims: dict[str, object], secret: str = "test-secret") -> str:
    return jwt.encode(claims, secret, algorithm="HS256")


def test_decode_token_reads_subject_and_roles() -> None:
    user = decode_token(_token({"sub": "agent-7", "roles": ["agent", 3]}))

    assert user.sub == "agent-7"
    assert user.roles == ["agent", "3"]


def test_decode_token_defaults_roles_and_rejects_bad_signature() -> None:
    assert decode_token(_token({"sub": "agent-7", "roles": "agent"})).roles == ["user"]
    assert decode_token(_token({"sub": "agent-7"}, secret="other-secret")) == ANONYMOUS
    assert decode_token("not-a-jwt") == ANONYMOUS


def test_me_resolves_actor_from_bearer_token() -> None:
    with TestClient(app) as client:
        response = client.get(
            "/me",
            headers={"Authorization": f"Bearer {_token({'sub': 'agent-7', 'roles': ['agent']})}", "X-Correlation-Id": "corr-me"},
        )
        anonymous = client.get("/me", headers={"Authorization": "Basic abc"})

    assert response.status_code == 200
    assert response.json() == {"user_id": "agent-7", "roles": ["agent"], "correlation_id": "corr-me"}
    assert anonymous.json()["user_id"] == "anonymous"
    assert anonymous.json()["roles"] == ["guest"]
