"""Integration tests for JWT authentication.

Validates:
  - /health is public (plain Django view, no DRF).
  - Order endpoints return 401 without a token, with an invalid token or
    with a malformed Authorization header.
  - A token obtained from /api/v1/auth/token/ grants access.
"""

import pytest
from django.contrib.auth import get_user_model

pytestmark = pytest.mark.integration

ORDERS_URL = "/api/v1/orders/"
TOKEN_URL = "/api/v1/auth/token/"


@pytest.fixture()
def staff_credentials():
    get_user_model().objects.create_user(
        username="amina", password="s3cret-pass", first_name="Amina", is_staff=True
    )
    return {"username": "amina", "password": "s3cret-pass"}


class TestPublicEndpoints:
    def test_health_is_public(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestProtectedEndpoints:
    """Every order endpoint requires a valid JWT (fail closed)."""

    def test_no_token_returns_401(self, api_client):
        assert api_client.get(ORDERS_URL).status_code == 401

    def test_invalid_token_returns_401(self, api_client):
        api_client.credentials(HTTP_AUTHORIZATION="Bearer invalid.token.here")
        assert api_client.get(ORDERS_URL).status_code == 401

    def test_malformed_auth_header_returns_401(self, api_client):
        api_client.credentials(HTTP_AUTHORIZATION="Token some-token")
        assert api_client.get(ORDERS_URL).status_code == 401

    def test_401_includes_www_authenticate_header(self, api_client):
        response = api_client.get(ORDERS_URL)
        assert response.status_code == 401
        assert "Bearer" in response.get("WWW-Authenticate", "")


class TestTokenFlow:
    def test_obtain_and_use_token(self, api_client, staff_credentials):
        response = api_client.post(TOKEN_URL, staff_credentials, format="json")
        assert response.status_code == 200
        tokens = response.json()
        assert {"access", "refresh"} <= set(tokens)

        api_client.credentials(HTTP_AUTHORIZATION=f"Bearer {tokens['access']}")
        assert api_client.get(ORDERS_URL).status_code == 200

    def test_refresh_token(self, api_client, staff_credentials):
        refresh = api_client.post(TOKEN_URL, staff_credentials, format="json").json()["refresh"]

        response = api_client.post(f"{TOKEN_URL}refresh/", {"refresh": refresh}, format="json")
        assert response.status_code == 200
        assert "access" in response.json()

    def test_wrong_password_rejected(self, api_client, staff_credentials):
        response = api_client.post(
            TOKEN_URL, {"username": "amina", "password": "nope"}, format="json"
        )
        assert response.status_code == 401
        assert response.json()["type"] == "authentication_error"
