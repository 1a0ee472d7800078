"""Unit tests for password hashing, token issuance and the bearer gate."""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
from fastapi.security import HTTPAuthorizationCredentials

from src.cadastro_api.auth_utils import (
    TOKEN_TTL,
    TokenService,
    get_current_user,
    get_token_service,
    hash_password,
    verify_password,
)
from src.cadastro_api.config import Settings
from src.cadastro_api.exceptions import TokenInvalidError, UnauthenticatedError


class TestPasswordHashing:
    def test_verify_accepts_original_secret(self):
        hashed = hash_password("s3cret")

        assert verify_password("s3cret", hashed) is True

    def test_verify_rejects_other_secret(self):
        hashed = hash_password("s3cret")

        assert verify_password("S3cret", hashed) is False

    def test_hash_is_salted(self):
        assert hash_password("s3cret") != hash_password("s3cret")

    def test_hash_uses_twelve_rounds_and_hides_secret(self):
        hashed = hash_password("s3cret")

        assert hashed.startswith("$2b$12$")
        assert "s3cret" not in hashed


class TestTokenService:
    def test_round_trip_returns_claims(self, token_service):
        token = token_service.issue(7, "ana@example.com")

        claims = token_service.verify(token)

        assert claims.user_id == 7
        assert claims.email == "ana@example.com"
        assert claims.expires_at - claims.issued_at == TOKEN_TTL

    def test_ttl_is_two_hours(self):
        assert TOKEN_TTL == timedelta(hours=2)

    def test_expired_token_rejected(self, token_service):
        issued = datetime.now(timezone.utc) - TOKEN_TTL - timedelta(seconds=5)
        token = token_service.issue(7, "ana@example.com", now=issued)

        with pytest.raises(TokenInvalidError):
            token_service.verify(token)

    def test_token_rejected_at_expiry_instant(self, token_service):
        # exp lands on or before the verification time, never after it.
        token = token_service.issue(7, "ana@example.com", now=datetime.now(timezone.utc) - TOKEN_TTL)

        with pytest.raises(TokenInvalidError):
            token_service.verify(token)

    def test_token_still_valid_just_before_expiry(self, token_service):
        issued = datetime.now(timezone.utc) - TOKEN_TTL + timedelta(minutes=1)
        token = token_service.issue(7, "ana@example.com", now=issued)

        assert token_service.verify(token).user_id == 7

    def test_token_from_other_secret_rejected(self, token_service):
        other = TokenService(Settings(jwt_secret="a-completely-different-secret-value"))
        token = other.issue(7, "ana@example.com")

        with pytest.raises(TokenInvalidError):
            token_service.verify(token)

    def test_tampered_token_rejected(self, token_service):
        token = token_service.issue(7, "ana@example.com")
        header, payload, signature = token.split(".")
        tampered = ".".join([header, payload, signature[::-1]])

        with pytest.raises(TokenInvalidError):
            token_service.verify(tampered)

    @pytest.mark.parametrize("garbage", ["", "not-a-jwt", "a.b.c"])
    def test_malformed_token_rejected(self, token_service, garbage):
        with pytest.raises(TokenInvalidError):
            token_service.verify(garbage)


class TestAccessGate:
    """get_current_user: 401 without token, 403 for a bad one."""

    def _request(self):
        request = MagicMock()
        request.method = "GET"
        request.url.path = "/empresas"
        return request

    def test_missing_credentials(self, token_service):
        with pytest.raises(UnauthenticatedError):
            get_current_user(self._request(), None, token_service)

    def test_invalid_token(self, token_service):
        creds = HTTPAuthorizationCredentials(scheme="Bearer", credentials="bogus")

        with pytest.raises(TokenInvalidError):
            get_current_user(self._request(), creds, token_service)

    def test_valid_token_attaches_claims(self, token_service):
        request = self._request()
        creds = HTTPAuthorizationCredentials(scheme="Bearer", credentials=token_service.issue(3, "b@x.com"))

        claims = get_current_user(request, creds, token_service)

        assert claims.user_id == 3
        assert request.state.usuario is claims

    def test_claims_already_attached_are_reused(self, token_service):
        request = self._request()
        claims = token_service.verify(token_service.issue(3, "b@x.com"))
        request.state.usuario = claims

        assert get_current_user(request, None, token_service) is claims

    def test_token_service_cached_on_app_state(self):
        request = MagicMock()
        request.app.state.token_service = None

        first = get_token_service(request)

        assert isinstance(first, TokenService)
        assert get_token_service(request) is first
