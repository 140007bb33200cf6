"""Tests for JWT access and refresh token handling."""

from datetime import UTC, datetime, timedelta

import jwt
import pytest

from app.config import CustomClaim, settings
from app.core.jwt_tokens import (
    REFRESH_TOKEN_TYPE,
    TokenErrors,
    generate_access_token,
    generate_refresh_jwt,
    get_user_id,
    validate_token,
)
from app.schemas.auth import UserAuthorizationData


@pytest.fixture
def user_data() -> UserAuthorizationData:
    return UserAuthorizationData(
        user_id=42,
        user_name="admin",
        email="admin@example.com",
        permissions=["todo.lists.view"],
        roles=["Administrator"],
    )


def _claims(**overrides) -> dict:
    now = datetime.now(UTC)
    claims = {
        "sub": "42",
        "iat": now,
        "exp": now + timedelta(minutes=5),
        "iss": settings.JWT_ISSUER,
        "aud": settings.JWT_AUDIENCE,
    }
    claims.update(overrides)
    return claims


@pytest.mark.unit
class TestAccessToken:
    def test_round_trip_claims(self, user_data):
        issued = generate_access_token(user_data)

        claims = validate_token(issued.token)

        assert isinstance(claims, dict)
        assert claims["sub"] == "42"
        assert claims["email"] == "admin@example.com"
        assert claims["unique_name"] == "admin"
        assert claims[CustomClaim.ROLE] == ["Administrator"]
        assert claims[CustomClaim.PERMISSION] == ["todo.lists.view"]
        assert get_user_id(claims) == 42

    def test_expiry_follows_settings(self, user_data):
        now = datetime(2026, 1, 1, tzinfo=UTC)
        issued = generate_access_token(user_data, now=now)
        assert issued.expires_at == now + timedelta(minutes=settings.JWT_EXPIRY_MINUTES)

    def test_expired_token(self, user_data):
        issued = generate_access_token(user_data, now=datetime.now(UTC) - timedelta(days=1))
        assert validate_token(issued.token) == [TokenErrors.EXPIRED]

    @pytest.mark.parametrize("token", [None, "", "   "])
    def test_empty_token(self, token):
        assert validate_token(token) == [TokenErrors.EMPTY]

    def test_garbage_token(self):
        result = validate_token("not-a-jwt")
        assert isinstance(result, list)
        assert result[0].code == "Token.ValidationFailed"


@pytest.mark.unit
class TestAlgorithmPinning:
    def test_other_hmac_algorithm_rejected(self):
        token = jwt.encode(_claims(), settings.JWT_SECRET, algorithm="HS512")
        assert validate_token(token) == [TokenErrors.INVALID_ALGORITHM]

    def test_unsigned_token_rejected(self):
        token = jwt.encode(_claims(), None, algorithm="none")
        assert validate_token(token) == [TokenErrors.INVALID_ALGORITHM]


@pytest.mark.unit
class TestClaimValidation:
    def test_wrong_issuer(self):
        token = jwt.encode(_claims(iss="someone-else"), settings.JWT_SECRET, algorithm="HS256")
        result = validate_token(token)
        assert isinstance(result, list)
        assert result[0].code == "Token.ValidationFailed"

    def test_wrong_audience(self):
        token = jwt.encode(_claims(aud="other-clients"), settings.JWT_SECRET, algorithm="HS256")
        result = validate_token(token)
        assert isinstance(result, list)
        assert result[0].code == "Token.ValidationFailed"

    def test_wrong_key(self):
        token = jwt.encode(_claims(), "x" * 40, algorithm="HS256")
        result = validate_token(token)
        assert isinstance(result, list)
        assert result[0].code == "Token.ValidationFailed"

    def test_missing_subject(self):
        claims = _claims()
        del claims["sub"]
        token = jwt.encode(claims, settings.JWT_SECRET, algorithm="HS256")
        assert isinstance(validate_token(token), list)

    @pytest.mark.parametrize("claims", [{}, {"sub": "abc"}, {"sub": None}])
    def test_get_user_id_malformed(self, claims):
        assert get_user_id(claims) is None


@pytest.mark.unit
class TestRefreshJwt:
    def test_lifetime(self):
        now = datetime(2026, 1, 1, tzinfo=UTC)

        normal = generate_refresh_jwt(7, now=now)
        remembered = generate_refresh_jwt(7, remember_me=True, now=now)

        assert normal.expires_at == now + timedelta(days=7)
        assert remembered.expires_at == now + timedelta(days=30)

    def test_carries_refresh_type(self):
        claims = validate_token(generate_refresh_jwt(7).token)
        assert isinstance(claims, dict)
        assert claims["typ"] == REFRESH_TOKEN_TYPE
        assert get_user_id(claims) == 7
