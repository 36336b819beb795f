import jwt
import pytest
from datetime import datetime, timedelta, timezone

from src.core.exceptions.base import AuthenticationError
from src.core.service.auth.jwt_service import JWTService
from src.infra.config.settings import get_settings

settings = get_settings()

TEST_WALLET_ADDRESS = "0x742d35cc6634c0532925a3b844bc454e4438f44e"


@pytest.fixture
def jwt_service():
    return JWTService()


def test_create_access_token(jwt_service):
    """Should create a verifiable access token for the wallet"""
    token = jwt_service.create_access_token(TEST_WALLET_ADDRESS)

    assert token.access_token
    assert token.token_type == "bearer"
    assert token.expires_in == settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60

    payload = jwt_service.verify_access_token(token.access_token)
    assert payload.wallet_address == TEST_WALLET_ADDRESS
    assert payload.jti


def test_tokens_have_unique_ids(jwt_service):
    first = jwt_service.verify_access_token(jwt_service.create_access_token(TEST_WALLET_ADDRESS).access_token)
    second = jwt_service.verify_access_token(jwt_service.create_access_token(TEST_WALLET_ADDRESS).access_token)

    assert first.jti != second.jti


def test_expired_token_rejected(jwt_service):
    token = jwt_service.create_access_token(TEST_WALLET_ADDRESS, expires_delta=timedelta(seconds=-1))

    with pytest.raises(AuthenticationError) as exc_info:
        jwt_service.verify_access_token(token.access_token)
    assert exc_info.value.status_code == 401


def test_token_signed_with_other_key_rejected(jwt_service):
    forged = jwt.encode(
        {
            "sub": TEST_WALLET_ADDRESS,
            "iat": datetime.now(timezone.utc),
            "exp": datetime.now(timezone.utc) + timedelta(minutes=5),
        },
        "not-the-server-secret",
        algorithm="HS256"
    )

    with pytest.raises(AuthenticationError):
        jwt_service.verify_access_token(forged)


def test_token_without_subject_rejected(jwt_service):
    token = jwt.encode(
        {"exp": datetime.now(timezone.utc) + timedelta(minutes=5), "iat": datetime.now(timezone.utc)},
        settings.JWT_SECRET_KEY,
        algorithm=settings.JWT_ALGORITHM
    )

    with pytest.raises(AuthenticationError):
        jwt_service.verify_access_token(token)


def test_garbage_token_rejected(jwt_service):
    with pytest.raises(AuthenticationError):
        jwt_service.verify_access_token("not.a.token")
