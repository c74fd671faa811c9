from datetime import datetime, timedelta, timezone

import jwt
import pytest

from core_endpoint.config import SessionConfig
from core_endpoint.token import TokenCodec


@pytest.fixture
def codec():
    return TokenCodec("token-secret-0123456789abcdef-0123456789")


def test_encode_stamps_iat_and_exp(codec):
    issued = datetime(2030, 1, 1, tzinfo=timezone.utc)
    token = codec.encode({"data": {"userId": "u1"}}, ttl=120, issued_at=issued)

    claims = codec.decode(token, verify_exp=False)
    assert claims["data"] == {"userId": "u1"}
    assert claims["iat"] == int(issued.timestamp())
    assert claims["exp"] - claims["iat"] == 120


def test_expired_token_only_fails_when_expiry_is_checked(codec):
    issued = datetime.now(timezone.utc) - timedelta(seconds=2)
    token = codec.encode({"sub": "u1"}, ttl=1, issued_at=issued)

    with pytest.raises(jwt.ExpiredSignatureError):
        codec.decode(token)

    assert codec.decode(token, verify_exp=False)["sub"] == "u1"


def test_altered_signature_is_rejected(codec):
    issued = datetime.now(timezone.utc)
    token = codec.encode({"sub": "u1"}, ttl=60, issued_at=issued)
    forged = TokenCodec("forged-secret-0123456789abcdef-0123456789").encode({"sub": "u1"}, ttl=60, issued_at=issued)

    header, payload, _ = token.split(".")
    tampered = ".".join([header, payload, forged.split(".")[2]])

    with pytest.raises(jwt.InvalidSignatureError):
        codec.decode(tampered, verify_exp=False)


def test_wrong_secret_is_rejected(codec):
    token = TokenCodec("another-secret-0123456789abcdef-012345678").encode({"sub": "u1"}, ttl=60)

    with pytest.raises(jwt.InvalidTokenError):
        codec.decode(token)


def test_token_without_exp_is_rejected(codec):
    token = jwt.encode({"sub": "u1", "iat": 1}, "token-secret-0123456789abcdef-0123456789", algorithm="HS256")

    with pytest.raises(jwt.MissingRequiredClaimError):
        codec.decode(token, verify_exp=False)


def test_from_config_uses_algorithm():
    codec = TokenCodec.from_config(SessionConfig(token_secret="s" * 64, token_algorithm="hs512"))
    token = codec.encode({}, ttl=10)

    assert codec.algorithm == "HS512"
    assert jwt.get_unverified_header(token)["alg"] == "HS512"
