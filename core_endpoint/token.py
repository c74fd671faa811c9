"""Signed, time limited session tokens.

Thin wrapper around PyJWT. The codec owns the secret and algorithm, stamps
``iat``/``exp`` on encode, and can verify either with or without the
expiration check.
"""

from typing import Any, Dict, Optional
from datetime import datetime, timedelta, timezone

import jwt

from .config import SessionConfig


class TokenCodec:
    """Encode and decode session tokens with a shared secret.

    Args:
        secret (str): The signing secret.
        algorithm (str): HMAC algorithm name. Defaults to ``HS256``.
        leeway (int): Seconds of clock skew tolerated when checking ``exp``.

    Example:
        .. code-block:: python

            codec = TokenCodec("s3cr3t")
            token = codec.encode({"data": {"userId": "123"}}, ttl=60)
            claims = codec.decode(token)                    # signature + expiry
            claims = codec.decode(token, verify_exp=False)  # signature only
    """

    def __init__(self, secret: str, algorithm: str = "HS256", leeway: int = 0):
        self.secret = secret
        self.algorithm = algorithm
        self.leeway = leeway

    @classmethod
    def from_config(cls, config: SessionConfig) -> "TokenCodec":
        return cls(config.token_secret, config.token_algorithm, config.leeway)

    def encode(self, claims: Dict[str, Any], ttl: int, issued_at: Optional[datetime] = None) -> str:
        """Sign ``claims`` into a token that expires ``ttl`` seconds after ``issued_at``."""
        now = issued_at or datetime.now(timezone.utc)
        payload = dict(claims)
        payload["iat"] = int(now.timestamp())
        payload["exp"] = int((now + timedelta(seconds=ttl)).timestamp())
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def decode(self, token: str, verify_exp: bool = True) -> Dict[str, Any]:
        """Verify ``token`` and return its claims.

        Raises:
            jwt.ExpiredSignatureError: If ``verify_exp`` is set and the token has expired.
            jwt.InvalidTokenError: If the signature or structure is invalid.
        """
        return jwt.decode(
            token,
            self.secret,
            algorithms=[self.algorithm],
            leeway=self.leeway,
            options={
                "verify_signature": True,
                "verify_exp": verify_exp,
                "verify_iat": False,
                "require": ["exp", "iat"],
            },
        )
