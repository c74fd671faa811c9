"""Session token validation and issuance.

The :class:`SessionManager` gates endpoint execution behind a signed,
expiring session token, and mints tokens for the well-known personas.

Validation runs these steps strictly in order and stops at the first failure:

    1. Skip: an endpoint that does not require a session is authorized as is.
    2. Extraction: the request's token, else a development token when the
       request allows one, else nothing.
    3. Existence: no token raises ``MissingSessionToken``.
    4. Validity: signature check with expiry ignored. Failure raises
       ``InvalidSessionToken``.
    5. Expiration: a second verification with expiry enforced, unless the
       request ignores expiration. Failure raises ``ExpiredSessionToken``.

Example:
    .. code-block:: python

        manager = SessionManager(SessionConfig(token_secret="s3cr3t"))

        token = manager.system_token(request)
        request.token = token
        await manager.validate_request(request, require_session=True)
        request.user_id  # "258c39ee-d4c1-3b92-71a0-fc661f0cd951"
"""

from typing import Any, Dict, List, Optional
from datetime import datetime
import logging
import uuid

import jwt
from pydantic import BaseModel, ConfigDict, Field

from .config import SessionConfig
from .constants import (
    DEFAULT_NAMESPACE,
    DEFAULT_SOURCE_IP,
    FLAG_DEVELOPMENT,
    FLAG_PUBLIC,
    FLAG_SYSTEM,
    FLAG_UNAUTHORIZED,
    PUBLIC_PERSON_ID,
    PUBLIC_USER_ID,
    SYSTEM_PERSON_ID,
    SYSTEM_USER_ID,
    TOKEN_SCHEMA_VERSION,
)
from .errors import EndpointError, ErrorKind
from .request import Request
from .token import TokenCodec

log = logging.getLogger(__name__)


class TokenPayload(BaseModel):
    """Identity data carried inside a session token under ``data``."""

    model_config = ConfigDict(populate_by_name=True)

    username: Optional[str] = None
    user_id: Optional[str] = Field(None, alias="userId")
    person_id: Optional[str] = Field(None, alias="personId")
    v: int = TOKEN_SCHEMA_VERSION
    session_id: str = Field(default_factory=lambda: str(uuid.uuid4()), alias="sessionId")
    flags: List[str] = Field(default_factory=list)
    ns: str = DEFAULT_NAMESPACE
    api_key: Optional[str] = Field(None, alias="apiKey")


class TokenConfig(BaseModel):
    """Input for :meth:`SessionManager.mint`.

    Attributes:
        ttl (Optional[int]): Requested lifetime in seconds. ``None`` uses the
            configured default. Always clamped to ``[0, max_ttl]``.
        user_id (Optional[str]): Top level user id.
        source_ip (str): Address the token is issued to.
        data (TokenPayload): Identity data.
    """

    model_config = ConfigDict(populate_by_name=True)

    ttl: Optional[int] = None
    user_id: Optional[str] = Field(None, alias="userId")
    source_ip: Optional[str] = Field(DEFAULT_SOURCE_IP, alias="sourceIp")
    data: TokenPayload = Field(default_factory=TokenPayload)

    def to_claims(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude={"ttl"}, mode="json")


class SessionManager:
    """Validates and issues session tokens.

    Args:
        config (SessionConfig): Signing secret, algorithm and TTL limits.
        codec (Optional[TokenCodec]): Token codec. Built from ``config`` when omitted.
    """

    def __init__(self, config: SessionConfig, codec: Optional[TokenCodec] = None):
        self.config = config
        self.codec = codec or TokenCodec.from_config(config)

    async def validate_request(self, request: Request, require_session: bool = True) -> Request:
        """Authorize ``request`` or raise a session :class:`EndpointError`.

        On success with a token, the decoded claims are attached as
        ``request.token_data`` and projected into the request logger.
        """
        if not require_session:
            return request

        token = self._get_token_from_request(request)

        self._ensure_token_exists(token)

        claims = self._ensure_token_is_valid(token)

        if not request.ignore_token_expiration:
            self._ensure_token_has_not_expired(token)

        request.token = token
        request.token_data = claims
        self._apply_session_values_to_logger(claims, request)

        log.debug(
            "Session validated",
            extra={"details": {"session_id": request.session_id, "user_id": request.user_id, "flags": request.token_flags}},
        )
        return request

    def _get_token_from_request(self, request: Request) -> Optional[str]:
        token = request.token
        if isinstance(token, str) and token.strip():
            return token.strip()

        if request.use_development_token:
            log.debug("Issuing development token for request", extra={"details": {"request_id": request.context.request_id}})
            return self.development_token(request)

        return None

    @staticmethod
    def _ensure_token_exists(token: Optional[str]) -> None:
        if token is None:
            raise EndpointError(
                ErrorKind.MISSING_SESSION_TOKEN,
                "Access Denied: This endpoint requires a valid and active session token, "
                "but one was not provided in the request.",
            )

    def _ensure_token_is_valid(self, token: str) -> Dict[str, Any]:
        try:
            return self.codec.decode(token, verify_exp=False)
        except jwt.InvalidTokenError as e:
            raise EndpointError(
                ErrorKind.INVALID_SESSION_TOKEN,
                "Access Denied: The provided session token is not valid, is malformed, or has been altered.",
                cause=e,
            ) from e

    def _ensure_token_has_not_expired(self, token: str) -> None:
        try:
            self.codec.decode(token, verify_exp=True)
        except jwt.InvalidTokenError as e:
            raise EndpointError(
                ErrorKind.EXPIRED_SESSION_TOKEN,
                "Access Denied: The provided session token is valid, but has expired. "
                "Please acquire a new token by renewing your session or by creating a new session.",
                cause=e,
            ) from e

    @staticmethod
    def _apply_session_values_to_logger(claims: Dict[str, Any], request: Request) -> None:
        context = request.context
        if context.logger is None:
            return

        data = claims.get("data") or {}
        context.log_assign("session.sessionId", data.get("sessionId"))
        context.log_assign("session.namespace", data.get("ns"))
        context.log_assign("session.token.clientIp", claims.get("sourceIp"))
        context.log_assign("session.token.flags", data.get("flags"))
        context.log_assign("session.token.version", data.get("v"))
        context.log_assign("user.personId", data.get("personId"))
        context.log_assign("user.username", data.get("username"))
        context.log_assign("user.userId", data.get("userId"))

    def clamp_ttl(self, ttl: Optional[int]) -> int:
        """Clamp a requested lifetime to ``[0, max_ttl]``."""
        if ttl is None:
            return self.config.default_ttl
        return min(max(int(ttl), 0), self.config.max_ttl)

    def mint(self, token_config: Optional[TokenConfig] = None, request: Optional[Request] = None, issued_at: Optional[datetime] = None) -> str:
        """Sign a new session token.

        The API key and source address are taken from the request's context
        when a request is given.

        Args:
            token_config (Optional[TokenConfig]): Identity data and requested TTL.
            request (Optional[Request]): Request supplying identity hints.
            issued_at (Optional[datetime]): Issue time. Defaults to now.

        Returns:
            str: The signed token.
        """
        cfg = token_config.model_copy(deep=True) if token_config else self.default_token_config
        ttl = self.clamp_ttl(cfg.ttl)

        if request is not None:
            cfg.data.api_key = request.context.api_key
            cfg.source_ip = request.context.client_ip

        token = self.codec.encode(cfg.to_claims(), ttl, issued_at=issued_at)

        log.debug(
            "Session token issued",
            extra={"details": {"user_id": cfg.user_id, "session_id": cfg.data.session_id, "flags": cfg.data.flags, "ttl": ttl}},
        )
        return token

    def public_token(self, request: Optional[Request] = None) -> str:
        return self.mint(self.public_token_config, request)

    def system_token(self, request: Optional[Request] = None) -> str:
        return self.mint(self.system_token_config, request)

    def development_token(self, request: Optional[Request] = None) -> str:
        return self.mint(self.development_token_config, request)

    @property
    def default_token_config(self) -> TokenConfig:
        """A fresh anonymous token configuration with a new session id."""
        return TokenConfig(ttl=self.config.default_ttl)

    @property
    def public_token_config(self) -> TokenConfig:
        cfg = self.default_token_config
        cfg.user_id = PUBLIC_USER_ID
        cfg.data.username = "public"
        cfg.data.user_id = PUBLIC_USER_ID
        cfg.data.person_id = PUBLIC_PERSON_ID
        cfg.data.flags = [FLAG_PUBLIC, FLAG_UNAUTHORIZED]
        return cfg

    @property
    def system_token_config(self) -> TokenConfig:
        cfg = self.default_token_config
        cfg.user_id = SYSTEM_USER_ID
        cfg.data.username = "system"
        cfg.data.user_id = SYSTEM_USER_ID
        cfg.data.person_id = SYSTEM_PERSON_ID
        cfg.data.flags = [FLAG_SYSTEM]
        return cfg

    @property
    def development_token_config(self) -> TokenConfig:
        cfg = self.system_token_config
        cfg.data.flags.append(FLAG_DEVELOPMENT)
        return cfg
