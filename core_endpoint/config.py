"""Endpoint and session configuration.

Configuration is explicit: an :class:`EndpointConfig` (with its nested
:class:`SessionConfig`) is built once, validated at construction, and handed to
the endpoint and its session manager. Nothing reads the signing secret from a
global at request time.

Environment variables (read by ``from_env``):

    - ``JWT_SECRET_KEY``: Token signing secret.
    - ``JWT_ALGORITHM``: HS256, HS384 or HS512 (anything else falls back to HS256).
    - ``JWT_DEFAULT_TTL``: Default token lifetime in seconds.
    - ``SCK_SERVICE_NAME`` / ``SCK_SERVICE_VERSION``: Reported in response metadata.
    - ``SCK_STAGE``: Fallback stage when the invocation does not carry one.
    - ``SCK_ERROR_DOCS_URL``: Base URL for error documentation links.

Example:
    .. code-block:: python

        from core_endpoint.config import EndpointConfig, SessionConfig

        config = EndpointConfig(
            service_name="people",
            service_version="1.4.0",
            session=SessionConfig(token_secret="s3cr3t"),
        )
"""

from typing import Optional
import os
import logging

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .constants import (
    DEFAULT_PAGE_SIZE,
    DEFAULT_STAGE,
    DEFAULT_TOKEN_SECRET,
    DEFAULT_TOKEN_TTL,
    ERROR_DOCS_URL,
    MAX_PAGE_SIZE,
    MAX_TOKEN_TTL,
    SUPPORTED_ALGORITHMS,
)

log = logging.getLogger(__name__)


class SessionConfig(BaseModel):
    """Settings for signing and verifying session tokens.

    Attributes:
        token_secret (str): Shared secret used to sign and verify tokens.
        token_algorithm (str): HMAC algorithm. Defaults to ``HS256``.
        default_ttl (int): Lifetime, in seconds, used when a mint request
            does not specify one. Defaults to 3600.
        max_ttl (int): Upper clamp for any requested lifetime. Defaults to 43200.
        leeway (int): Clock skew tolerance, in seconds, when checking expiry.
    """

    model_config = ConfigDict(frozen=True)

    token_secret: str = Field(..., description="Shared secret used to sign and verify session tokens")
    token_algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    default_ttl: int = Field(default=DEFAULT_TOKEN_TTL, description="Default token lifetime in seconds")
    max_ttl: int = Field(default=MAX_TOKEN_TTL, description="Maximum token lifetime in seconds")
    leeway: int = Field(default=0, ge=0, description="Clock skew tolerance in seconds")

    @field_validator("token_secret")
    @classmethod
    def validate_secret(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("token_secret must not be empty")
        return value

    @field_validator("token_algorithm")
    @classmethod
    def validate_algorithm(cls, value: str) -> str:
        value = value.upper()
        if value not in SUPPORTED_ALGORITHMS:
            raise ValueError(f"Unsupported token algorithm '{value}'. Expected one of {SUPPORTED_ALGORITHMS}")
        return value

    @model_validator(mode="after")
    def validate_ttl(self) -> "SessionConfig":
        if self.max_ttl < 0:
            raise ValueError("max_ttl must not be negative")
        if not 0 <= self.default_ttl <= self.max_ttl:
            raise ValueError(f"default_ttl must be between 0 and {self.max_ttl}")
        return self

    @classmethod
    def from_env(cls) -> "SessionConfig":
        """Build a session configuration from ``JWT_*`` environment variables."""
        secret = os.getenv("JWT_SECRET_KEY", DEFAULT_TOKEN_SECRET)
        if secret == DEFAULT_TOKEN_SECRET:
            log.warning("Using default JWT secret key - change JWT_SECRET_KEY environment variable for production!")

        algorithm = os.getenv("JWT_ALGORITHM", "HS256").upper()
        if algorithm not in SUPPORTED_ALGORITHMS:
            log.warning(f"Unsupported JWT algorithm: {algorithm}, falling back to HS256")
            algorithm = "HS256"

        try:
            default_ttl = int(os.getenv("JWT_DEFAULT_TTL", str(DEFAULT_TOKEN_TTL)))
            if default_ttl < 0 or default_ttl > MAX_TOKEN_TTL:
                log.warning(f"JWT default TTL out of range: {default_ttl}, using default {DEFAULT_TOKEN_TTL}")
                default_ttl = DEFAULT_TOKEN_TTL
        except (ValueError, TypeError):
            log.warning(f"Invalid JWT_DEFAULT_TTL environment variable, using default value of {DEFAULT_TOKEN_TTL}")
            default_ttl = DEFAULT_TOKEN_TTL

        return cls(token_secret=secret, token_algorithm=algorithm, default_ttl=default_ttl)


class EndpointConfig(BaseModel):
    """Settings for one endpoint.

    Attributes:
        service_name (Optional[str]): Name of the service that owns the endpoint.
        service_version (Optional[str]): Version of that service.
        stage (str): Fallback deployment stage. Defaults to ``"local"``.
        require_session (bool): Whether a valid session token is required.
        use_development_token (bool): Mint a development token when the
            request carries none.
        ignore_token_expiration (bool): Skip the expiration check.
        environment (Optional[str]): Force a specific invocation environment.
        error_docs_url (str): Base URL for error documentation links.
        default_page_size (int): Page size when the request does not give one.
        max_page_size (int): Largest page size a request may ask for.
        session (SessionConfig): Token settings.
    """

    model_config = ConfigDict(frozen=True)

    service_name: Optional[str] = Field(None, description="Name of the service that owns the endpoint")
    service_version: Optional[str] = Field(None, description="Version of the service that owns the endpoint")
    stage: str = Field(default=DEFAULT_STAGE, description="Fallback deployment stage")
    require_session: bool = Field(default=True, description="Whether a session token is required")
    use_development_token: bool = Field(default=False, description="Auto-issue a development token")
    ignore_token_expiration: bool = Field(default=False, description="Skip token expiration checks")
    environment: Optional[str] = Field(None, description="Force a specific invocation environment")
    error_docs_url: str = Field(default=ERROR_DOCS_URL, description="Base URL for error documentation")
    default_page_size: int = Field(default=DEFAULT_PAGE_SIZE, ge=1)
    max_page_size: int = Field(default=MAX_PAGE_SIZE, ge=1)
    session: SessionConfig = Field(..., description="Session token settings")

    @field_validator("error_docs_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @model_validator(mode="after")
    def validate_page_sizes(self) -> "EndpointConfig":
        if self.default_page_size > self.max_page_size:
            raise ValueError("default_page_size must not exceed max_page_size")
        return self

    @classmethod
    def from_env(cls, **overrides) -> "EndpointConfig":
        """Build an endpoint configuration from environment variables.

        Keyword overrides win over the environment.
        """
        values = {
            "service_name": os.getenv("SCK_SERVICE_NAME"),
            "service_version": os.getenv("SCK_SERVICE_VERSION"),
            "stage": os.getenv("SCK_STAGE", DEFAULT_STAGE),
            "error_docs_url": os.getenv("SCK_ERROR_DOCS_URL", ERROR_DOCS_URL),
        }
        values.update(overrides)
        if "session" not in values:
            values["session"] = SessionConfig.from_env()
        return cls(**values)
