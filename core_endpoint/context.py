"""Execution context resolution.

An invocation arrives in one of several shapes (API Gateway proxy event, AAG
custom integration, direct Lambda invoke, serverless-offline). This module
turns any of them into one canonical :class:`ExecutionContext`.

Normalization is an explicit chain of steps. Each step takes the context and
returns it, and each environment has its own ordered chain in :data:`CHAINS`.

Example:
    .. code-block:: python

        from core_endpoint.context import ContextResolver

        resolver = ContextResolver(config)
        context = resolver.resolve(event, lambda_context)

        context.raw_parameters   # base < query < path
        context.request_body     # always a dict
        context.get_header("x-series-uuid")
"""

from typing import Any, Callable, Dict, List, Mapping, Optional
from enum import Enum
import base64
import binascii
import json
import logging
import uuid

from pydantic import BaseModel, ConfigDict, Field

from .config import EndpointConfig
from .constants import (
    BODY_PARAMETER,
    HDR_AUTHORIZATION,
    HDR_X_API_KEY,
    HDR_X_FORWARDED_FOR,
    HDR_X_SESSION_TOKEN,
    HEADER_SINGULAR,
    HEADERS_PLURAL,
    NAMED_PARAMETERS,
    PATH_PARAMETERS,
    QUERY_STRING_PARAMETERS,
    REQUEST_CONTEXT,
    SERIES_ID_HEADERS,
)
from .errors import EndpointError, ErrorKind
from .log_context import ContextLogger

log = logging.getLogger(__name__)


class Environment(str, Enum):
    """The run-time environment that produced an invocation."""

    GENERIC = "generic"
    LAMBDA_INVOKE = "lambda_invoke"
    AAG = "aag"
    HTTP_PROXY = "http_proxy"
    SERVERLESS_OFFLINE = "serverless_offline"

    def __str__(self) -> str:
        return self.value


class ExecutionContext(BaseModel):
    """Canonical, per-invocation request state.

    Attributes:
        environment (Environment): Where the invocation came from.
        event (Dict[str, Any]): Working copy of the invocation event. The
            caller's original mapping is never modified.
        invocation (Any): The platform invocation object (Lambda context), if any.
        request_id (str): Unique id for this invocation.
        correlation_id (Optional[str]): Series id inherited from an upstream caller.
        stage (str): Deployment stage label.
        raw_parameters (Dict[str, Any]): Merged request parameters.
        request_body (Dict[str, Any]): Parsed request body.
        headers (Dict[str, Any]): Request headers with lower-cased names.
        client_ip (Optional[str]): Caller address.
        api_key (Optional[str]): API key presented by the caller.
        session_token (Optional[str]): Credential string presented by the caller.
        use_development_token (bool): Auto-issue a development token when none is presented.
        logger (Optional[ContextLogger]): Request scoped structured logger.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, validate_assignment=False)

    environment: Environment = Field(default=Environment.GENERIC)
    event: Dict[str, Any] = Field(default_factory=dict)
    invocation: Any = Field(default=None, exclude=True)
    request_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    correlation_id: Optional[str] = None
    stage: str = Field(default="local")
    raw_parameters: Dict[str, Any] = Field(default_factory=dict)
    request_body: Dict[str, Any] = Field(default_factory=dict)
    headers: Dict[str, Any] = Field(default_factory=dict)
    client_ip: Optional[str] = None
    api_key: Optional[str] = None
    session_token: Optional[str] = None
    http_method: Optional[str] = None
    path: Optional[str] = None
    resource: Optional[str] = None
    function_name: Optional[str] = None
    use_development_token: bool = False
    ignore_expiration: bool = False
    logger: Optional[ContextLogger] = Field(default=None, exclude=True)

    @property
    def series_id(self) -> str:
        """Correlation id shared across related requests. Falls back to ``request_id``."""
        return self.correlation_id or self.request_id

    @property
    def ignore_token_expiration(self) -> bool:
        """Always true while a development token is in use."""
        return self.ignore_expiration or self.use_development_token

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        value = self.headers.get(name.lower())
        return default if value is None else value

    def log_assign(self, path: str, value: Any) -> None:
        """Assign a value into the request logger. No-op without a logger."""
        if self.logger is not None:
            self.logger.assign(path, value)


ContextStep = Callable[[ExecutionContext], ExecutionContext]


def _mapping(value: Any) -> Dict[str, Any]:
    return dict(value) if isinstance(value, Mapping) else {}


def _lower_keys(value: Any) -> Dict[str, Any]:
    return {str(k).lower(): v for k, v in _mapping(value).items()}


def _dig(data: Any, *keys: str) -> Any:
    for key in keys:
        if not isinstance(data, Mapping):
            return None
        data = data.get(key)
    return data


def _invocation_attr(invocation: Any, name: str) -> Any:
    if invocation is None:
        return None
    if isinstance(invocation, Mapping):
        return invocation.get(name)
    return getattr(invocation, name, None)


def normalize_headers(context: ExecutionContext) -> ExecutionContext:
    """Merge the singular ``header`` and plural ``headers`` containers.

    Names are lower-cased. On a collision the plural container wins. The
    singular container is dropped from the working event.
    """
    singular = _lower_keys(context.event.pop(HEADER_SINGULAR, None))
    plural = _lower_keys(context.event.get(HEADERS_PLURAL))
    context.headers = {**singular, **plural}
    context.event[HEADERS_PLURAL] = dict(context.headers)
    return context


def resolve_base(context: ExecutionContext) -> ExecutionContext:
    """Resolve generic context data: named parameters, ids, stage and identity hints."""
    event = context.event

    if not context.headers:
        context.headers = _lower_keys(event.get(HEADERS_PLURAL))

    context.raw_parameters = _mapping(event.get(NAMED_PARAMETERS))

    for name in SERIES_ID_HEADERS:
        series = context.get_header(name)
        if series:
            context.correlation_id = str(series)
            break

    request_context = _mapping(event.get(REQUEST_CONTEXT))

    stage = request_context.get("stage")
    if stage:
        context.stage = str(stage)

    client_ip = _dig(request_context, "identity", "sourceIp")
    if not client_ip:
        forwarded = context.get_header(HDR_X_FORWARDED_FOR)
        if forwarded:
            client_ip = next((ip.strip() for ip in str(forwarded).split(",") if ip.strip()), None)
    context.client_ip = client_ip

    context.api_key = context.get_header(HDR_X_API_KEY) or _dig(request_context, "identity", "apiKey")

    token = context.get_header(HDR_X_SESSION_TOKEN)
    if not token:
        authorization = context.get_header(HDR_AUTHORIZATION)
        if authorization and str(authorization).lower().startswith("bearer "):
            token = str(authorization)[7:]
    context.session_token = token.strip() if isinstance(token, str) and token.strip() else None

    context.http_method = event.get("httpMethod") or request_context.get("httpMethod")
    context.path = event.get("path") or request_context.get("path")
    context.resource = event.get("resource") or request_context.get("resourcePath")

    return context


def resolve_platform(context: ExecutionContext) -> ExecutionContext:
    """Adopt platform identifiers from the invocation envelope."""
    platform_request_id = _invocation_attr(context.invocation, "aws_request_id") or _dig(
        context.event, REQUEST_CONTEXT, "requestId"
    )
    if platform_request_id:
        context.request_id = str(platform_request_id)

    function_name = _invocation_attr(context.invocation, "function_name")
    if function_name:
        context.function_name = str(function_name)

    return context


def merge_http_parameters(context: ExecutionContext) -> ExecutionContext:
    """Merge query string and path parameters over the base parameters.

    Precedence is base < query < path.
    """
    event = context.event
    query = _mapping(event.get(QUERY_STRING_PARAMETERS))
    path = _mapping(event.get(PATH_PARAMETERS))
    event[QUERY_STRING_PARAMETERS] = query
    event[PATH_PARAMETERS] = path

    context.raw_parameters = {**context.raw_parameters, **query, **path}
    return context


def resolve_http_body(context: ExecutionContext) -> ExecutionContext:
    """Parse the request body into a dict.

    Raises:
        EndpointError: ``RequestValidationError`` for undecodable or malformed
            text, or JSON that is not an object.
    """
    body = context.event.get(BODY_PARAMETER)

    if isinstance(body, (str, bytes)) and context.event.get("isBase64Encoded"):
        try:
            body = base64.b64decode(body, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as e:
            raise EndpointError(ErrorKind.REQUEST_VALIDATION, "Request body is not valid base64 data", cause=e) from e

    if isinstance(body, bytes):
        try:
            body = body.decode("utf-8")
        except UnicodeDecodeError as e:
            raise EndpointError(ErrorKind.REQUEST_VALIDATION, "Request body is not valid UTF-8 text", cause=e) from e

    if isinstance(body, str):
        if not body.strip():
            parsed: Any = {}
        else:
            try:
                parsed = json.loads(body)
            except json.JSONDecodeError as e:
                raise EndpointError(
                    ErrorKind.REQUEST_VALIDATION, f"Request body is not valid JSON: {e.msg}", cause=e
                ) from e
        if not isinstance(parsed, dict):
            raise EndpointError(ErrorKind.REQUEST_VALIDATION, "Request body must be a JSON object")
        context.request_body = parsed
    elif isinstance(body, Mapping):
        context.request_body = dict(body)
    else:
        context.request_body = {}

    return context


BASE_CHAIN: List[ContextStep] = [resolve_base]
LAMBDA_CHAIN: List[ContextStep] = [resolve_base, resolve_platform]
HTTP_CHAIN: List[ContextStep] = [
    normalize_headers,
    resolve_base,
    resolve_platform,
    merge_http_parameters,
    resolve_http_body,
]

CHAINS: Dict[Environment, List[ContextStep]] = {
    Environment.GENERIC: BASE_CHAIN,
    Environment.LAMBDA_INVOKE: LAMBDA_CHAIN,
    Environment.AAG: HTTP_CHAIN,
    Environment.HTTP_PROXY: HTTP_CHAIN,
    Environment.SERVERLESS_OFFLINE: HTTP_CHAIN,
}


def resolve_environment(event: Any, invocation: Any = None, override: Optional[str] = None) -> Environment:
    """Decide which environment produced an invocation.

    Order: explicit override, ``isOffline``, HTTP proxy fields, the singular
    AAG ``header`` container, a Lambda invocation object, then generic.
    """
    if override:
        try:
            return Environment(override)
        except ValueError as e:
            raise EndpointError(
                ErrorKind.ENVIRONMENT_RESOLUTION, f"Unknown execution environment '{override}'", cause=e
            ) from e

    if isinstance(event, Mapping):
        if event.get("isOffline") is True:
            return Environment.SERVERLESS_OFFLINE
        if "httpMethod" in event or REQUEST_CONTEXT in event:
            return Environment.HTTP_PROXY
        if isinstance(event.get(HEADER_SINGULAR), Mapping):
            return Environment.AAG

    if _invocation_attr(invocation, "aws_request_id") or _invocation_attr(invocation, "invoked_function_arn"):
        return Environment.LAMBDA_INVOKE

    return Environment.GENERIC


class ContextResolver:
    """Builds an :class:`ExecutionContext` for each invocation.

    Args:
        config (EndpointConfig): Supplies the fallback stage, the development
            token flags and the optional environment override.
        logger (Optional[logging.Logger]): Base logger for request scoped loggers.
    """

    def __init__(self, config: EndpointConfig, logger: Optional[logging.Logger] = None):
        self.config = config
        self.logger = logger or log

    def create(self, event: Any, invocation: Any = None) -> ExecutionContext:
        """Create an unresolved context seeded from configuration."""
        environment = resolve_environment(event, invocation, self.config.environment)
        context = ExecutionContext(
            environment=environment,
            event=dict(event) if isinstance(event, Mapping) else {},
            invocation=invocation,
            stage=self.config.stage,
            use_development_token=self.config.use_development_token,
            ignore_expiration=self.config.ignore_token_expiration,
            logger=ContextLogger(self.logger),
        )
        context.log_assign("request.environment", environment.value)
        return context

    def run_chain(self, context: ExecutionContext, event: Any) -> ExecutionContext:
        """Run the normalization chain for the context's environment.

        Raises:
            EndpointError: ``ContextDataResolutionError`` when the event is not a
                mapping, or whatever a step raises.
        """
        if not isinstance(event, Mapping):
            raise EndpointError(
                ErrorKind.CONTEXT_DATA_RESOLUTION,
                f"Invocation event must be a mapping, got {type(event).__name__}",
            )

        for step in CHAINS[context.environment]:
            context = step(context)

        context.log_assign("request.requestId", context.request_id)
        context.log_assign("request.seriesId", context.series_id)
        context.log_assign("request.stage", context.stage)

        log.debug(
            "Execution context resolved",
            extra={
                "details": {
                    "environment": context.environment.value,
                    "request_id": context.request_id,
                    "series_id": context.series_id,
                    "parameters": sorted(context.raw_parameters),
                }
            },
        )
        return context

    def resolve(self, event: Any, invocation: Any = None) -> ExecutionContext:
        """Create and fully resolve a context in one call."""
        return self.run_chain(self.create(event, invocation), event)
