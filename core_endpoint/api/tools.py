"""AWS API Gateway proxy event and Lambda context generation tools.

Builds events and contexts in the shape AWS API Gateway and the Lambda runtime
produce, so an endpoint can be exercised locally (or in tests) exactly as it
runs in production.

Example:
    .. code-block:: python

        from core_endpoint.api.tools import generate_proxy_event, generate_proxy_context

        event = generate_proxy_event(
            protocol="https",
            identity=Identity(sourceIp="10.0.0.1"),
            method="GET",
            resource="/people/{id}",
            path="/people/123",
            path_params={"id": "123"},
            query_params={"include": "profile"},
            body="",
            headers={"x-session-token": token},
        )
        context = generate_proxy_context(event)

        result = await endpoint.execute(event.model_dump(exclude_none=True), context)
"""

from typing import Any, Dict, List, Optional, Union
import hashlib
import socket
import time
import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

from ..constants import DEFAULT_STAGE, HDR_X_CORRELATION_ID

API_LAMBDA_NAME = "core-endpoint-local"


class Identity(BaseModel):
    """Caller identity block of an API Gateway request context."""

    model_config = ConfigDict(populate_by_name=True)

    accountId: Optional[str] = Field(None, description="AWS account ID associated with the caller")
    apiKey: Optional[str] = Field(None, description="API key presented by the caller")
    caller: Optional[str] = Field(None, description="Identifier of the calling service or application")
    sourceIp: Optional[str] = Field(None, description="IP address from which the request originated")
    user: Optional[str] = Field(None, description="User identifier")
    userArn: Optional[str] = Field(None, description="AWS ARN of the caller")
    userAgent: Optional[str] = Field(None, description="HTTP User-Agent string from the client request")


class RequestContext(BaseModel):
    """API Gateway ``requestContext`` block."""

    model_config = ConfigDict(populate_by_name=True)

    resourceId: str = Field(description="API Gateway resource identifier for routing")
    resourcePath: str = Field(description="Resource path template with parameter placeholders")
    httpMethod: str = Field(description="HTTP method for the request")
    path: str = Field(description="Full request path including the stage prefix")
    protocol: str = Field(description="HTTP protocol version", default="HTTP/1.1")
    stage: str = Field(description="Deployment stage name", default=DEFAULT_STAGE)
    requestId: str = Field(description="Unique identifier for this request")
    requestTime: str = Field(
        description="Human-readable request timestamp in API Gateway format",
        default_factory=lambda: datetime.now(timezone.utc).strftime("%d/%b/%Y:%H:%M:%S %z"),
    )
    requestTimeEpoch: int = Field(
        description="Request timestamp as Unix epoch time in milliseconds",
        default_factory=lambda: int(time.time() * 1000),
    )
    identity: Identity = Field(default_factory=Identity, description="Caller identity")
    domainName: str = Field(default="localhost", description="Domain name of the endpoint")
    apiId: str = Field(default="local", description="API Gateway API identifier")


class ProxyEvent(BaseModel):
    """API Gateway Lambda proxy integration event."""

    model_config = ConfigDict(populate_by_name=True)

    httpMethod: str = Field(description="HTTP method for the request")
    resource: str = Field(description="API resource path with parameter placeholders")
    path: Optional[str] = Field(None, description="Actual request path with resolved parameters")
    queryStringParameters: Dict[str, str] = Field(default_factory=dict)
    multiValueQueryStringParameters: Dict[str, List[str]] = Field(default_factory=dict)
    pathParameters: Dict[str, str] = Field(default_factory=dict)
    stageVariables: Dict[str, str] = Field(default_factory=dict)
    requestContext: RequestContext
    headers: Dict[str, str] = Field(default_factory=dict)
    multiValueHeaders: Dict[str, List[str]] = Field(default_factory=dict)
    isBase64Encoded: bool = Field(default=False)
    body: Union[Dict[str, Any], str] = Field(default="")


class ProxyContext(BaseModel):
    """Emulation of the AWS Lambda context object."""

    function_name: str = API_LAMBDA_NAME
    function_version: str = "$LATEST"
    invoked_function_arn: str = f"arn:aws:lambda:us-east-1:123456789012:function:{API_LAMBDA_NAME}"
    memory_limit_in_mb: int = 512
    aws_request_id: str
    log_group_name: str = f"/aws/lambda/{API_LAMBDA_NAME}"
    remaining_time: int = 300000

    def get_remaining_time_in_millis(self) -> int:
        return self.remaining_time


def get_header(headers: Dict[str, str], name: str, default: Optional[str] = None) -> tuple[str, str]:
    """Get header value with case-insensitive lookup.

    Returns:
        tuple[str, str]: The header name as stored (or ``name`` when missing)
        and its value (or ``default``, or ``""``).

    Example:
        .. code-block:: python

            headers = {"Content-Type": "application/json"}

            get_header(headers, "CONTENT-TYPE")          # ("Content-Type", "application/json")
            get_header(headers, "x-missing", "default")  # ("x-missing", "default")
    """
    for k, v in headers.items():
        if k.lower() == name.lower():
            return k, v
    return name, default or ""


def get_ip_address() -> str:
    """Return the IP address of the current host, or ``127.0.0.1``."""
    try:
        return socket.gethostbyname(socket.gethostname())
    except OSError:
        return "127.0.0.1"


def _generate_resource_id(resource: str) -> str:
    return hashlib.md5(resource.encode()).hexdigest()[:12].lower()


def generate_proxy_event(
    protocol: str,
    identity: Optional[Identity],
    method: str,
    resource: str,
    path: str,
    path_params: Optional[Dict[str, str]] = None,
    query_params: Optional[Dict[str, str]] = None,
    body: str = "",
    headers: Optional[Dict[str, str]] = None,
    is_base64_encoded: bool = False,
    stage: str = DEFAULT_STAGE,
) -> ProxyEvent:
    """Generate an API Gateway proxy event.

    The request id is the inbound ``X-Correlation-Id`` when present,
    otherwise a new UUID.

    Args:
        protocol (str): ``"http"`` or ``"https"``.
        identity (Optional[Identity]): Caller identity. Anonymous when omitted.
        method (str): HTTP method.
        resource (str): Resource template, e.g. ``"/people/{id}"``.
        path (str): Concrete request path.
        path_params (Optional[Dict[str, str]]): Path parameters.
        query_params (Optional[Dict[str, str]]): Query string parameters.
        body (str): Request body text (base64 when ``is_base64_encoded``).
        headers (Optional[Dict[str, str]]): Request headers.
        is_base64_encoded (bool): Whether ``body`` is base64 encoded.
        stage (str): Deployment stage.

    Returns:
        ProxyEvent: The event.
    """
    headers = dict(headers or {})
    query_params = dict(query_params or {})
    path_params = dict(path_params or {})

    _, correlation_id = get_header(headers, HDR_X_CORRELATION_ID)
    request_id = correlation_id or str(uuid.uuid4())

    request_context = RequestContext(
        resourceId=_generate_resource_id(resource),
        resourcePath=resource,
        httpMethod=method.upper(),
        path=f"/{stage}{path}",
        protocol=f"{protocol.upper()}/1.1",
        stage=stage,
        requestId=request_id,
        identity=identity or Identity(sourceIp=get_ip_address(), caller="anonymous"),
    )

    return ProxyEvent(
        httpMethod=method.upper(),
        resource=resource,
        path=path,
        queryStringParameters=query_params,
        multiValueQueryStringParameters={k: [v] for k, v in query_params.items()},
        pathParameters=path_params,
        requestContext=request_context,
        headers=headers,
        multiValueHeaders={k: [v] for k, v in headers.items()},
        isBase64Encoded=is_base64_encoded,
        body=body,
    )


def generate_proxy_context(event: ProxyEvent) -> ProxyContext:
    """Generate a Lambda context whose request id matches the event's."""
    return ProxyContext(aws_request_id=event.requestContext.requestId)
