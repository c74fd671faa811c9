"""Utilities to bridge FastAPI with the API Gateway Lambda proxy format.

- Convert a FastAPI request into an API Gateway proxy ``event`` and Lambda ``context``
- Convert a Lambda proxy ``result`` back into a FastAPI ``Response``
"""

from typing import Optional
import base64
import binascii
import json
import logging

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute

from .tools import (
    Identity,
    ProxyContext,
    ProxyEvent,
    generate_proxy_context,
    generate_proxy_event,
    get_ip_address,
)

log = logging.getLogger(__name__)


async def generate_event_context(
    request: Request, identity: Optional[Identity] = None, stage: str = "local"
) -> tuple[ProxyEvent, ProxyContext]:
    """Create an API Gateway proxy ``event`` and Lambda ``context`` from a request.

    Text bodies are passed as UTF-8. Anything else is base64 encoded with
    ``isBase64Encoded`` set.
    """
    headers = dict(request.headers)
    body = await request.body()

    try:
        body_data = body.decode("utf-8") if body else ""
        is_base64_encoded = False
    except UnicodeDecodeError:
        body_data = base64.b64encode(body).decode("utf-8")
        is_base64_encoded = True

    route: Optional[APIRoute] = request.scope.get("route")
    resource = route.path_format if route is not None else request.url.path

    if identity is None:
        client_ip = request.client.host if request.client else get_ip_address()
        identity = Identity(
            sourceIp=client_ip,
            caller="anonymous",
            userAgent=headers.get("user-agent", ""),
            apiKey=headers.get("x-api-key"),
        )

    event = generate_proxy_event(
        protocol=request.url.scheme,
        identity=identity,
        method=request.method,
        resource=resource,
        path=request.url.path,
        path_params=dict(request.path_params),
        query_params=dict(request.query_params),
        body=body_data,
        headers=headers,
        is_base64_encoded=is_base64_encoded,
        stage=stage,
    )

    return event, generate_proxy_context(event)


async def generate_response_from_lambda(result: dict) -> Response:
    """Convert a Lambda proxy ``result`` into a FastAPI response.

    JSON bodies become a ``JSONResponse``. Everything else becomes a plain
    ``Response`` with the result's content type. 204 and 304 carry no body
    and no entity headers.
    """
    status_code = result.get("statusCode", 200)
    body = result.get("body", "")
    headers = dict(result.get("headers") or {})
    is_base64 = result.get("isBase64Encoded", False)

    for key, values in (result.get("multiValueHeaders") or {}).items():
        headers[key] = ", ".join(str(v) for v in values) if isinstance(values, list) else str(values)

    if status_code in (204, 304):
        return _empty_entity_response(status_code, headers)

    if isinstance(body, (dict, list)):
        body = json.dumps(body)

    if is_base64 and body:
        try:
            content = base64.b64decode(body)
        except (binascii.Error, ValueError) as e:
            log.warning(f"Failed to decode base64 content: {e}")
            content = body.encode("utf-8")
        body_text = content.decode("utf-8", errors="ignore")
    else:
        content = body.encode("utf-8") if isinstance(body, str) else (body or b"")
        body_text = body if isinstance(body, str) else ""

    content_type = next((v for k, v in headers.items() if k.lower() == "content-type"), "application/json")

    log.debug(
        "Processing Lambda response",
        extra={
            "details": {
                "status": status_code,
                "content_type": content_type,
                "headers_count": len(headers),
                "body_length": len(body_text),
                "is_base64": is_base64,
            }
        },
    )

    if content_type.lower().startswith("application/json") and _is_valid_json(body_text):
        json_response = JSONResponse(content=json.loads(body_text) if body_text else {}, status_code=status_code)
        for key, value in headers.items():
            if key.lower() not in ("content-type", "content-length"):
                json_response.headers[key] = value
        return json_response

    return Response(
        content=content,
        status_code=status_code,
        headers={k: v for k, v in headers.items() if k.lower() != "content-length"},
        media_type=content_type,
    )


def _empty_entity_response(status_code: int, headers: dict) -> Response:
    """Build a 204/304 response with no body and no entity headers."""
    banned = {"content-type", "content-length", "transfer-encoding"}
    resp = Response(status_code=status_code)
    for k, v in headers.items():
        if k.lower() not in banned:
            resp.headers[k] = v
    return resp


def _is_valid_json(text: str) -> bool:
    """Return True if ``text`` is empty or parses as JSON."""
    if not text:
        return True
    try:
        json.loads(text)
        return True
    except (json.JSONDecodeError, TypeError):
        return False
