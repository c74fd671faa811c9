"""Shared fixtures for the core_endpoint test suite."""

from typing import Any, Dict, Optional
from types import SimpleNamespace

import pytest

from core_endpoint.api.tools import Identity, generate_proxy_event
from core_endpoint.config import EndpointConfig, SessionConfig
from core_endpoint.context import ExecutionContext
from core_endpoint.request import Request
from core_endpoint.session import SessionManager

TEST_SECRET = "unit-test-secret-0123456789abcdef-0123456789"


@pytest.fixture
def session_config() -> SessionConfig:
    return SessionConfig(token_secret=TEST_SECRET)


@pytest.fixture
def endpoint_config(session_config) -> EndpointConfig:
    return EndpointConfig(
        service_name="people",
        service_version="1.4.0",
        stage="local",
        session=session_config,
    )


@pytest.fixture
def session_manager(session_config) -> SessionManager:
    return SessionManager(session_config)


@pytest.fixture
def lambda_context():
    """Stand-in for the AWS Lambda context object."""
    return SimpleNamespace(
        aws_request_id="lambda-request-1",
        function_name="people-api",
        invoked_function_arn="arn:aws:lambda:us-east-1:123456789012:function:people-api",
    )


def make_request(token: Optional[str] = None, **context_fields) -> Request:
    context = ExecutionContext(**context_fields)
    return Request(context=context, token=token)


def http_event(
    method: str = "GET",
    resource: str = "/people",
    path: Optional[str] = None,
    query: Optional[Dict[str, str]] = None,
    path_params: Optional[Dict[str, str]] = None,
    headers: Optional[Dict[str, str]] = None,
    body: str = "",
    stage: str = "dev",
) -> Dict[str, Any]:
    """An API Gateway proxy event as a plain dict."""
    event = generate_proxy_event(
        protocol="https",
        identity=Identity(sourceIp="10.1.2.3", apiKey="key-123"),
        method=method,
        resource=resource,
        path=path or resource,
        path_params=path_params,
        query_params=query,
        body=body,
        headers=headers,
        stage=stage,
    )
    return event.model_dump(exclude_none=True)
