"""Response envelopes.

Every endpoint outcome becomes one response object. Its body is a JSON:API
shaped envelope::

    {
        "jsonapi": {"version": "1.0"},
        "meta": {
            "requestId": "...",
            "seriesId": "...",
            "operationId": "GetPeople",
            "stage": "dev",
            "service": {"name": "people", "version": "1.4.0"},
            "pagination": {...}          # multi-resource responses only
        },
        "data": ...                      # success responses other than deletions
        "errors": [...]                  # error responses
    }

The body is built once and cached. :attr:`BaseResponse.body` and
:attr:`BaseResponse.str_body` both derive from that one instance.

Example:
    .. code-block:: python

        response = GetOneResponse(data=person, context=context, operation_id="GetPerson")
        response.status_code        # 200
        response.to_plain_object()  # {"statusCode": 200, "headers": {...}, "body": "<json>"}

        proxy = ProxyResponse.from_response(response)
        return proxy.model_dump()
"""

from typing import Any, Dict, List, Mapping, Optional, Sequence
from functools import cached_property
import json
import os
import uuid

from pydantic import BaseModel, Field, field_validator

from .constants import DEFAULT_STAGE, ERROR_DOCS_URL, HDR_CONTENT_TYPE, HDR_X_SERIES_UUID, JSONAPI_VERSION
from .context import Environment, ExecutionContext
from .errors import EndpointError, classify_error
from .pagination import Pagination
from .status import HttpStatus


def serialize_resource(resource: Any) -> Any:
    """Convert a business result into its protocol object.

    Objects that know how to serialize themselves (``to_jsonapi()``) are asked
    to. Pydantic models are dumped by alias. Sequences are serialized item by
    item.
    """
    if resource is None:
        return None
    to_jsonapi = getattr(resource, "to_jsonapi", None)
    if callable(to_jsonapi):
        return to_jsonapi()
    if isinstance(resource, BaseModel):
        return resource.model_dump(by_alias=True, mode="json")
    if isinstance(resource, Mapping):
        return dict(resource)
    if isinstance(resource, (list, tuple)):
        return [serialize_resource(item) for item in resource]
    return resource


class BaseResponse:
    """Common envelope shared by every response.

    Args:
        data (Any): The business result.
        context (Optional[ExecutionContext]): The request's context, the
            source of the correlation ids and stage.
        operation_id (Optional[str]): Name of the endpoint operation.
        service_name (Optional[str]): Owning service name.
        service_version (Optional[str]): Owning service version.
    """

    default_status_code: int = HttpStatus.OK

    def __init__(
        self,
        data: Any = None,
        context: Optional[ExecutionContext] = None,
        operation_id: Optional[str] = None,
        service_name: Optional[str] = None,
        service_version: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        self.data = data
        self.context = context
        self.operation_id = operation_id
        self.service_name = service_name
        self.service_version = service_version
        self.status_code = int(status_code if status_code is not None else self.default_status_code)
        self._series_id = context.series_id if context else str(uuid.uuid4())

    @property
    def request_id(self) -> Optional[str]:
        return self.context.request_id if self.context else None

    @property
    def series_id(self) -> str:
        """The correlation id. A response built without a context gets its own."""
        return self._series_id

    @property
    def stage(self) -> Optional[str]:
        return self.context.stage if self.context else None

    @property
    def headers(self) -> Dict[str, str]:
        return {
            HDR_CONTENT_TYPE: "application/json",
            HDR_X_SERIES_UUID: self.series_id,
        }

    def _create_response_body(self) -> Dict[str, Any]:
        return {
            "jsonapi": {"version": JSONAPI_VERSION},
            "meta": {
                "requestId": self.request_id,
                "seriesId": self.series_id,
                "operationId": self.operation_id,
                "stage": self.stage,
                "service": {
                    "name": self.service_name,
                    "version": self.service_version,
                },
            },
        }

    @cached_property
    def body(self) -> Dict[str, Any]:
        return self._create_response_body()

    @cached_property
    def str_body(self) -> str:
        return json.dumps(self.body, default=str)

    def to_plain_object(self, body_property: str = "str_body") -> Dict[str, Any]:
        """Return ``{statusCode, headers, body}``.

        Args:
            body_property (str): ``"body"`` for a structured body, anything
                else for the JSON string form.
        """
        body = self.body if body_property == "body" else self.str_body
        return {
            "statusCode": self.status_code,
            "headers": self.headers,
            "body": body,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(status_code={self.status_code}, operation_id={self.operation_id!r})"


class SuccessResponse(BaseResponse):
    """A successful outcome. ``data`` is always present in the body."""

    def _create_response_body(self) -> Dict[str, Any]:
        body = super()._create_response_body()
        body["data"] = serialize_resource(self.data)
        return body


class GetOneResponse(SuccessResponse):
    pass


class ReadOneResponse(SuccessResponse):
    """A single resource that may legitimately be absent (``data`` is ``null``)."""


class UpdateOneResponse(SuccessResponse):
    pass


class PostOneResponse(SuccessResponse):
    """A created resource. Status 201, ``data`` is ``{}`` when nothing was returned."""

    default_status_code = HttpStatus.CREATED

    def _create_response_body(self) -> Dict[str, Any]:
        body = super()._create_response_body()
        if body["data"] is None:
            body["data"] = {}
        return body


class DeleteOneResponse(SuccessResponse):
    """A deletion. The body is the base envelope only, with no ``data``."""

    def _create_response_body(self) -> Dict[str, Any]:
        return BaseResponse._create_response_body(self)


class GetManyResponse(SuccessResponse):
    """A page of resources with ``meta.pagination``."""

    def __init__(self, data: Optional[Sequence[Any]] = None, pagination: Optional[Pagination] = None, **kwargs):
        items = list(data or [])
        super().__init__(data=items, **kwargs)
        self.pagination = pagination or Pagination.from_totals(len(items), max(len(items), 1), 1)

    def _create_response_body(self) -> Dict[str, Any]:
        body = super()._create_response_body()
        body["meta"]["pagination"] = self.pagination.to_meta()
        return body


class ErrorResponse(BaseResponse):
    """A failed outcome.

    The status code is the first error's status, or 500 when there are no
    errors. ``data`` never appears in the body.

    Args:
        errors (Sequence[BaseException]): Errors to report. Unclassified
            exceptions are wrapped as ``EndpointExecutionError``.
        error_docs_url (str): Base URL for the documentation links.
    """

    def __init__(self, errors: Sequence[BaseException] = (), error_docs_url: str = ERROR_DOCS_URL, **kwargs):
        self.errors: List[EndpointError] = [classify_error(e) for e in errors]
        self.error_docs_url = error_docs_url.rstrip("/")
        status = self.errors[0].http_status if self.errors else HttpStatus.INTERNAL_SERVER_ERROR
        kwargs.setdefault("status_code", status)
        super().__init__(**kwargs)

    def add_error(self, error: BaseException) -> "ErrorResponse":
        if "body" in self.__dict__:
            raise RuntimeError("Cannot add errors after the response body has been built")
        self.errors.append(classify_error(error))
        if len(self.errors) == 1:
            self.status_code = self.errors[0].http_status
        return self

    def describe_error(self, error: EndpointError) -> Dict[str, Any]:
        title = error.title or "UnknownError"
        stage = self.stage or DEFAULT_STAGE
        return {
            "code": error.http_status,
            "title": title,
            "detail": error.message or "An unknown error has occurred.",
            "url": f"{self.error_docs_url}/api/{stage}/errors/{title}.html",
        }

    def _create_response_body(self) -> Dict[str, Any]:
        body = super()._create_response_body()
        body["errors"] = [self.describe_error(e) for e in self.errors]
        return body


class ProxyResponse(BaseModel):
    """AWS API Gateway Lambda proxy integration response.

    .. code-block:: python

        {
            "isBase64Encoded": false,
            "statusCode": 200,
            "headers": {
                "Content-Type": "application/json",
                "x-series-uuid": "...",
                "Cache-Control": "no-cache, no-store, must-revalidate"
            },
            "body": '{"jsonapi": ...}'
        }

    Attributes:
        statusCode (int): HTTP status code.
        body (str): Response body as a string.
        headers (Dict[str, str]): Single-value headers.
        isBase64Encoded (bool): Whether the body is base64 encoded.
    """

    statusCode: int = Field(..., description="HTTP status code required by AWS API Gateway")
    body: str = Field(default="", description="Response body content as string")
    headers: Dict[str, str] = Field(default_factory=dict, description="Single-value HTTP headers")
    isBase64Encoded: bool = Field(default=False, description="Whether body content is base64 encoded")

    @field_validator("statusCode", mode="before")
    @classmethod
    def validate_status_code(cls, v):
        """Validate that status code is a valid HTTP status code."""
        if not isinstance(v, int) or v < 100 or v > 599:
            raise ValueError(f"Invalid HTTP status code: {v}. Must be between 100-599")
        return int(v)

    @field_validator("body", mode="before")
    @classmethod
    def validate_body_is_string(cls, v):
        """Ensure body is always a string for AWS API Gateway compatibility."""
        if v is None:
            return ""
        if not isinstance(v, str):
            raise ValueError("Body must be a string for AWS API Gateway compatibility")
        return v

    def add_header(self, name: str, value: str) -> "ProxyResponse":
        self.headers[str(name)] = str(value)
        return self

    @classmethod
    def from_response(cls, response: BaseResponse) -> "ProxyResponse":
        """Create a ProxyResponse from an endpoint response.

        Copies the response headers, serializes the body to JSON, and adds
        no-cache headers unless ``SCK_API_NO_CACHE`` is false.
        """
        add_cache_control = os.getenv("SCK_API_NO_CACHE", "true").lower() in ("1", "true", "yes")

        proxy = cls(statusCode=response.status_code, body=response.str_body)

        for name, value in response.headers.items():
            proxy.add_header(name, value)

        if add_cache_control:
            proxy.add_header("Cache-Control", "no-cache, no-store, must-revalidate")
            proxy.add_header("Pragma", "no-cache")
            proxy.add_header("Expires", "0")

        return proxy


def format_response(response: BaseResponse, environment: Environment) -> Any:
    """Shape a response for the transport that delivered the invocation.

    AAG gets the structured body only. A direct Lambda invoke gets
    ``{statusCode, headers, body}`` with a structured body. HTTP proxies get
    an API Gateway proxy response dict.
    """
    if environment == Environment.AAG:
        return response.body
    if environment in (Environment.HTTP_PROXY, Environment.SERVERLESS_OFFLINE):
        return ProxyResponse.from_response(response).model_dump()
    return response.to_plain_object("body")
