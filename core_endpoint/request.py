"""The request seen by endpoint logic.

A :class:`Request` wraps one resolved :class:`~core_endpoint.context.ExecutionContext`.
It carries the credential string and, once the session manager has
authorized it, the decoded token payload.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from .context import ExecutionContext
from .errors import EndpointError, ErrorKind

PAGE_NUMBER_PARAMETER = "pageNumber"
PAGE_SIZE_PARAMETER = "pageSize"


class Request(BaseModel):
    """A client request submitted to an endpoint.

    Attributes:
        context (ExecutionContext): The context that built this request.
        token (Optional[str]): The credential string, either presented by
            the client or minted by the session manager.
        token_data (Optional[Dict[str, Any]]): Decoded token claims, set after
            authorization.
        default_page_size (int): Page size when the client does not give one.
        max_page_size (int): Largest page size a client may ask for.

    Example:
        .. code-block:: python

            request = Request.from_context(context)
            request.get_parameter("id")
            request.page_number, request.page_size
            request.user_id  # None until authorized
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    context: ExecutionContext
    token: Optional[str] = None
    token_data: Optional[Dict[str, Any]] = None
    default_page_size: int = Field(default=DEFAULT_PAGE_SIZE, ge=1)
    max_page_size: int = Field(default=MAX_PAGE_SIZE, ge=1)

    @classmethod
    def from_context(cls, context: ExecutionContext, **kwargs) -> "Request":
        return cls(context=context, token=context.session_token, **kwargs)

    @property
    def raw_parameters(self) -> Dict[str, Any]:
        return self.context.raw_parameters

    @property
    def body(self) -> Dict[str, Any]:
        return self.context.request_body

    @property
    def use_development_token(self) -> bool:
        return self.context.use_development_token

    @property
    def ignore_token_expiration(self) -> bool:
        return self.context.ignore_token_expiration

    def get_parameter(self, name: str, default: Any = None) -> Any:
        return self.context.raw_parameters.get(name, default)

    def _int_parameter(self, name: str, default: int, minimum: int, maximum: Optional[int] = None) -> int:
        raw = self.get_parameter(name)
        if raw is None or raw == "":
            return default
        try:
            value = int(raw)
        except (TypeError, ValueError) as e:
            raise EndpointError(ErrorKind.REQUEST_VALIDATION, f"Parameter '{name}' must be an integer", cause=e) from e
        if value < minimum:
            raise EndpointError(ErrorKind.REQUEST_VALIDATION, f"Parameter '{name}' must be at least {minimum}")
        if maximum is not None and value > maximum:
            raise EndpointError(ErrorKind.REQUEST_VALIDATION, f"Parameter '{name}' must not exceed {maximum}")
        return value

    @property
    def page_number(self) -> int:
        """The requested page (1-based). Defaults to 1."""
        return self._int_parameter(PAGE_NUMBER_PARAMETER, 1, 1)

    @property
    def page_size(self) -> int:
        """The requested page size, bounded by ``max_page_size``."""
        return self._int_parameter(PAGE_SIZE_PARAMETER, self.default_page_size, 1, self.max_page_size)

    def _token_value(self, key: str) -> Any:
        if not self.token_data:
            return None
        return (self.token_data.get("data") or {}).get(key)

    @property
    def username(self) -> Optional[str]:
        return self._token_value("username")

    @property
    def user_id(self) -> Optional[str]:
        return self._token_value("userId")

    @property
    def person_id(self) -> Optional[str]:
        return self._token_value("personId")

    @property
    def session_id(self) -> Optional[str]:
        return self._token_value("sessionId")

    @property
    def namespace(self) -> Optional[str]:
        return self._token_value("ns")

    @property
    def token_version(self) -> Optional[int]:
        return self._token_value("v")

    @property
    def token_api_key(self) -> Optional[str]:
        return self._token_value("apiKey")

    @property
    def token_client_ip(self) -> Optional[str]:
        if not self.token_data:
            return None
        return self.token_data.get("sourceIp")

    @property
    def token_flags(self) -> List[str]:
        return list(self._token_value("flags") or [])
