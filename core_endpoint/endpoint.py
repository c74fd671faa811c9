"""Endpoint orchestration.

An endpoint ties the lifecycle together::

    raw event -> ExecutionContext -> Request -> SessionManager -> model -> Response

:meth:`BaseEndpoint.execute` is the only place where errors are caught. Every
failure, wherever it was raised, is classified there and rendered as an
:class:`~core_endpoint.response.ErrorResponse`. ``execute`` never raises.

Example:
    .. code-block:: python

        from core_endpoint import EndpointConfig, GetManyEndpoint, SessionConfig

        class PeopleModel:
            async def get_many(self, request):
                return await load_people(request.get_parameter("team"))

        class GetPeople(GetManyEndpoint):
            pass

        endpoint = GetPeople(
            EndpointConfig(service_name="people", session=SessionConfig(token_secret="s3cr3t")),
            model=PeopleModel(),
        )

        def handler(event, context):
            return endpoint.handler(event, context)
"""

from typing import Any, Optional, Sequence, Type
import asyncio
import inspect
import logging

from .config import EndpointConfig
from .context import ContextResolver, Environment, ExecutionContext
from .errors import EndpointError, ErrorKind, classify_error
from .pagination import Pagination
from .request import Request
from .response import (
    BaseResponse,
    DeleteOneResponse,
    ErrorResponse,
    GetManyResponse,
    GetOneResponse,
    PostOneResponse,
    ReadOneResponse,
    UpdateOneResponse,
    format_response,
)
from .session import SessionManager

log = logging.getLogger(__name__)


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class BaseEndpoint:
    """Base class for all endpoints.

    Subclasses set :attr:`endpoint_type` (the name of the model method to
    call) and :attr:`response_class`. The class name is the operation id.

    Args:
        config (EndpointConfig): Endpoint settings.
        model (Any): Object exposing the method named by ``endpoint_type``.
        session_manager (Optional[SessionManager]): Defaults to one built from
            ``config.session``.
        logger (Optional[logging.Logger]): Base logger for request scoped loggers.
    """

    endpoint_type: Optional[str] = None
    response_class: Type[BaseResponse] = GetOneResponse

    def __init__(
        self,
        config: EndpointConfig,
        model: Any = None,
        session_manager: Optional[SessionManager] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config
        self.model = model
        self.session_manager = session_manager or SessionManager(config.session)
        self.resolver = ContextResolver(config, logger)

    @property
    def operation_id(self) -> str:
        return type(self).__name__

    @property
    def service_name(self) -> Optional[str]:
        return self.config.service_name

    @property
    def service_version(self) -> Optional[str]:
        return self.config.service_version

    def handler(self, event: Any, context: Any = None) -> Any:
        """Synchronous, Lambda compatible entry point."""
        return asyncio.run(self.execute(event, context))

    async def execute(self, event: Any, invocation: Any = None) -> Any:
        """Run one invocation from raw event to formatted response.

        Args:
            event (Any): The invocation event.
            invocation (Any): The platform invocation object (Lambda context).

        Returns:
            Any: The response, shaped for the invocation's environment.
        """
        context: Optional[ExecutionContext] = None
        try:
            context = self.resolver.create(event, invocation)
            context = self.resolver.run_chain(context, event)

            if context.environment == Environment.GENERIC:
                raise EndpointError(ErrorKind.ENVIRONMENT_RESOLUTION, "Failed to resolve environment information.")

            request = Request.from_context(
                context,
                default_page_size=self.config.default_page_size,
                max_page_size=self.config.max_page_size,
            )
            response = await self.handle(request)
            return self._format(response, context)

        except Exception as e:
            if context is None:
                context = ExecutionContext(stage=self.config.stage)
            return format_response(self._fail(e, context), context.environment)

    async def handle(self, request: Request) -> BaseResponse:
        """Authorize the request, call the model and build the success response."""
        logger = request.context.logger or log

        await _maybe_await(self.parse_parameters(request))

        logger.debug("Endpoint execution started.")

        await self.session_manager.validate_request(request, self.config.require_session)

        await _maybe_await(self.check_access(request))

        logger.info("Session validation succeeded; executing model operation.")

        result = await self.call_model(request)
        return self._succeed(result, request)

    def parse_parameters(self, request: Request) -> Any:
        """Hook run before session validation. May be a coroutine."""

    def check_access(self, request: Request) -> Any:
        """Hook run after session validation. May be a coroutine."""

    async def call_model(self, request: Request) -> Any:
        """Call the model method named after this endpoint's type.

        Raises:
            EndpointError: ``ModelRequiredError`` when there is no model or it
                lacks the method.
        """
        if self.model is None:
            raise EndpointError(ErrorKind.MODEL_REQUIRED, f"Endpoint '{self.operation_id}' has no model")

        method = getattr(self.model, self.endpoint_type or "", None)
        if not callable(method):
            raise EndpointError(
                ErrorKind.MODEL_REQUIRED,
                f"Model '{type(self.model).__name__}' does not implement '{self.endpoint_type}'",
            )

        return await _maybe_await(method(request))

    def _format(self, response: BaseResponse, context: ExecutionContext) -> Any:
        """Render a success response.

        Both the structured and the string body are built here, so a result
        that cannot be rendered fails inside ``execute``.

        Raises:
            EndpointError: ``ResponseValidationError`` when the model result
                cannot be serialized.
        """
        try:
            response.str_body
            return format_response(response, context.environment)
        except EndpointError:
            raise
        except Exception as e:
            raise EndpointError(
                ErrorKind.RESPONSE_VALIDATION,
                f"Result of '{self.operation_id}' could not be serialized: {e}",
                cause=e,
            ) from e

    def _response_kwargs(self, context: Optional[ExecutionContext]) -> dict:
        return {
            "context": context,
            "operation_id": self.operation_id,
            "service_name": self.service_name,
            "service_version": self.service_version,
        }

    def _succeed(self, result: Any, request: Request) -> BaseResponse:
        return self.response_class(data=result, **self._response_kwargs(request.context))

    def _fail(self, error: BaseException, context: Optional[ExecutionContext]) -> ErrorResponse:
        err = classify_error(error)
        logger = context.logger if context is not None and context.logger is not None else log

        details = {"operation_id": self.operation_id, "kind": err.kind.value, "status": err.http_status}
        if err.http_status >= 500:
            logger.error(f"Endpoint execution failed: {err.message}", exc_info=error, extra={"details": details})
        else:
            logger.warning(f"Endpoint request rejected: {err.message}", extra={"details": details})

        return ErrorResponse(
            errors=[err],
            error_docs_url=self.config.error_docs_url,
            **self._response_kwargs(context),
        )


class GetOneEndpoint(BaseEndpoint):
    endpoint_type = "get_one"
    response_class = GetOneResponse


class ReadOneEndpoint(BaseEndpoint):
    endpoint_type = "read_one"
    response_class = ReadOneResponse


class PostOneEndpoint(BaseEndpoint):
    endpoint_type = "post_one"
    response_class = PostOneResponse


class UpdateOneEndpoint(BaseEndpoint):
    endpoint_type = "update_one"
    response_class = UpdateOneResponse


class DeleteOneEndpoint(BaseEndpoint):
    endpoint_type = "delete_one"
    response_class = DeleteOneResponse


class GetManyEndpoint(BaseEndpoint):
    """Returns a page of resources.

    The model may return ``(items, Pagination)`` when it paginates itself, or
    a plain sequence, which is paginated here with the request's
    ``pageNumber`` and ``pageSize`` parameters.
    """

    endpoint_type = "get_many"
    response_class = GetManyResponse

    def _succeed(self, result: Any, request: Request) -> BaseResponse:
        if isinstance(result, tuple) and len(result) == 2 and isinstance(result[1], Pagination):
            items, pagination = result
        elif isinstance(result, Sequence) and not isinstance(result, (str, bytes)):
            items, pagination = Pagination.paginate(result, request.page_number, request.page_size)
        else:
            raise EndpointError(
                ErrorKind.RESPONSE_VALIDATION,
                f"Model '{type(self.model).__name__}' returned {type(result).__name__} from get_many, expected a sequence",
            )

        return GetManyResponse(data=items, pagination=pagination, **self._response_kwargs(request.context))
