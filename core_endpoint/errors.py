"""Domain error taxonomy for endpoint execution.

Every failure that can reach a client is represented by an :class:`EndpointError`
tagged with one :class:`ErrorKind`. Each kind carries a fixed HTTP status code,
so the response layer never has to guess how to report a failure.

Example:
    Raising and classifying errors::

        from core_endpoint.errors import EndpointError, ErrorKind, classify_error

        try:
            raise EndpointError(ErrorKind.MISSING_SESSION_TOKEN, "No token provided")
        except Exception as e:
            err = classify_error(e)
            print(err.kind.title, err.http_status)  # MissingSessionToken 401

        # Anything unrecognized becomes a 500-class EndpointExecutionError
        err = classify_error(KeyError("boom"))
        print(err.kind.title)  # EndpointExecutionError
"""

from typing import Optional
from enum import Enum

from .status import HttpStatus


class ErrorKind(str, Enum):
    """Closed set of error kinds that an endpoint can surface.

    The value of each member is the stable, machine readable title used in
    error envelopes.

    ``ModelRequiredError`` is always 500. A missing model or model method is
    a deployment fault of the service, never something the caller can fix.
    """

    MISSING_SESSION_TOKEN = "MissingSessionToken"
    INVALID_SESSION_TOKEN = "InvalidSessionToken"
    EXPIRED_SESSION_TOKEN = "ExpiredSessionToken"
    REQUEST_VALIDATION = "RequestValidationError"
    RESPONSE_VALIDATION = "ResponseValidationError"
    ENVIRONMENT_RESOLUTION = "EnvironmentResolutionError"
    CONTEXT_DATA_RESOLUTION = "ContextDataResolutionError"
    MODEL_REQUIRED = "ModelRequiredError"
    ENDPOINT_EXECUTION = "EndpointExecutionError"

    def __str__(self) -> str:
        return self.value

    @property
    def title(self) -> str:
        return self.value

    @property
    def http_status(self) -> int:
        """The HTTP status code that every error of this kind maps to."""
        return int(_KIND_STATUS[self])

    @property
    def is_session_error(self) -> bool:
        return self in (
            ErrorKind.MISSING_SESSION_TOKEN,
            ErrorKind.INVALID_SESSION_TOKEN,
            ErrorKind.EXPIRED_SESSION_TOKEN,
        )


_KIND_STATUS = {
    ErrorKind.MISSING_SESSION_TOKEN: HttpStatus.UNAUTHORIZED,
    ErrorKind.INVALID_SESSION_TOKEN: HttpStatus.UNAUTHORIZED,
    ErrorKind.EXPIRED_SESSION_TOKEN: HttpStatus.UNAUTHORIZED,
    ErrorKind.REQUEST_VALIDATION: HttpStatus.BAD_REQUEST,
    ErrorKind.RESPONSE_VALIDATION: HttpStatus.INTERNAL_SERVER_ERROR,
    ErrorKind.ENVIRONMENT_RESOLUTION: HttpStatus.INTERNAL_SERVER_ERROR,
    ErrorKind.CONTEXT_DATA_RESOLUTION: HttpStatus.INTERNAL_SERVER_ERROR,
    ErrorKind.MODEL_REQUIRED: HttpStatus.INTERNAL_SERVER_ERROR,
    ErrorKind.ENDPOINT_EXECUTION: HttpStatus.INTERNAL_SERVER_ERROR,
}


class EndpointError(Exception):
    """An error raised anywhere in the request lifecycle.

    Args:
        kind (ErrorKind): The taxonomy label, which fixes the status code.
        message (str): Human readable detail for the error envelope.
        cause (Optional[BaseException]): The originating exception, kept for
            diagnostics only.

    Example:
        .. code-block:: python

            try:
                json.loads(body)
            except json.JSONDecodeError as e:
                raise EndpointError(ErrorKind.REQUEST_VALIDATION, "Malformed JSON body", cause=e) from e
    """

    def __init__(self, kind: ErrorKind, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.kind = ErrorKind(kind)
        self.message = message
        self.cause = cause
        if cause is not None and cause is not self:
            self.__cause__ = cause

    @property
    def http_status(self) -> int:
        return self.kind.http_status

    @property
    def title(self) -> str:
        """Title used in the error envelope.

        Wrapped unclassified errors report the originating exception class name.
        """
        if self.kind == ErrorKind.ENDPOINT_EXECUTION and self.cause is not None:
            return type(self.cause).__name__
        return self.kind.title

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.kind.title}, {self.message!r})"


def classify_error(error: BaseException) -> EndpointError:
    """Return an :class:`EndpointError` for any exception.

    Recognized errors pass through unchanged. Everything else is wrapped as an
    ``EndpointExecutionError`` so clients never see an unclassified failure.
    """
    if isinstance(error, EndpointError):
        return error
    message = str(error) or "An unknown error has occurred."
    return EndpointError(ErrorKind.ENDPOINT_EXECUTION, message, cause=error)
