"""Simple Cloud Kit Core Endpoint Package.

The core_endpoint package is the request-processing core of a microservice
endpoint. It turns a raw, transport-specific invocation into a normalized
request, enforces session token access control, runs the endpoint's model
operation, and renders the outcome as a JSON:API shaped response envelope.

Architecture:
    One invocation flows through one pipeline::

        raw event → ExecutionContext (normalize) → SessionManager (authorize)
                  → Endpoint (execute model) → Response (serialize) → transport

    Errors short-circuit from any stage straight to the error response path.

Modules:
    - **context.py**: Environment detection and the normalization chain
    - **request.py**: The request seen by endpoint logic
    - **session.py**: Session token validation and persona minting
    - **token.py**: JWT encode/decode
    - **endpoint.py**: Endpoint orchestration and the per-operation endpoints
    - **response.py**: Response envelopes and API Gateway proxy responses
    - **errors.py**: The closed error taxonomy
    - **pagination.py**: Paging metadata
    - **config.py**: Endpoint and session configuration
    - **api/**: FastAPI development server that emulates API Gateway

Usage Examples:

    **AWS Lambda Deployment**:

    .. code-block:: python

        from core_endpoint import EndpointConfig, GetOneEndpoint

        class GetPerson(GetOneEndpoint):
            pass

        endpoint = GetPerson(EndpointConfig.from_env(service_name="people"), model=PersonModel())

        def handler(event, context):
            return endpoint.handler(event, context)

    **Development Server**:

    .. code-block:: python

        import uvicorn
        from core_endpoint.api.fast_api import get_app

        app = get_app({"GET:/people/{id}": endpoint})
        uvicorn.run(app, host="0.0.0.0", port=8000)

Environment Variables:
    - ``JWT_SECRET_KEY``: Token signing secret
    - ``JWT_ALGORITHM``: Token signing algorithm (HS256, HS384, HS512)
    - ``JWT_DEFAULT_TTL``: Default token lifetime in seconds
    - ``SCK_SERVICE_NAME`` / ``SCK_SERVICE_VERSION``: Service metadata
    - ``SCK_STAGE``: Fallback deployment stage
    - ``SCK_ERROR_DOCS_URL``: Base URL of the error documentation
    - ``SCK_API_NO_CACHE``: Set to false to omit no-cache response headers
"""

from .config import EndpointConfig, SessionConfig
from .context import ContextResolver, Environment, ExecutionContext
from .endpoint import (
    BaseEndpoint,
    DeleteOneEndpoint,
    GetManyEndpoint,
    GetOneEndpoint,
    PostOneEndpoint,
    ReadOneEndpoint,
    UpdateOneEndpoint,
)
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
    ProxyResponse,
    ReadOneResponse,
    SuccessResponse,
    UpdateOneResponse,
)
from .session import SessionManager, TokenConfig, TokenPayload
from .token import TokenCodec

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "BaseEndpoint",
    "BaseResponse",
    "ContextResolver",
    "DeleteOneEndpoint",
    "DeleteOneResponse",
    "EndpointConfig",
    "EndpointError",
    "Environment",
    "ErrorKind",
    "ErrorResponse",
    "ExecutionContext",
    "GetManyEndpoint",
    "GetManyResponse",
    "GetOneEndpoint",
    "GetOneResponse",
    "Pagination",
    "PostOneEndpoint",
    "PostOneResponse",
    "ProxyResponse",
    "ReadOneEndpoint",
    "ReadOneResponse",
    "Request",
    "SessionConfig",
    "SessionManager",
    "SuccessResponse",
    "TokenCodec",
    "TokenConfig",
    "TokenPayload",
    "UpdateOneEndpoint",
    "UpdateOneResponse",
    "classify_error",
]
