"""Local development server.

Runs endpoints behind FastAPI the way API Gateway runs them behind a Lambda
proxy integration: each HTTP request becomes a proxy event, the mapped
endpoint executes it, and the proxy result becomes the HTTP response.

Example:
    .. code-block:: python

        import uvicorn
        from core_endpoint.api.fast_api import get_app

        app = get_app({
            "GET:/people": GetPeople(config, model=PeopleModel()),
            "GET:/people/{id}": GetPerson(config, model=PeopleModel()),
            "POST:/people": PostPerson(config, model=PeopleModel()),
        })
        uvicorn.run(app, host="0.0.0.0", port=8000)

A ``.env`` file, when found, is loaded into the environment before the app is
built (existing variables win).
"""

from typing import Callable, Mapping
import logging
import os
from contextlib import asynccontextmanager

from dotenv import find_dotenv, load_dotenv

from fastapi import APIRouter, FastAPI, Request, Response

from .. import __version__
from ..endpoint import BaseEndpoint
from .apis import generate_event_context, generate_response_from_lambda

log = logging.getLogger(__name__)

__running: bool = False


def is_running() -> bool:
    """Check if the application is currently running."""
    return __running


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Track the application's running state across startup and shutdown."""
    global __running

    __running = True
    log.info("FastAPI application started")

    yield

    __running = False
    log.info("FastAPI application shutdown")


def proxy_forward(endpoint: BaseEndpoint, stage: str) -> Callable:
    """Build a route handler that forwards requests to ``endpoint``.

    This emulates the API Gateway + Lambda proxy integration and is intended
    for local development and testing only.
    """

    async def forward(request: Request) -> Response:
        event, context = await generate_event_context(request, stage=stage)

        log.debug(
            "Forwarding request to endpoint",
            extra={"details": {"operation_id": endpoint.operation_id, "method": event.httpMethod, "resource": event.resource}},
        )

        result = await endpoint.execute(event.model_dump(exclude_none=True), context)
        return await generate_response_from_lambda(result)

    return forward


def get_api_router(routes: Mapping[str, BaseEndpoint], stage: str = "local") -> APIRouter:
    """Create a router with one route per ``"METHOD:/resource"`` key."""
    router = APIRouter()
    for method_resource, endpoint in routes.items():
        method, resource = method_resource.split(":", 1)
        router.add_api_route(
            resource,
            endpoint=proxy_forward(endpoint, stage),
            methods=[method.upper()],
            response_class=Response,
            name=endpoint.operation_id,
        )
    return router


def get_app(routes: Mapping[str, BaseEndpoint], title: str = "SCK Core Endpoint", stage: str = None) -> FastAPI:
    """Create the FastAPI application for a set of endpoints.

    Args:
        routes (Mapping[str, BaseEndpoint]): Route keys (``"GET:/people/{id}"``)
            mapped to endpoints.
        title (str): Application title.
        stage (str): Stage reported in generated events. Defaults to
            ``SCK_STAGE`` or ``"local"``.

    Returns:
        FastAPI: The configured application.
    """
    load_dotenv(find_dotenv(usecwd=True), override=False)

    stage = stage or os.getenv("SCK_STAGE", "local")

    app = FastAPI(title=title, version=__version__, lifespan=lifespan)

    app.include_router(get_api_router(routes, stage))

    @app.get("/health", include_in_schema=False)
    async def health_check() -> dict:
        return {
            "status": "healthy",
            "running": is_running(),
            "routes": sorted(routes.keys()),
        }

    log.info(f"Development server configured with {len(routes)} route(s)")

    return app
