import json
import logging

import pytest

from core_endpoint.config import EndpointConfig
from core_endpoint.endpoint import (
    DeleteOneEndpoint,
    GetManyEndpoint,
    GetOneEndpoint,
    PostOneEndpoint,
    ReadOneEndpoint,
)
from core_endpoint.errors import EndpointError, ErrorKind
from core_endpoint.pagination import Pagination

from conftest import http_event

PEOPLE = [{"id": str(i), "name": f"person-{i}"} for i in range(25)]


class PeopleModel:
    def __init__(self, people=None):
        self.people = list(PEOPLE if people is None else people)
        self.calls = []
        self.requests = []

    async def get_many(self, request):
        self.calls.append("get_many")
        self.requests.append(request)
        return self.people

    def get_one(self, request):
        self.calls.append("get_one")
        self.requests.append(request)
        return {"id": request.get_parameter("id")}

    def read_one(self, request):
        return None

    async def post_one(self, request):
        self.calls.append("post_one")
        return {"id": "new", **request.body}

    def delete_one(self, request):
        self.calls.append("delete_one")
        return {"id": request.get_parameter("id")}


class GetPeople(GetManyEndpoint):
    pass


class GetPerson(GetOneEndpoint):
    pass


class FindPerson(ReadOneEndpoint):
    pass


class CreatePerson(PostOneEndpoint):
    pass


class RemovePerson(DeleteOneEndpoint):
    pass


@pytest.fixture
def model():
    return PeopleModel()


@pytest.fixture
def token(session_manager):
    return session_manager.system_token()


def proxy_body(result):
    return json.loads(result["body"])


def first_error(result):
    return proxy_body(result)["errors"][0]


# ----------------------------------------------------------------------------
# Successful lifecycle
# ----------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_get_many_pages_model_results(endpoint_config, session_manager, model, token):
    endpoint = GetPeople(endpoint_config, model=model, session_manager=session_manager)
    event = http_event(query={"pageNumber": "2", "pageSize": "10"}, headers={"x-session-token": token})

    result = await endpoint.execute(event)

    assert result["statusCode"] == 200
    body = proxy_body(result)
    assert [p["id"] for p in body["data"]] == [str(i) for i in range(10, 20)]
    assert body["meta"]["pagination"]["currentPage"] == 2
    assert body["meta"]["pagination"]["totalRecords"] == 25
    assert body["meta"]["pagination"]["allRecordsReturned"] is False
    assert body["meta"]["operationId"] == "GetPeople"
    assert body["meta"]["service"] == {"name": "people", "version": "1.4.0"}
    assert body["meta"]["stage"] == "dev"
    assert body["meta"]["requestId"] == event["requestContext"]["requestId"]
    assert result["headers"]["x-series-uuid"] == body["meta"]["seriesId"]


@pytest.mark.asyncio
async def test_model_may_paginate_itself(endpoint_config, session_manager, token):
    class PagedModel:
        def get_many(self, request):
            return PEOPLE[:2], Pagination.from_totals(total=40, page_size=2, current_page=1)

    endpoint = GetPeople(endpoint_config, model=PagedModel(), session_manager=session_manager)
    result = await endpoint.execute(http_event(headers={"x-session-token": token}))

    body = proxy_body(result)
    assert len(body["data"]) == 2
    assert body["meta"]["pagination"]["totalRecords"] == 40
    assert body["meta"]["pagination"]["totalPages"] == 20


@pytest.mark.asyncio
async def test_get_one_with_path_parameter(endpoint_config, session_manager, model, token):
    endpoint = GetPerson(endpoint_config, model=model, session_manager=session_manager)
    event = http_event(
        resource="/people/{id}",
        path="/people/7",
        path_params={"id": "7"},
        headers={"Authorization": f"Bearer {token}"},
    )

    result = await endpoint.execute(event)

    assert result["statusCode"] == 200
    assert proxy_body(result)["data"] == {"id": "7"}
    assert model.requests[0].user_id is not None


@pytest.mark.asyncio
async def test_read_one_returns_null_data(endpoint_config, session_manager, model, token):
    endpoint = FindPerson(endpoint_config, model=model, session_manager=session_manager)
    result = await endpoint.execute(http_event(headers={"x-session-token": token}))

    assert result["statusCode"] == 200
    assert proxy_body(result)["data"] is None


@pytest.mark.asyncio
async def test_post_one_creates(endpoint_config, session_manager, model, token):
    endpoint = CreatePerson(endpoint_config, model=model, session_manager=session_manager)
    event = http_event(method="POST", body='{"name": "Ada"}', headers={"x-session-token": token})

    result = await endpoint.execute(event)

    assert result["statusCode"] == 201
    assert proxy_body(result)["data"] == {"id": "new", "name": "Ada"}


@pytest.mark.asyncio
async def test_delete_one_returns_base_envelope(endpoint_config, session_manager, model, token):
    endpoint = RemovePerson(endpoint_config, model=model, session_manager=session_manager)
    event = http_event(method="DELETE", path_params={"id": "3"}, headers={"x-session-token": token})

    result = await endpoint.execute(event)

    assert result["statusCode"] == 200
    assert "data" not in proxy_body(result)
    assert model.calls == ["delete_one"]


@pytest.mark.asyncio
async def test_aag_receives_body_only(endpoint_config, session_manager, model, token):
    endpoint = GetPerson(endpoint_config, model=model, session_manager=session_manager)
    event = {"header": {"x-session-token": token}, "parameters": {"id": "9"}}

    result = await endpoint.execute(event)

    assert "statusCode" not in result
    assert result["data"] == {"id": "9"}
    assert result["jsonapi"] == {"version": "1.0"}


@pytest.mark.asyncio
async def test_lambda_invoke_receives_structured_body(endpoint_config, session_manager, model, token, lambda_context):
    endpoint = GetPerson(endpoint_config, model=model, session_manager=session_manager)
    event = {"parameters": {"id": "11"}, "headers": {"x-session-token": token}}

    result = await endpoint.execute(event, lambda_context)

    assert result["statusCode"] == 200
    assert result["body"]["data"] == {"id": "11"}
    assert result["body"]["meta"]["requestId"] == "lambda-request-1"


def test_synchronous_handler(endpoint_config, session_manager, model, token):
    endpoint = GetPerson(endpoint_config, model=model, session_manager=session_manager)

    result = endpoint.handler(http_event(path_params={"id": "1"}, headers={"x-session-token": token}), None)

    assert result["statusCode"] == 200
    assert proxy_body(result)["data"] == {"id": "1"}


@pytest.mark.asyncio
async def test_session_not_required(session_config, model):
    config = EndpointConfig(require_session=False, session=session_config)
    endpoint = GetPerson(config, model=model)

    result = await endpoint.execute(http_event(path_params={"id": "1"}))

    assert result["statusCode"] == 200
    assert model.requests[0].token_data is None


@pytest.mark.asyncio
async def test_development_token_when_enabled(session_config, model):
    config = EndpointConfig(use_development_token=True, session=session_config)
    endpoint = GetPerson(config, model=model)

    result = await endpoint.execute(http_event(path_params={"id": "1"}))

    assert result["statusCode"] == 200
    assert "development" in model.requests[0].token_flags


# ----------------------------------------------------------------------------
# Hooks
# ----------------------------------------------------------------------------


class TracingEndpoint(GetOneEndpoint):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.trace = []

    def parse_parameters(self, request):
        self.trace.append("parse")

    async def check_access(self, request):
        self.trace.append("access")

    async def call_model(self, request):
        self.trace.append("model")
        return await super().call_model(request)


@pytest.mark.asyncio
async def test_hook_order(endpoint_config, session_manager, model, token):
    endpoint = TracingEndpoint(endpoint_config, model=model, session_manager=session_manager)

    await endpoint.execute(http_event(headers={"x-session-token": token}))

    assert endpoint.trace == ["parse", "access", "model"]


@pytest.mark.asyncio
async def test_parse_runs_before_session_validation(endpoint_config, session_manager, model):
    endpoint = TracingEndpoint(endpoint_config, model=model, session_manager=session_manager)

    result = await endpoint.execute(http_event())

    assert result["statusCode"] == 401
    assert endpoint.trace == ["parse"]


@pytest.mark.asyncio
async def test_access_check_rejection(endpoint_config, session_manager, model, token):
    class Forbidden(GetOneEndpoint):
        def check_access(self, request):
            raise EndpointError(ErrorKind.REQUEST_VALIDATION, "Not allowed for this persona")

    endpoint = Forbidden(endpoint_config, model=model, session_manager=session_manager)
    result = await endpoint.execute(http_event(headers={"x-session-token": token}))

    assert result["statusCode"] == 400
    assert first_error(result)["detail"] == "Not allowed for this persona"
    assert model.calls == []


# ----------------------------------------------------------------------------
# Failures
# ----------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_missing_token_is_401(endpoint_config, session_manager, model):
    endpoint = GetPeople(endpoint_config, model=model, session_manager=session_manager)

    result = await endpoint.execute(http_event())

    assert result["statusCode"] == 401
    error = first_error(result)
    assert error["title"] == "MissingSessionToken"
    assert error["url"].endswith("/api/dev/errors/MissingSessionToken.html")
    assert "data" not in proxy_body(result)
    assert model.calls == []


@pytest.mark.asyncio
async def test_generic_environment_is_rejected(endpoint_config, model):
    endpoint = GetPeople(endpoint_config, model=model)

    result = await endpoint.execute({"parameters": {}})

    assert result["statusCode"] == 500
    assert result["body"]["errors"][0]["title"] == "EnvironmentResolutionError"
    assert model.calls == []


@pytest.mark.asyncio
async def test_unknown_environment_override(session_config, model):
    config = EndpointConfig(environment="mainframe", stage="qa", session=session_config)
    endpoint = GetPeople(config, model=model)

    result = await endpoint.execute(http_event())

    assert result["statusCode"] == 500
    assert result["body"]["errors"][0]["title"] == "EnvironmentResolutionError"
    assert result["body"]["meta"]["stage"] == "qa"


@pytest.mark.asyncio
async def test_non_mapping_event(endpoint_config, model, lambda_context):
    endpoint = GetPeople(endpoint_config, model=model)

    result = await endpoint.execute(["not", "an", "event"], lambda_context)

    assert result["statusCode"] == 500
    assert result["body"]["errors"][0]["title"] == "ContextDataResolutionError"


@pytest.mark.asyncio
async def test_missing_model(endpoint_config, session_manager, token):
    endpoint = GetPerson(endpoint_config, session_manager=session_manager)

    result = await endpoint.execute(http_event(headers={"x-session-token": token}))

    assert result["statusCode"] == 500
    assert first_error(result)["title"] == "ModelRequiredError"


@pytest.mark.asyncio
async def test_model_without_operation(endpoint_config, session_manager, token):
    endpoint = GetPerson(endpoint_config, model=object(), session_manager=session_manager)

    result = await endpoint.execute(http_event(headers={"x-session-token": token}))

    assert first_error(result)["title"] == "ModelRequiredError"


@pytest.mark.asyncio
async def test_unclassified_model_error(endpoint_config, session_manager, token):
    class BrokenModel:
        def get_one(self, request):
            raise KeyError("id")

    endpoint = GetPerson(endpoint_config, model=BrokenModel(), session_manager=session_manager)
    result = await endpoint.execute(http_event(headers={"x-session-token": token}))

    assert result["statusCode"] == 500
    assert first_error(result)["title"] == "KeyError"
    assert first_error(result)["url"].endswith("/errors/KeyError.html")


@pytest.mark.asyncio
async def test_malformed_body(endpoint_config, session_manager, model, token):
    endpoint = CreatePerson(endpoint_config, model=model, session_manager=session_manager)
    event = http_event(method="POST", body="{nope", headers={"x-session-token": token})

    result = await endpoint.execute(event)

    assert result["statusCode"] == 400
    assert first_error(result)["title"] == "RequestValidationError"
    assert model.calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize("query", [{"pageSize": "abc"}, {"pageSize": "5000"}, {"pageNumber": "0"}])
async def test_bad_paging_parameters(endpoint_config, session_manager, model, token, query):
    endpoint = GetPeople(endpoint_config, model=model, session_manager=session_manager)

    result = await endpoint.execute(http_event(query=query, headers={"x-session-token": token}))

    assert result["statusCode"] == 400
    assert first_error(result)["title"] == "RequestValidationError"


@pytest.mark.asyncio
async def test_get_many_rejects_non_sequence_results(endpoint_config, session_manager, token):
    class CountingModel:
        def get_many(self, request):
            return 42

    endpoint = GetPeople(endpoint_config, model=CountingModel(), session_manager=session_manager)
    result = await endpoint.execute(http_event(headers={"x-session-token": token}))

    assert result["statusCode"] == 500
    assert first_error(result)["title"] == "ResponseValidationError"


@pytest.mark.asyncio
async def test_rejections_are_logged_with_request_context(endpoint_config, session_manager, model, caplog):
    caplog.set_level(logging.WARNING, logger="core_endpoint")
    endpoint = GetPeople(endpoint_config, model=model, session_manager=session_manager)
    event = http_event(headers={"x-series-uuid": "series-77"})

    await endpoint.execute(event)

    records = [r for r in caplog.records if "rejected" in r.getMessage()]
    assert len(records) == 1
    assert records[0].levelno == logging.WARNING
    assert records[0].context["request"]["seriesId"] == "series-77"
    assert records[0].details["status"] == 401


class Unrenderable:
    def to_jsonapi(self):
        raise ValueError("cannot serialize")


@pytest.mark.asyncio
async def test_result_that_cannot_serialize_itself(endpoint_config, session_manager, token):
    class Model:
        def get_one(self, request):
            return Unrenderable()

    endpoint = GetPerson(endpoint_config, model=Model(), session_manager=session_manager)
    result = await endpoint.execute(http_event(headers={"x-session-token": token}))

    assert result["statusCode"] == 500
    assert first_error(result)["title"] == "ResponseValidationError"
    assert "cannot serialize" in first_error(result)["detail"]


@pytest.mark.asyncio
async def test_circular_result(endpoint_config, session_manager, token):
    loop = {}
    loop["self"] = loop

    class Model:
        def get_one(self, request):
            return {"a": [loop]}

    endpoint = GetPerson(endpoint_config, model=Model(), session_manager=session_manager)
    result = await endpoint.execute(http_event(headers={"x-session-token": token}))

    assert result["statusCode"] == 500
    assert first_error(result)["title"] == "ResponseValidationError"


@pytest.mark.asyncio
async def test_unrenderable_result_on_structured_transport(endpoint_config, session_manager, token, lambda_context):
    class Model:
        def get_one(self, request):
            return Unrenderable()

    endpoint = GetPerson(endpoint_config, model=Model(), session_manager=session_manager)
    result = await endpoint.execute({"headers": {"x-session-token": token}}, lambda_context)

    assert result["statusCode"] == 500
    assert result["body"]["errors"][0]["title"] == "ResponseValidationError"
    assert "data" not in result["body"]
