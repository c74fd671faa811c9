import pytest

from core_endpoint.errors import EndpointError, ErrorKind
from core_endpoint.request import Request

from conftest import make_request


def paged(**parameters) -> Request:
    request = make_request(raw_parameters=parameters)
    return request.model_copy(update={"default_page_size": 25, "max_page_size": 100})


def test_paging_defaults():
    request = paged()

    assert request.page_number == 1
    assert request.page_size == 25


def test_paging_from_parameters():
    request = paged(pageNumber="3", pageSize="40")

    assert request.page_number == 3
    assert request.page_size == 40


@pytest.mark.parametrize(
    "parameters",
    [{"pageNumber": "x"}, {"pageNumber": "0"}, {"pageSize": "0"}, {"pageSize": "101"}, {"pageSize": "2.5"}],
)
def test_bad_paging_parameters(parameters):
    request = paged(**parameters)

    with pytest.raises(EndpointError) as e:
        request.page_number, request.page_size

    assert e.value.kind == ErrorKind.REQUEST_VALIDATION


def test_token_accessors_before_authorization():
    request = make_request(token="abc")

    assert request.user_id is None
    assert request.token_flags == []
    assert request.token_client_ip is None


def test_token_accessors():
    request = make_request()
    request.token_data = {
        "userId": "u-1",
        "sourceIp": "203.0.113.1",
        "data": {
            "username": "ada",
            "userId": "u-1",
            "personId": "p-1",
            "sessionId": "s-1",
            "ns": "default",
            "v": 1,
            "apiKey": "k-1",
            "flags": ["admin"],
        },
    }

    assert request.username == "ada"
    assert request.user_id == "u-1"
    assert request.person_id == "p-1"
    assert request.session_id == "s-1"
    assert request.namespace == "default"
    assert request.token_version == 1
    assert request.token_api_key == "k-1"
    assert request.token_client_ip == "203.0.113.1"
    assert request.token_flags == ["admin"]


def test_request_reads_through_to_context():
    request = make_request(raw_parameters={"id": "7"}, request_body={"name": "Ada"}, session_token="tok")

    assert request.get_parameter("id") == "7"
    assert request.get_parameter("missing", "d") == "d"
    assert request.body == {"name": "Ada"}
    assert Request.from_context(request.context).token == "tok"
