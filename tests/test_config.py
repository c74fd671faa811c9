import logging

import pytest
from pydantic import ValidationError

from core_endpoint.config import EndpointConfig, SessionConfig
from core_endpoint.constants import DEFAULT_TOKEN_SECRET
from core_endpoint.log_context import ContextLogger

from conftest import TEST_SECRET


def test_session_config_defaults():
    config = SessionConfig(token_secret=TEST_SECRET)

    assert config.token_algorithm == "HS256"
    assert config.default_ttl == 3600
    assert config.max_ttl == 43200


@pytest.mark.parametrize(
    "values",
    [
        {"token_secret": "  "},
        {"token_secret": TEST_SECRET, "token_algorithm": "RS256"},
        {"token_secret": TEST_SECRET, "default_ttl": 50000},
    ],
)
def test_invalid_session_config(values):
    with pytest.raises(ValidationError):
        SessionConfig(**values)


def test_configuration_is_immutable(session_config):
    with pytest.raises(ValidationError):
        session_config.token_secret = "other"


def test_session_config_from_env(monkeypatch):
    monkeypatch.setenv("JWT_SECRET_KEY", TEST_SECRET)
    monkeypatch.setenv("JWT_ALGORITHM", "hs512")
    monkeypatch.setenv("JWT_DEFAULT_TTL", "600")

    config = SessionConfig.from_env()

    assert config.token_secret == TEST_SECRET
    assert config.token_algorithm == "HS512"
    assert config.default_ttl == 600


def test_session_config_from_env_falls_back(monkeypatch, caplog):
    monkeypatch.delenv("JWT_SECRET_KEY", raising=False)
    monkeypatch.setenv("JWT_ALGORITHM", "none")
    monkeypatch.setenv("JWT_DEFAULT_TTL", "soon")

    with caplog.at_level(logging.WARNING, logger="core_endpoint.config"):
        config = SessionConfig.from_env()

    assert config.token_secret == DEFAULT_TOKEN_SECRET
    assert config.token_algorithm == "HS256"
    assert config.default_ttl == 3600
    assert len(caplog.records) == 3


def test_endpoint_config_from_env(monkeypatch, session_config):
    monkeypatch.setenv("SCK_SERVICE_NAME", "people")
    monkeypatch.setenv("SCK_STAGE", "prod")
    monkeypatch.setenv("SCK_ERROR_DOCS_URL", "https://docs.example.com/")

    config = EndpointConfig.from_env(session=session_config, service_version="2.0.0")

    assert config.service_name == "people"
    assert config.service_version == "2.0.0"
    assert config.stage == "prod"
    assert config.error_docs_url == "https://docs.example.com"


def test_page_sizes_must_be_consistent(session_config):
    with pytest.raises(ValidationError):
        EndpointConfig(default_page_size=500, max_page_size=100, session=session_config)


# ----------------------------------------------------------------------------
# Request logger
# ----------------------------------------------------------------------------


def test_context_logger_assign_and_get():
    logger = ContextLogger(logging.getLogger("test.context"), {"request.requestId": "r-1"})
    logger.assign("session.token.flags", ["system"])

    assert logger.get("request.requestId") == "r-1"
    assert logger.get("session.token.flags") == ["system"]
    assert logger.get("user.userId") is None
    assert logger.get("request.requestId.deeper", "d") == "d"


def test_context_logger_attaches_a_snapshot(caplog):
    logger = ContextLogger(logging.getLogger("test.context"))
    logger.assign("user.userId", "u-1")

    with caplog.at_level(logging.INFO, logger="test.context"):
        logger.info("first", extra={"details": {"n": 1}})
        logger.assign("user.userId", "u-2")
        logger.info("second")

    first, second = caplog.records
    assert first.context["user"]["userId"] == "u-1"
    assert first.details == {"n": 1}
    assert second.context["user"]["userId"] == "u-2"
