import json
import logging

import pytest

from src.core.logger.logger import JsonFormatter

MIDDLEWARE_LOGGER = "src.api.middleware.logging.request_logging"


@pytest.fixture(autouse=True)
def setup_logging(caplog):
    """Setup logging to capture middleware logs in tests"""
    logger = logging.getLogger(MIDDLEWARE_LOGGER)
    logger.propagate = True
    caplog.set_level(logging.INFO, logger=MIDDLEWARE_LOGGER)
    yield
    logger.propagate = False


def request_records(caplog):
    return [r for r in caplog.records if r.name == MIDDLEWARE_LOGGER]


@pytest.mark.asyncio
async def test_request_logging(client, caplog):
    """Requests are logged with the caller's correlation ID"""
    correlation_id = "test-correlation-id"
    response = await client.get("/api/v1/health", headers={"X-Request-ID": correlation_id})

    assert response.status_code == 200
    assert response.headers["X-Request-ID"] == correlation_id

    records = request_records(caplog)
    assert len(records) == 1
    record = records[0]
    assert record.getMessage() == "Request completed"
    assert record.request_id == correlation_id
    assert record.method == "GET"
    assert record.path == "/api/v1/health"
    assert record.status_code == 200
    assert record.duration_ms >= 0


@pytest.mark.asyncio
async def test_request_id_generated_when_missing(client, caplog):
    response = await client.get("/api/v1/health")

    generated = response.headers["X-Request-ID"]
    assert generated
    assert request_records(caplog)[0].request_id == generated


@pytest.mark.asyncio
async def test_error_responses_are_logged(client, caplog):
    response = await client.get("/api/v1/users/me")

    assert response.status_code == 401
    record = request_records(caplog)[0]
    assert record.status_code == 401
    assert record.path == "/api/v1/users/me"


@pytest.mark.asyncio
async def test_json_formatter_includes_extra_fields(client, caplog):
    await client.get("/api/v1/health", headers={"X-Request-ID": "abc-123"})

    log = json.loads(JsonFormatter().format(request_records(caplog)[0]))

    assert log["level"] == "INFO"
    assert log["logger"] == MIDDLEWARE_LOGGER
    assert log["message"] == "Request completed"
    assert log["request_id"] == "abc-123"
    assert "duration_ms" in log
    assert "timestamp" in log
