"""Tests for serverless endpoint helpers."""

import json
import pytest

from src.utils.errors import ForbiddenError, RequestValidationError
from src.utils.http import match_route, parse_json_body, run_endpoint


@pytest.mark.unit
@pytest.mark.parametrize("path, expected", [
    ("/api/tasks", []),
    ("/api/tasks/", []),
    ("/api/tasks/abc", ["abc"]),
    ("/api/tasks/abc/assign?x=1", ["abc", "assign"]),
    ("/api/tasksx", None),
    ("/api/queries/abc", None),
])
def test_match_route(path, expected):
    assert match_route(path, "/api/tasks") == expected


@pytest.mark.unit
def test_parse_json_body():
    assert parse_json_body({"body": '{"title": "x"}'}) == {"title": "x"}
    assert parse_json_body({"body": None}) == {}
    assert parse_json_body({"body": {"a": 1}}) == {"a": 1}

    with pytest.raises(RequestValidationError):
        parse_json_body({"body": "{not json"})
    with pytest.raises(RequestValidationError):
        parse_json_body({"body": "[1, 2]"})


@pytest.mark.unit
def test_run_endpoint_maps_domain_errors():
    async def dispatch(request, headers):
        raise ForbiddenError("Not authorized to update this task")

    response = run_endpoint({"method": "PUT", "path": "/api/tasks/1"}, dispatch)

    assert response["statusCode"] == 403
    assert json.loads(response["body"]) == {"success": False, "message": "Not authorized to update this task"}


@pytest.mark.unit
def test_run_endpoint_hides_unexpected_errors():
    async def dispatch(request, headers):
        raise RuntimeError("database password is hunter2")

    response = run_endpoint({"method": "GET", "path": "/api/tasks"}, dispatch)

    assert response["statusCode"] == 500
    assert "hunter2" not in response["body"]


@pytest.mark.unit
def test_run_endpoint_echoes_correlation_id():
    async def dispatch(request, headers):
        return {"statusCode": 200, "headers": {"Content-Type": "application/json"}, "body": "{}"}

    response = run_endpoint(
        {"method": "GET", "path": "/api/tasks", "headers": {"X-Correlation-ID": "req_given"}},
        dispatch,
    )
    assert response["headers"]["X-Correlation-ID"] == "req_given"
