"""Helpers for serverless JSON endpoints."""

import asyncio
import json
import re
from typing import Any, Awaitable, Callable, Optional

from src.utils.errors import RequestValidationError, TaskTrackError
from src.utils.logging import correlation_context, get_structured_logger
from src.utils.logging_config import LoggingConfig

logger = get_structured_logger(__name__)


def json_response(status_code: int, payload: dict, headers: Optional[dict] = None) -> dict:
    response_headers = {"Content-Type": "application/json"}
    if headers:
        response_headers.update(headers)
    return {
        "statusCode": status_code,
        "headers": response_headers,
        "body": json.dumps(payload, default=str),
    }


def error_response(error: TaskTrackError) -> dict:
    return json_response(error.status_code, {"success": False, "message": error.message})


def normalize_headers(request: dict) -> dict[str, str]:
    """Lower-case header names."""
    return {str(k).lower(): v for k, v in (request.get("headers") or {}).items()}


def parse_json_body(request: dict) -> dict:
    body = request.get("body")
    if body is None or body == "":
        return {}
    if isinstance(body, dict):
        return body
    try:
        parsed = json.loads(body)
    except (TypeError, json.JSONDecodeError):
        raise RequestValidationError("Request body must be valid JSON")
    if not isinstance(parsed, dict):
        raise RequestValidationError("Request body must be a JSON object")
    return parsed


def match_route(path: str, prefix: str) -> Optional[list[str]]:
    """Split the path below prefix into segments, or None if it is outside prefix."""
    path = re.sub(r"/+$", "", (path or "").split("?", 1)[0])
    if path != prefix and not path.startswith(prefix + "/"):
        return None
    remainder = path[len(prefix):].strip("/")
    return remainder.split("/") if remainder else []


def run_endpoint(request: dict, dispatch: Callable[[dict, dict], Awaitable[dict]]) -> dict:
    """Run an async dispatcher for one request with a correlation id and error mapping."""
    headers = normalize_headers(request)
    correlation_id = headers.get(LoggingConfig.LOG_CORRELATION_ID_HEADER.lower())

    with correlation_context(correlation_id) as cid:
        try:
            response = asyncio.run(dispatch(request, headers))
        except TaskTrackError as e:
            logger.info(
                "Request rejected",
                method=request.get("method"),
                path=request.get("path"),
                status_code=e.status_code,
                error=e.message,
            )
            response = error_response(e)
        except Exception as e:
            logger.error(
                f"Unhandled error: {e}",
                exc_info=True,
                method=request.get("method"),
                path=request.get("path"),
            )
            response = json_response(500, {"success": False, "message": "Server Error"})

        response["headers"][LoggingConfig.LOG_CORRELATION_ID_HEADER] = cid
        return response


def not_found() -> dict:
    return json_response(404, {"success": False, "message": "Not found"})


def method_not_allowed() -> dict:
    return json_response(405, {"success": False, "message": "Method not allowed"})


def single(data: Any, message: Optional[str] = None, status_code: int = 200) -> dict:
    payload: dict[str, Any] = {"success": True, "data": data}
    if message:
        payload["message"] = message
    return json_response(status_code, payload)
