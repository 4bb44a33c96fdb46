"""Test helper functions."""

import json
from typing import Any, Dict, Optional


def create_api_request(
    method: str = "GET",
    path: str = "/api/tasks",
    body: Any = None,
    user_id: Optional[str] = None,
    query: Optional[Dict[str, str]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    """Create a Vercel request object for testing."""
    request_headers = {"content-type": "application/json"}
    if user_id:
        request_headers["x-user-id"] = user_id
    if headers:
        request_headers.update(headers)

    return {
        "method": method,
        "path": path,
        "headers": request_headers,
        "body": json.dumps(body) if isinstance(body, (dict, list)) else body,
        "query": query or {},
    }


def response_json(response: Dict[str, Any]) -> Dict[str, Any]:
    return json.loads(response["body"])
