"""Custom assertion helpers."""

import json
from typing import Any, Dict

ENVELOPE_KEYS = {"canEdit", "canDelete", "canAssign", "canComment"}


def assert_envelope(resource: Dict[str, Any], **expected: bool) -> None:
    """Assert the permission envelope is present and matches the given flags."""
    assert ENVELOPE_KEYS <= set(resource)
    for key, value in expected.items():
        assert resource[key] is value, f"{key} expected {value}, got {resource[key]}"


def assert_valid_response(response: Dict[str, Any], expected_status: int = 200) -> Dict[str, Any]:
    """Assert that a Vercel function response is valid and return its JSON body."""
    assert 'statusCode' in response
    assert response['statusCode'] == expected_status, response.get('body')
    assert 'headers' in response
    assert 'body' in response
    assert 'application/json' in response['headers'].get('Content-Type', '')

    try:
        return json.loads(response['body'])
    except json.JSONDecodeError:
        assert False, "Response body is not valid JSON"
