"""Conversion of session errors into HTTP responses."""

from __future__ import annotations

import json

from fastapi import Request, Response

from mapmotion.core.errors import MapMotionError

_STATUS_BY_KIND = {
    "invalid_credentials": 401,
    "user_not_found": 404,
    "email_already_in_use": 409,
    "validation": 422,
    "services_disabled": 403,
    "authorization_denied": 403,
    "unknown": 502,
}


def error_response(err: MapMotionError) -> Response:
    return json_response(
        {"error": err.kind, "message": err.message},
        status_code=_STATUS_BY_KIND.get(err.kind, 500),
    )


def json_response(content: dict, status_code: int = 200) -> Response:
    return Response(
        content=json.dumps(content),
        status_code=status_code,
        media_type="application/json",
    )


def bad_request(message: str, status_code: int = 400) -> Response:
    return json_response({"error": "bad_request", "message": message}, status_code)


async def read_json(request: Request) -> dict | None:
    """Parse the request body as a JSON object. Returns None if it is not one."""
    body_bytes = await request.body()
    if not body_bytes:
        return {}
    try:
        body = json.loads(body_bytes)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    return body if isinstance(body, dict) else None
