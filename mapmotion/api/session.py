"""Session API endpoints.

This is the thin FastAPI adapter the UI layer talks to. It parses JSON
requests, calls the MapSession, and maps session errors to HTTP statuses.
"""

from __future__ import annotations

from fastapi import APIRouter, Request, Response

from mapmotion.api.errors import bad_request, error_response, json_response, read_json
from mapmotion.core.errors import MapMotionError

router = APIRouter(prefix="/api/v1")


async def _credentials(request: Request) -> tuple[str, str] | None:
    body = await read_json(request)
    if body is None:
        return None
    return str(body.get("email", "")).strip(), str(body.get("password", ""))


@router.get("/session")
async def get_session_state() -> dict:
    """Everything the map screen observes: tracking flag, location, path, last error."""
    from mapmotion.main import get_session

    return get_session().describe()


@router.post("/auth/signin")
async def sign_in(request: Request) -> Response:
    from mapmotion.main import get_session

    creds = await _credentials(request)
    if creds is None:
        return bad_request("invalid JSON")
    try:
        identity = await get_session().sign_in(*creds)
    except MapMotionError as err:
        return error_response(err)
    return json_response({"user": {"id": identity.id, "email": identity.email}})


@router.post("/auth/signup")
async def sign_up(request: Request) -> Response:
    from mapmotion.main import get_session

    creds = await _credentials(request)
    if creds is None:
        return bad_request("invalid JSON")
    try:
        identity = await get_session().sign_up(*creds)
    except MapMotionError as err:
        return error_response(err)
    return json_response({"user": {"id": identity.id, "email": identity.email}}, status_code=201)


@router.post("/auth/signout")
async def sign_out() -> Response:
    from mapmotion.main import get_session

    try:
        await get_session().sign_out()
    except MapMotionError as err:
        return error_response(err)
    return json_response({"signed_out": True})


@router.get("/auth/logins")
async def previous_logins() -> dict:
    from mapmotion.main import get_session

    return {"emails": get_session().previous_logins()}


@router.post("/tracking/toggle")
async def toggle_tracking() -> dict:
    """Start tracking if idle or stopped, stop it otherwise.

    Authorization failures are reported in ``last_error`` of the returned
    session, not as an HTTP error: the toggle itself always succeeds.
    """
    from mapmotion.main import get_session

    session = get_session()
    await session.toggle_tracking()
    return session.describe()


@router.post("/path/toggle")
async def toggle_path() -> dict:
    from mapmotion.main import get_session

    session = get_session()
    await session.toggle_path_display()
    return session.describe()


@router.get("/path")
async def todays_path() -> Response:
    """Today's path for the signed-in user, oldest sample first."""
    from mapmotion.main import get_session

    try:
        samples = await get_session().tracker.load_today_path()
    except MapMotionError as err:
        return error_response(err)
    return json_response({"samples": [s.to_dict() for s in samples], "total": len(samples)})
