"""Device bridge endpoints.

The phone reports its location permission state and pushes raw fixes
here. Responses tell it whether a permission prompt is pending and whether
the service currently wants updates.
"""

from __future__ import annotations

from fastapi import APIRouter, Request, Response

from mapmotion.api.errors import bad_request, json_response, read_json
from mapmotion.core.models import AuthorizationState, RawFix, from_epoch_ms
from mapmotion.location.bridge import DeviceDeliveryError

router = APIRouter(prefix="/api/v1/device")


def _parse_fix(data: dict) -> RawFix:
    """Parse a fix from JSON. Raises KeyError, TypeError or ValueError."""
    return RawFix(
        latitude=float(data["latitude"]),
        longitude=float(data["longitude"]),
        timestamp=from_epoch_ms(int(data["timestamp_ms"])),
        accuracy_m=float(data["accuracy_m"]),
    )


def _bridge_status() -> dict:
    from mapmotion.main import get_bridge

    bridge = get_bridge()
    return {
        "permission_requested": bridge.permission_requested,
        "updating": bridge.updating,
        "min_distance_m": bridge.min_distance_m,
        "desired_accuracy": bridge.desired_accuracy,
    }


@router.post("/status")
async def report_status(request: Request) -> Response:
    """Body: {"services_enabled": bool, "authorization": "granted" | ...}."""
    from mapmotion.main import get_bridge

    body = await read_json(request)
    if body is None:
        return bad_request("invalid JSON")

    authorization = None
    if "authorization" in body:
        try:
            authorization = AuthorizationState(body["authorization"])
        except ValueError:
            return bad_request(f"unknown authorization state: {body['authorization']!r}", 422)

    services_enabled = body.get("services_enabled")
    if services_enabled is not None and not isinstance(services_enabled, bool):
        return bad_request("services_enabled must be a boolean", 422)

    get_bridge().update_status(services_enabled=services_enabled, authorization=authorization)
    return json_response(_bridge_status())


@router.post("/fixes")
async def push_fixes(request: Request) -> Response:
    """Body: {"fixes": [{latitude, longitude, timestamp_ms, accuracy_m}], "error": str}.

    Fixes are forwarded in order. Fixes pushed while no subscription is
    active are ignored.
    """
    from mapmotion.main import get_bridge

    body = await read_json(request)
    if body is None:
        return bad_request("invalid JSON")

    try:
        fixes = [_parse_fix(f) for f in body.get("fixes", [])]
    except (KeyError, TypeError, ValueError) as exc:
        return bad_request(f"malformed fix: {exc}", 422)

    bridge = get_bridge()
    forwarded = sum(1 for fix in fixes if bridge.deliver_fix(fix))
    if body.get("error"):
        bridge.deliver_error(DeviceDeliveryError(str(body["error"])))

    result = _bridge_status()
    result.update({"forwarded": forwarded, "ignored": len(fixes) - forwarded})
    return json_response(result)
