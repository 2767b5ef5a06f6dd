"""
FastAPI route: emergency alert delivery.

    POST /send-alert   {phone, latitude, longitude}

    200 {"message": "Alert sent successfully!"}
    400 {"message": "Missing required fields!"}
    400 {"message": "Invalid coordinates", "field": ...}
    500 {"message": "Error sending alert", "error": ..., "text_sent": ..., "call_placed": ...}

One request = one text plus one voice call to ``phone``. Nothing is
retried here; the client may resend.
"""

from __future__ import annotations

from functools import lru_cache

from fastapi import APIRouter, Depends

from backend.app.alerts.delivery import AlertSender, GatewayAlertSender, build_gateway
from backend.app.alerts.models import MESSAGE_SENT
from backend.app.api.schemas import MessageResponse, ProviderErrorResponse, SendAlertRequest
from backend.app.core.errors import ProviderError, ValidationError
from backend.app.spatial.distance import Position

router = APIRouter(tags=["alerts"])

MISSING_FIELDS_MESSAGE = "Missing required fields!"
INVALID_COORDINATES_MESSAGE = "Invalid coordinates"


@lru_cache()
def get_alert_sender() -> AlertSender:
    """Process-wide sender built from settings (overridden in tests)."""
    return GatewayAlertSender(build_gateway())


def _validated_position(request: SendAlertRequest) -> Position:
    if (
        not request.phone
        or not request.phone.strip()
        or request.latitude is None
        or request.longitude is None
    ):
        raise ValidationError(MISSING_FIELDS_MESSAGE)

    try:
        return Position.at(request.latitude, request.longitude)
    except ValueError as exc:
        raise ValidationError(INVALID_COORDINATES_MESSAGE, reason=str(exc))


@router.post(
    "/send-alert",
    response_model=MessageResponse,
    responses={
        400: {"model": MessageResponse},
        500: {"model": ProviderErrorResponse},
    },
    summary="Text and call the emergency contact with the user's location",
)
async def send_alert(
    request: SendAlertRequest,
    sender: AlertSender = Depends(get_alert_sender),
):
    position = _validated_position(request)
    result = await sender.send_alert(request.phone.strip(), position)

    if not result.ok:
        raise ProviderError(
            result.detail,
            text_sent=result.text_sent,
            call_placed=result.call_placed,
        )

    return MessageResponse(message=MESSAGE_SENT)
