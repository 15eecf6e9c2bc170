"""Strava webhook endpoints.

Handles the subscription handshake and logs push events. Events are not
processed further; activities are pulled through explicit imports.
"""

from __future__ import annotations

import hmac

from fastapi import APIRouter, HTTPException, Query, Request, status
from loguru import logger

from app.core.logger import sanitize_for_logs
from app.db.session import get_session
from app.services.system_settings import get_strava_settings

router = APIRouter(prefix="/webhooks/strava", tags=["webhooks", "strava"])


@router.get("")
def webhook_verification(
    hub_mode: str | None = Query(default=None, alias="hub.mode"),
    hub_challenge: str | None = Query(default=None, alias="hub.challenge"),
    hub_verify_token: str | None = Query(default=None, alias="hub.verify_token"),
):
    """Handle Strava webhook subscription verification.

    Args:
        hub_mode: Must be "subscribe"
        hub_challenge: Challenge string from Strava
        hub_verify_token: Verification token (must match STRAVA_WEBHOOK_VERIFY_TOKEN)

    Returns:
        JSON with hub.challenge if verification succeeds

    Raises:
        HTTPException: 403 if the mode or token does not match
    """
    logger.info("[WEBHOOK] Webhook verification request received")

    with get_session() as session:
        expected_token = get_strava_settings(session).webhook_verify_token

    if hub_mode != "subscribe" or not expected_token or not hub_verify_token:
        logger.warning(f"[WEBHOOK] Verification rejected: hub.mode={hub_mode}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")

    if not hmac.compare_digest(hub_verify_token.encode(), expected_token.encode()):
        logger.warning("[WEBHOOK] Verification rejected: token mismatch")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")

    logger.info("[WEBHOOK] Webhook verification succeeded")
    return {"hub.challenge": hub_challenge}


@router.post("")
async def webhook_event(request: Request):
    """Log a Strava push event and acknowledge it."""
    try:
        event = await request.json()
    except ValueError as e:
        logger.warning(f"[WEBHOOK] Invalid JSON body: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON") from e

    if not isinstance(event, dict):
        logger.warning(f"[WEBHOOK] Event body is not an object: {type(event).__name__}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid event")

    logger.info(
        f"[WEBHOOK] Event received: object_type={event.get('object_type')}, "
        f"aspect_type={event.get('aspect_type')}, object_id={event.get('object_id')}, "
        f"owner_id={event.get('owner_id')}"
    )
    logger.debug(f"[WEBHOOK] Event payload: {sanitize_for_logs(event)}")
    return {"success": True}
