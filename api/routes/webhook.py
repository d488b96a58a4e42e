"""
WhatsApp Cloud API webhook routes.

GET  /webhook - subscription verification handshake
POST /webhook - inbound message events
"""

import json
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from bot.inbound import MalformedPayloadError, parse_webhook

from ..services import Services, get_services

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/webhook")
async def verify_webhook(
    mode: str = Query(default="", alias="hub.mode"),
    token: str = Query(default="", alias="hub.verify_token"),
    challenge: str = Query(default="", alias="hub.challenge"),
    services: Services = Depends(get_services),
):
    """
    Meta subscription handshake.

    Echoes hub.challenge when hub.mode is "subscribe" and the token matches
    WHATSAPP_VERIFY_TOKEN; anything else is refused with 403.
    """
    expected = services.settings.whatsapp_verify_token
    if mode == "subscribe" and expected and token == expected:
        logger.info("Webhook verified")
        return PlainTextResponse(challenge)

    logger.warning(f"Webhook verification refused (mode={mode!r})")
    return JSONResponse(status_code=403, content={"status": "forbidden"})


@router.post("/webhook")
async def receive_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    services: Services = Depends(get_services),
):
    """
    Receive an inbound event.

    Always answers 200 so the platform does not redeliver: "processed",
    "duplicate" for an already handled message id, or "ignored" for
    status events and unusable payloads. Completed records are forwarded
    in a background task after the response is sent.
    """
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.warning(f"Webhook body is not valid JSON: {e}")
        return {"status": "ignored", "reason": "invalid_json"}

    try:
        message = parse_webhook(body)
    except MalformedPayloadError as e:
        logger.warning(f"Malformed webhook payload: {e}")
        return {"status": "ignored", "reason": "malformed"}

    if message is None:
        logger.debug("Non-message webhook event acknowledged")
        return {"status": "ignored", "reason": "no_message"}

    result = await services.processor.process(message)
    if result.duplicate:
        return {"status": "duplicate", "message_id": message.message_id}

    if result.records:
        background_tasks.add_task(services.processor.forward_records, result.records)

    return {
        "status": "processed",
        "message_id": message.message_id,
        "state": result.state.value if result.state else None,
    }
