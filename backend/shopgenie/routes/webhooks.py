# /shopgenie/routes/webhooks.py

import json
import asyncio
import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, Query
from fastapi.responses import JSONResponse, PlainTextResponse

from shopgenie.config.settings import settings
from shopgenie.services import conversation_service
from shopgenie.services.db_service import db_service
from shopgenie.utils.dependencies import verify_webhook_signature
from shopgenie.utils.metrics import response_time_histogram
from shopgenie.utils.rate_limiter import limiter

# WhatsApp Cloud API webhook: the GET verification handshake and the signed
# POST deliveries carrying inbound messages and delivery statuses.

router = APIRouter(
    tags=["Webhooks"]
)

log = structlog.get_logger(__name__)

# Keeps spawned message tasks referenced until they finish
_background_tasks: set = set()


@router.get("/webhook")
async def verify_whatsapp_webhook(
    hub_mode: str = Query(None, alias="hub.mode"),
    hub_verify_token: str = Query(None, alias="hub.verify_token"),
    hub_challenge: str = Query(None, alias="hub.challenge")
):
    """WhatsApp webhook verification (GET request)."""
    if hub_mode == "subscribe" and hub_verify_token == settings.whatsapp_verify_token:
        log.info("WhatsApp webhook verification successful.")
        return PlainTextResponse(hub_challenge)
    log.error("WhatsApp webhook verification failed.", hub_mode=hub_mode)
    raise HTTPException(status_code=403, detail="Forbidden")


@router.post("/webhook")
@limiter.limit(f"{settings.webhook_rate_limit_per_minute}/minute")
async def handle_whatsapp_webhook(
    request: Request,
    verified_body: bytes = Depends(verify_webhook_signature)
):
    """Acknowledges a delivery immediately; each inbound message is processed in its own task."""
    with response_time_histogram.labels(endpoint="whatsapp_webhook").time():
        try:
            data = json.loads(verified_body.decode())
        except (UnicodeDecodeError, json.JSONDecodeError):
            log.warning("Webhook body is not valid JSON.")
            raise HTTPException(status_code=400, detail="Invalid JSON body")

        for entry in data.get("entry", []):
            for change in entry.get("changes", []):
                if change.get("field") != "messages":
                    log.debug("Ignoring non-message change", field=change.get("field"))
                    continue

                value = change.get("value", {})
                incoming_phone_id = value.get("metadata", {}).get("phone_number_id")
                if incoming_phone_id and incoming_phone_id != settings.whatsapp_phone_id:
                    log.info("Ignored event for different phone ID.", incoming_id=incoming_phone_id)
                    continue

                for status_data in value.get("statuses", []):
                    wamid = status_data.get("id")
                    status_type = status_data.get("status")
                    if wamid and status_type:
                        log.info("Processing status update", wamid=wamid, status=status_type)
                        await db_service.update_message_status(wamid, status_type)

                for message in value.get("messages", []):
                    log.info("Processing incoming message", wamid=message.get("id"), message_type=message.get("type"))
                    task = asyncio.create_task(conversation_service.process_webhook_message(message, value))
                    _background_tasks.add(task)
                    task.add_done_callback(_background_tasks.discard)

        return JSONResponse({"status": "success"})
