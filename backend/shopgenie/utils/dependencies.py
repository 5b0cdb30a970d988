# /shopgenie/utils/dependencies.py

import structlog
from fastapi import Request, HTTPException

from shopgenie.config.settings import settings
from shopgenie.services import security_service
from shopgenie.utils.metrics import webhook_signature_counter
from shopgenie.utils.request_utils import get_remote_address

log = structlog.get_logger(__name__)


async def verify_webhook_signature(request: Request) -> bytes:
    """Returns the raw body once its X-Hub-Signature-256 HMAC checks out; 401 otherwise."""
    body = await request.body()
    signature = request.headers.get("x-hub-signature-256", "")
    if not security_service.SecurityService.verify_webhook_signature(body, signature, settings.whatsapp_webhook_secret):
        webhook_signature_counter.labels(status="invalid").inc()
        log.error("Invalid webhook signature.", client_ip=get_remote_address(request), signature=signature[:20])
        raise HTTPException(status_code=401, detail="Invalid signature")
    webhook_signature_counter.labels(status="valid").inc()
    return body
