# /shopgenie/services/whatsapp_service.py

import httpx
import logging
import re
import tenacity
import json
from datetime import datetime, timezone
from typing import Optional

from shopgenie.config.settings import settings
from shopgenie.utils.circuit_breaker import RedisCircuitBreaker
from shopgenie.services.cache_service import cache_service
from shopgenie.services.db_service import db_service

logger = logging.getLogger(__name__)

MAX_TEXT_LENGTH = 4096


class WhatsAppService:
    def __init__(self, access_token: str, phone_id: str):
        self.access_token = access_token
        self.phone_id = phone_id
        self.http_client = httpx.AsyncClient(timeout=15.0)
        self.base_url = f"https://graph.facebook.com/{settings.whatsapp_api_version}"
        self.circuit_breaker = RedisCircuitBreaker(cache_service.redis, "whatsapp")

    @tenacity.retry(
        retry=tenacity.retry_if_exception_type((httpx.RequestError, httpx.TimeoutException)),
        stop=tenacity.stop_after_attempt(3),
        wait=tenacity.wait_exponential(multiplier=2, min=1, max=10),
        before_sleep=tenacity.before_sleep_log(logger, logging.WARNING)
    )
    async def resilient_api_call(self, func, *args, **kwargs):
        return await self.circuit_breaker.call(func, *args, **kwargs)

    async def send_whatsapp_request(self, payload: dict, metadata: dict | None = None) -> Optional[str]:
        """
        Sends a request to the WhatsApp messages API. Failures are logged and
        reported as None; delivery is never retried beyond the transport retries.
        """
        to_phone = payload.get("to")
        if not to_phone:
            logger.error(f"send_whatsapp_request_invalid_phone: {to_phone}")
            return None
        try:
            url = f"{self.base_url}/{self.phone_id}/messages"
            headers = {"Authorization": f"Bearer {self.access_token}", "Content-Type": "application/json"}
            response = await self.resilient_api_call(self.http_client.post, url, json=payload, headers=headers)

            if response.status_code == 200:
                response_data = response.json()
                message_id = response_data.get("messages", [{}])[0].get("id")
                logger.info(f"WhatsApp message sent to {to_phone[:5]}***, wamid: {message_id}")

                await db_service.log_message({
                    "wamid": message_id,
                    "phone": to_phone,
                    "direction": "outbound",
                    "message_type": payload.get("type"),
                    "content": json.dumps(payload.get(payload.get("type", "text"), {})),
                    "status": "sent",
                    "timestamp": datetime.now(timezone.utc),
                    "metadata": metadata or {}
                })
                return message_id

            error_data = response.json()
            error_message = (error_data.get("error") or {}).get("message", "Unknown error")
            logger.error(f"whatsapp_send_failed to {to_phone[:5]}***: {response.status_code} - {error_message}")
            return None
        except Exception as e:
            logger.error(f"whatsapp_send_error to {to_phone[:5]}***: {e}", exc_info=True)
            return None

    async def send_message(self, to_phone: str, message: str, metadata: dict | None = None) -> Optional[str]:
        """Sends a plain text message, truncated to the API's body limit."""
        clean_phone = re.sub(r"[^\d+]", "", to_phone)
        if not clean_phone.startswith("+"):
            clean_phone = "+" + clean_phone.lstrip("+")

        payload = {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": clean_phone,
            "type": "text",
            "text": {"body": message[:MAX_TEXT_LENGTH], "preview_url": True},
        }
        return await self.send_whatsapp_request(payload, metadata)

    async def mark_as_read(self, wamid: str) -> None:
        payload = {"messaging_product": "whatsapp", "status": "read", "message_id": wamid}
        try:
            url = f"{self.base_url}/{self.phone_id}/messages"
            headers = {"Authorization": f"Bearer {self.access_token}", "Content-Type": "application/json"}
            await self.resilient_api_call(self.http_client.post, url, json=payload, headers=headers)
        except Exception as e:
            logger.warning(f"Failed to mark message {wamid} as read: {e}")


whatsapp_service = WhatsAppService(
    settings.whatsapp_access_token,
    settings.whatsapp_phone_id,
)
