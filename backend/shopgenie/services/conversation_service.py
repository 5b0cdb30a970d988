# /shopgenie/services/conversation_service.py

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

from shopgenie.config import strings
from shopgenie.config.settings import settings
from shopgenie.conversation.patterns import normalize_message, pattern_matcher
from shopgenie.conversation.resolver import Handler, Route, flow_resolver
from shopgenie.services import security_service
from shopgenie.services.ai_service import ai_service
from shopgenie.services.cache_service import cache_service
from shopgenie.services.credential_service import credential_service
from shopgenie.services.db_service import db_service
from shopgenie.services.geocoding_service import geocoding_service
from shopgenie.services.handlers import auth, checkout, general, order
from shopgenie.services.handlers.context import MessageContext
from shopgenie.services.session_store import session_store
from shopgenie.services.string_service import string_service
from shopgenie.services.user_service import user_service
from shopgenie.services.whatsapp_service import whatsapp_service
from shopgenie.utils.logging import mask_phone
from shopgenie.utils.metrics import message_counter, message_processing_histogram, pattern_match_counter


# This service is the entry point for every inbound WhatsApp message:
# user bookkeeping, the location intercept, pattern matching, flow resolution,
# classification, the connected-retailer guard and handler dispatch.

logger = logging.getLogger(__name__)

HANDLERS: Dict[Handler, Callable[[MessageContext, Route], Awaitable[str]]] = {
    Handler.CLEAR_SESSION: general.handle_clear_session,
    Handler.CLEAR_ALL: general.handle_clear_all,
    Handler.HELP: general.handle_help,
    Handler.STOP: general.handle_stop,
    Handler.SHOW_CART: general.handle_show_cart,
    Handler.SHOW_PRICES: general.handle_show_prices,
    Handler.SHOW_CONNECTED_RETAILERS: general.handle_show_connected_retailers,
    Handler.CANCEL: general.handle_cancel,
    Handler.ADDRESS_CONFIRMATION: general.handle_address_confirmation,
    Handler.UNKNOWN: general.handle_unknown,
    Handler.LOGIN: auth.handle_login,
    Handler.AUTH_METHOD: auth.handle_auth_method,
    Handler.AUTH_PHONE: auth.handle_auth_phone,
    Handler.AUTH_OTP: auth.handle_auth_otp,
    Handler.AUTH_EMAIL: auth.handle_auth_email,
    Handler.AUTH_PASSWORD: auth.handle_auth_password,
    Handler.RESEND_OTP: auth.handle_resend_otp,
    Handler.NO_ACTIVE_OTP: auth.handle_no_active_otp,
    Handler.CREDENTIAL_INPUT: auth.handle_credential_input,
    Handler.CHECKOUT_START: checkout.handle_checkout_start,
    Handler.CHECKOUT_SELECT_RETAILER: checkout.handle_checkout_select_retailer,
    Handler.CHECKOUT_SKIP: checkout.handle_checkout_skip,
    Handler.CHECKOUT_CONFIRM: checkout.handle_checkout_confirm,
    Handler.CHECKOUT_INCOMPLETE: checkout.handle_checkout_incomplete,
    Handler.CHECKOUT_EDIT: checkout.handle_checkout_edit,
    Handler.NO_ACTIVE_CHECKOUT: checkout.handle_no_active_checkout,
    Handler.ORDER: order.handle_order,
    Handler.ADD_ITEM: order.handle_add_item,
    Handler.REMOVE_ITEM: order.handle_remove_item,
    Handler.PRODUCT_SELECTION: order.handle_product_selection,
    Handler.RETAILER_SELECTION: order.handle_retailer_selection,
    Handler.ORDER_SELECT: order.handle_order_select,
    Handler.ORDER_SELECT_ALL: order.handle_order_select_all,
    Handler.ORDER_ADD_SELECTED: order.handle_order_add_selected,
    Handler.NO_ORDER_SELECTION: order.handle_no_order_selection,
}

# Storage errors mentioning these get the account-setup reply instead of the generic apology
ACCOUNT_SETUP_ERROR_MARKERS = ("login_id", "login_type", "retailer_credentials")

MAX_REPLY_LENGTH = 4096

REDACTED_CONTENT = "[redacted]"


class InboundLog:
    """
    The message_logs entry for one inbound message. It is written at most
    once, after the sender's session has been read, so text typed at an OTP
    or password step is stored redacted.
    """

    def __init__(self, entry: Dict[str, Any]):
        self.entry = entry
        self.written = False

    async def write(self, redact: bool = False) -> None:
        if self.written:
            return
        self.written = True
        document = dict(self.entry)
        if redact:
            document["content"] = REDACTED_CONTENT
        await db_service.log_message(document)


async def _log_inbound(inbound_log: Optional[InboundLog], redact: bool = False) -> None:
    if inbound_log is not None:
        await inbound_log.write(redact=redact)


async def process_message(
    phone_number: str,
    message_text: str,
    message_type: str = "text",
    location: Optional[Dict[str, Any]] = None,
    inbound_log: Optional[InboundLog] = None,
) -> Optional[str]:
    """
    Processes one inbound message and returns the reply text, or None when
    the sender should not get a reply. Never raises: every failure ends in
    one of the fixed apology messages.

    When `inbound_log` is given it is written once the sender's state is
    known. A failure before that point stores it redacted.
    """
    started = time.perf_counter()
    try:
        if not user_service.is_allowed_recipient(phone_number):
            logger.info(f"Ignoring message from {mask_phone(phone_number)}: not in allowed recipients")
            message_counter.labels(message_type=message_type, status="ignored").inc()
            await _log_inbound(inbound_log)
            return None

        user, is_new = await user_service.get_or_create_user(phone_number)
        user_id = user["_id"]
        text = (message_text or "").strip()

        if not user.get("allowed", True):
            if normalize_message(text) != "start":
                logger.info(f"Ignoring message from unsubscribed user {user_id}")
                message_counter.labels(message_type=message_type, status="ignored").inc()
                await _log_inbound(inbound_log)
                return None
            await user_service.set_allowed(user_id, True)

        if message_type == "location" and location:
            await _log_inbound(inbound_log)
            response = await _handle_location(user_id, location)
        else:
            response = await _handle_text(user, phone_number, text, inbound_log)

        if is_new and response:
            welcome = string_service.get_string("WELCOME_MESSAGE", strings.WELCOME_MESSAGE)
            response = f"{welcome}\n\n{response}"

        message_counter.labels(message_type=message_type, status="success").inc()
        return response[:MAX_REPLY_LENGTH] if response else None

    except Exception as e:
        logger.exception(f"Message processing error for {mask_phone(phone_number)}: {e}")
        message_counter.labels(message_type=message_type, status="error").inc()
        if any(marker in str(e) for marker in ACCOUNT_SETUP_ERROR_MARKERS):
            return string_service.get_string("ERROR_ACCOUNT_SETUP", strings.ERROR_ACCOUNT_SETUP)
        return string_service.get_string("ERROR_GENERAL", strings.ERROR_GENERAL)
    finally:
        await _log_inbound(inbound_log, redact=True)
        message_processing_histogram.observe(time.perf_counter() - started)


async def _handle_text(
    user: Dict[str, Any],
    phone_number: str,
    text: str,
    inbound_log: Optional[InboundLog] = None,
) -> str:
    user_id = user["_id"]
    async with cache_service.user_lock(user_id):
        session = await session_store.get(user_id)
        if session.stale:
            logger.info(f"Clearing stale session for user {user_id}")
            session = await session_store.clear(user_id, expected_version=session.version)
        await _log_inbound(inbound_log, redact=session.expects_secret)

        match = pattern_matcher.match(text)
        if match is not None:
            pattern_match_counter.labels(action=match.action.value).inc()

        route = flow_resolver.resolve(session, match)
        if route is None:
            intent = await asyncio.wait_for(ai_service.classify(text), timeout=settings.classifier_timeout_seconds)
            route = flow_resolver.resolve_intent(session, intent)

        if route.requires_connected_retailer and await credential_service.count_credentials(user_id) == 0:
            logger.info(f"User {user_id} has no connected retailer; blocking {route.handler.value}")
            return string_service.get_string("CONNECT_RETAILERS_FIRST", strings.CONNECT_RETAILERS_FIRST)

        logger.info(f"Routing message from user {user_id} to {route.handler.value} via {route.source}")
        ctx = MessageContext(user_id=user_id, phone_number=phone_number, text=text, session=session, user=user)
        handler = HANDLERS.get(route.handler, general.handle_unknown)
        return await handler(ctx, route)


async def _handle_location(user_id: str, location: Dict[str, Any]) -> str:
    """Shared locations skip the conversation core: they only propose a delivery address."""
    latitude = float(location["latitude"])
    longitude = float(location["longitude"])
    geo = await geocoding_service.reverse_geocode(latitude, longitude)
    text = location.get("address") or geo.formatted_address
    address = await user_service.save_unconfirmed_address(user_id, text, geo)
    return string_service.get_string("ADDRESS_CONFIRM_REQUEST", strings.ADDRESS_CONFIRM_REQUEST).format(
        address=address.display
    )


def get_message_text(message: Dict[str, Any]) -> str:
    """Extracts the textual content from the WhatsApp message types we answer."""
    msg_type = message.get("type")
    if msg_type == "text":
        return security_service.EnhancedSecurityService.validate_message_content(message.get("text", {}).get("body", ""))
    if msg_type == "interactive":
        interactive = message.get("interactive", {})
        reply = interactive.get(interactive.get("type"), {}) or {}
        return reply.get("id") or reply.get("title", "")
    if msg_type == "button":
        return message.get("button", {}).get("text", "")
    if msg_type == "location":
        location = message.get("location", {})
        return location.get("address") or location.get("name") or ""
    return ""


async def process_webhook_message(message: Dict[str, Any], webhook_data: Dict[str, Any]):
    """
    Handles one message from a webhook delivery: de-duplication, rate
    limiting, inbound logging, processing and the reply.
    """
    try:
        from_number = message.get("from")
        wamid = message.get("id")
        if not from_number or not wamid:
            logger.warning("Webhook message missing 'from' or 'id'.")
            return

        clean_phone = security_service.EnhancedSecurityService.sanitize_phone_number(from_number)
        if not clean_phone:
            logger.warning("Webhook message has an invalid sender number.")
            return

        if await cache_service.is_duplicate_message(wamid):
            logger.info(f"Duplicate message {wamid} from {mask_phone(clean_phone)} received, ignoring.")
            return

        if not await security_service.rate_limiter.check_phone_rate_limit(clean_phone):
            logger.warning(f"Rate limit exceeded for {mask_phone(clean_phone)}.")
            return

        message_type = message.get("type", "unknown")
        try:
            message_text = get_message_text(message)
        except ValueError as e:
            logger.warning(f"Rejected '{message_type}' message from {mask_phone(clean_phone)}: {e}")
            return
        location = message.get("location") if message_type == "location" else None
        if not message_text and not location:
            logger.info(f"Ignoring unsupported '{message_type}' message from {mask_phone(clean_phone)}")
            return

        inbound_log = InboundLog({
            "wamid": wamid,
            "phone": clean_phone,
            "direction": "inbound",
            "message_type": message_type,
            "content": message_text,
            "status": "received",
            "profile_name": (webhook_data.get("contacts") or [{}])[0].get("profile", {}).get("name"),
            "timestamp": datetime.now(timezone.utc),
        })
        await whatsapp_service.mark_as_read(wamid)

        response = await process_message(clean_phone, message_text, message_type, location, inbound_log=inbound_log)
        if response:
            await whatsapp_service.send_message(clean_phone, response, metadata={"in_reply_to": wamid})

    except Exception as e:
        logger.error(f"Error in process_webhook_message: {e}", exc_info=True)
