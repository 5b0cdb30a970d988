# /shopgenie/services/handlers/auth.py

import logging

from shopgenie.config import strings
from shopgenie.config.retailers import format_retailer_list, get_retailer
from shopgenie.config.settings import settings
from shopgenie.conversation import flows
from shopgenie.conversation.flows import InvalidFlowInput
from shopgenie.conversation.resolver import Route
from shopgenie.models.session import AuthStep
from shopgenie.services.credential_service import credential_service
from shopgenie.services.handlers.context import MessageContext, end_flow, save_flow
from shopgenie.services.string_service import string_service
from shopgenie.utils.logging import mask_phone

logger = logging.getLogger(__name__)


async def handle_login(ctx: MessageContext, route: Route) -> str:
    """Starts the auth flow for a supported retailer the user has not connected yet."""
    requested = route.params.get("retailer")
    if not requested:
        return string_service.get_string("CHOOSE_RETAILER_TO_CONNECT", strings.CHOOSE_RETAILER_TO_CONNECT).format(
            retailers=format_retailer_list()
        )

    retailer = get_retailer(requested)
    if retailer is None:
        return string_service.get_string("RETAILER_NOT_SUPPORTED", strings.RETAILER_NOT_SUPPORTED).format(
            retailer=requested, retailers=format_retailer_list()
        )

    if await credential_service.has_credentials(ctx.user_id, retailer.key):
        return string_service.get_string("RETAILER_ALREADY_CONNECTED", strings.RETAILER_ALREADY_CONNECTED).format(
            retailer_name=retailer.display_name
        )

    await save_flow(ctx, flows.begin_auth(retailer.key))
    logger.info(f"User {ctx.user_id} started {retailer.key} login")
    return string_service.get_string("AUTH_CHOOSE_METHOD", strings.AUTH_CHOOSE_METHOD).format(
        retailer_name=retailer.display_name
    )


async def handle_auth_method(ctx: MessageContext, route: Route) -> str:
    flow = flows.choose_login_method(ctx.session.flow, route.params.get("method", ""))
    await save_flow(ctx, flow)
    retailer_name = get_retailer(flow.retailer).display_name
    if flow.step == AuthStep.PHONE_INPUT:
        return string_service.get_string("AUTH_ASK_PHONE", strings.AUTH_ASK_PHONE).format(retailer_name=retailer_name)
    return string_service.get_string("AUTH_ASK_EMAIL", strings.AUTH_ASK_EMAIL).format(retailer_name=retailer_name)


async def handle_auth_phone(ctx: MessageContext, route: Route) -> str:
    try:
        flow = flows.submit_phone(ctx.session.flow, ctx.text)
    except InvalidFlowInput:
        return string_service.get_string("AUTH_INVALID_PHONE", strings.AUTH_INVALID_PHONE)

    await save_flow(ctx, flow)
    # Codes are not delivered or checked; any well-formed code is accepted.
    logger.info(f"OTP requested for {mask_phone(flow.phone_number)} on {flow.retailer}")
    return string_service.get_string("AUTH_OTP_SENT", strings.AUTH_OTP_SENT).format(
        otp_length=settings.otp_length, phone_number=flow.phone_number
    )


async def handle_auth_otp(ctx: MessageContext, route: Route) -> str:
    flow = ctx.session.flow
    try:
        code = flows.submit_otp(flow, ctx.text, settings.otp_length)
    except InvalidFlowInput:
        return string_service.get_string("AUTH_INVALID_OTP", strings.AUTH_INVALID_OTP).format(
            otp_length=settings.otp_length
        )

    await credential_service.save_credentials(ctx.user_id, flow.retailer, flow.phone_number, f"otp_{code}", "phone")
    await end_flow(ctx)
    return string_service.get_string("AUTH_SUCCESS", strings.AUTH_SUCCESS).format(
        retailer_name=get_retailer(flow.retailer).display_name
    )


async def handle_auth_email(ctx: MessageContext, route: Route) -> str:
    try:
        flow = flows.submit_email(ctx.session.flow, ctx.text)
    except InvalidFlowInput:
        return string_service.get_string("AUTH_INVALID_EMAIL", strings.AUTH_INVALID_EMAIL)

    await save_flow(ctx, flow)
    return string_service.get_string("AUTH_ASK_PASSWORD", strings.AUTH_ASK_PASSWORD).format(
        retailer_name=get_retailer(flow.retailer).display_name
    )


async def handle_auth_password(ctx: MessageContext, route: Route) -> str:
    flow = ctx.session.flow
    password = flows.submit_password(flow, ctx.text)
    await credential_service.save_credentials(ctx.user_id, flow.retailer, flow.email, password, "email")
    await end_flow(ctx)
    return string_service.get_string("AUTH_SUCCESS", strings.AUTH_SUCCESS).format(
        retailer_name=get_retailer(flow.retailer).display_name
    )


async def handle_resend_otp(ctx: MessageContext, route: Route) -> str:
    flow = ctx.session.flow
    logger.info(f"OTP re-requested for {mask_phone(flow.phone_number)} on {flow.retailer}")
    return string_service.get_string("AUTH_OTP_RESENT", strings.AUTH_OTP_RESENT).format(phone_number=flow.phone_number)


async def handle_no_active_otp(ctx: MessageContext, route: Route) -> str:
    return string_service.get_string("AUTH_NO_ACTIVE_OTP", strings.AUTH_NO_ACTIVE_OTP)


async def handle_credential_input(ctx: MessageContext, route: Route) -> str:
    return string_service.get_string("CREDENTIAL_INPUT_GUIDANCE", strings.CREDENTIAL_INPUT_GUIDANCE)
