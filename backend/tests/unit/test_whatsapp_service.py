# backend/tests/unit/test_whatsapp_service.py

import pytest
from unittest.mock import AsyncMock, MagicMock

from shopgenie.services.whatsapp_service import MAX_TEXT_LENGTH, WhatsAppService, whatsapp_service


@pytest.mark.asyncio
async def test_send_message_logs_outbound(mocker):
    """A successful send returns the wamid and writes an outbound message log."""
    mock_api_call = mocker.patch(
        'shopgenie.services.whatsapp_service.WhatsAppService.resilient_api_call',
        new_callable=AsyncMock,
        return_value=MagicMock(status_code=200, json=lambda: {"messages": [{"id": "wamid_123"}]})
    )
    mock_log = mocker.patch('shopgenie.services.whatsapp_service.db_service.log_message', new_callable=AsyncMock)

    message_id = await whatsapp_service.send_message("919876543210", "Hello", metadata={"in_reply_to": "wamid.in"})

    assert message_id == "wamid_123"
    payload = mock_api_call.call_args.kwargs["json"]
    assert payload["to"] == "+919876543210"
    assert payload["text"]["body"] == "Hello"
    logged = mock_log.call_args.args[0]
    assert logged["direction"] == "outbound"
    assert logged["metadata"] == {"in_reply_to": "wamid.in"}


@pytest.mark.asyncio
async def test_send_message_truncates_long_body(mocker):
    mock_api_call = mocker.patch.object(
        WhatsAppService, "resilient_api_call", new_callable=AsyncMock,
        return_value=MagicMock(status_code=200, json=lambda: {"messages": [{"id": "wamid_1"}]})
    )
    mocker.patch('shopgenie.services.whatsapp_service.db_service.log_message', new_callable=AsyncMock)

    await whatsapp_service.send_message("+919876543210", "x" * (MAX_TEXT_LENGTH + 100))

    assert len(mock_api_call.call_args.kwargs["json"]["text"]["body"]) == MAX_TEXT_LENGTH


@pytest.mark.asyncio
async def test_send_message_api_error_returns_none(mocker):
    mocker.patch.object(
        WhatsAppService, "resilient_api_call", new_callable=AsyncMock,
        return_value=MagicMock(status_code=400, json=lambda: {"error": {"message": "Invalid recipient"}})
    )
    mock_log = mocker.patch('shopgenie.services.whatsapp_service.db_service.log_message', new_callable=AsyncMock)

    assert await whatsapp_service.send_message("+919876543210", "Hello") is None
    mock_log.assert_not_awaited()


@pytest.mark.asyncio
async def test_send_message_transport_failure_returns_none(mocker):
    mocker.patch.object(WhatsAppService, "resilient_api_call", new_callable=AsyncMock, side_effect=RuntimeError("boom"))

    assert await whatsapp_service.send_message("+919876543210", "Hello") is None


@pytest.mark.asyncio
async def test_mark_as_read_swallows_errors(mocker):
    mock_api_call = mocker.patch.object(
        WhatsAppService, "resilient_api_call", new_callable=AsyncMock, side_effect=RuntimeError("boom")
    )

    await whatsapp_service.mark_as_read("wamid.abc")

    assert mock_api_call.call_args.kwargs["json"]["message_id"] == "wamid.abc"
