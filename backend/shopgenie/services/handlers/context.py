# /shopgenie/services/handlers/context.py

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from shopgenie.models.session import Flow, Session
from shopgenie.services.session_store import session_store


@dataclass
class MessageContext:
    """Everything a handler needs to know about the message it is answering."""
    user_id: str
    phone_number: str
    text: str
    session: Session
    user: Dict[str, Any] = field(default_factory=dict)


async def save_flow(ctx: MessageContext, flow: Optional[Flow]) -> Session:
    """Writes the next flow against the version this message was resolved from."""
    ctx.session = await session_store.set_flow(ctx.user_id, flow, expected_version=ctx.session.version)
    return ctx.session


async def end_flow(ctx: MessageContext) -> Session:
    ctx.session = await session_store.clear(ctx.user_id, expected_version=ctx.session.version)
    return ctx.session
