# /shopgenie/services/user_service.py

import logging
from typing import Any, Dict, Optional, Tuple

from shopgenie.config.settings import settings
from shopgenie.models.domain import Address, GeocodeResult
from shopgenie.services.db_service import db_service
from shopgenie.services.security_service import EnhancedSecurityService

logger = logging.getLogger(__name__)


class UserService:
    """Users, their opt-in status and their delivery addresses."""

    async def get_or_create_user(self, phone_number: str) -> Tuple[Dict[str, Any], bool]:
        clean_phone = EnhancedSecurityService.sanitize_phone_number(phone_number)
        if not clean_phone:
            raise ValueError("Invalid phone number")

        user = await db_service.get_user_by_phone(clean_phone)
        if user:
            await db_service.touch_user(user["_id"])
            return user, False

        user = await db_service.create_user(clean_phone)
        logger.info(f"Created user for {clean_phone[:5]}***")
        return user, True

    async def set_allowed(self, user_id: str, allowed: bool) -> None:
        await db_service.set_user_allowed(user_id, allowed)
        logger.info(f"User {user_id} allowed={allowed}")

    def is_allowed_recipient(self, phone_number: str) -> bool:
        """Beta gate: an empty allow-list means everyone may use the bot."""
        if not settings.allowed_recipients:
            return True
        clean_phone = EnhancedSecurityService.sanitize_phone_number(phone_number)
        allowed = {EnhancedSecurityService.sanitize_phone_number(p) for p in settings.allowed_recipients}
        return clean_phone in allowed

    # ==================== Addresses ====================

    async def get_primary_address(self, user_id: str) -> Optional[Address]:
        document = await db_service.get_primary_address(user_id)
        if not document:
            return None
        return Address(**{k: v for k, v in document.items() if k != "_id"})

    async def save_unconfirmed_address(self, user_id: str, text: str, geo: GeocodeResult) -> Address:
        address = Address(
            user_id=user_id,
            text=text,
            formatted_address=geo.formatted_address,
            latitude=geo.latitude,
            longitude=geo.longitude,
            verified=geo.verified,
            confirmed=False,
        )
        await db_service.save_primary_address(address.model_dump(exclude={"created_at"}))
        return address

    async def confirm_primary_address(self, user_id: str) -> bool:
        return await db_service.set_primary_address_confirmed(user_id, True)

    async def reject_primary_address(self, user_id: str) -> bool:
        return await db_service.set_primary_address_confirmed(user_id, False)


user_service = UserService()
