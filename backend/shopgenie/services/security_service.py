# /shopgenie/services/security_service.py

import hmac
import hashlib
import bcrypt
import re

from shopgenie.services.cache_service import cache_service

# Core security helpers: webhook signature verification, secret hashing,
# input sanitization and per-phone rate limiting.

class SecurityService:
    @staticmethod
    def verify_webhook_signature(payload: bytes, signature: str, secret: str) -> bool:
        if not signature or not signature.startswith('sha256='):
            return False
        expected_signature = hmac.new(secret.encode('utf-8'), payload, hashlib.sha256).hexdigest()
        return hmac.compare_digest(expected_signature, signature[7:])

    @staticmethod
    def hash_password(password: str) -> str:
        return bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt()).decode('utf-8')

    @staticmethod
    def verify_password(password: str, hashed: str) -> bool:
        """Verifies a password against a hash. Invalid or empty hashes never match."""
        try:
            return bcrypt.checkpw(password.encode('utf-8'), hashed.encode('utf-8'))
        except (ValueError, TypeError, AttributeError):
            return False

class EnhancedSecurityService(SecurityService):
    @staticmethod
    def sanitize_phone_number(phone: str) -> str:
        """
        Sanitizes a phone number.
        - Returns a normalized E.164-style string (e.g., +919876543210) if valid.
        - Returns an empty string for invalid or empty inputs (instead of raising).
        """
        if not phone or not isinstance(phone, str):
            return ""

        # Remove all characters except digits and leading +
        clean_phone = re.sub(r"[^\d+]", "", phone.strip())

        # Ensure it starts with +
        if not clean_phone.startswith("+"):
            clean_phone = "+" + clean_phone.lstrip("+")

        # Require 10–15 digits after +
        if not re.match(r"^\+\d{10,15}$", clean_phone):
            return ""

        return clean_phone

    @staticmethod
    def validate_message_content(message: str) -> str:
        if len(message) > 4096:
            raise ValueError("Message too long")
        return message.strip()

# --- Rate Limiting ---
class AdvancedRateLimiter:
    def __init__(self, redis_client):
        self.redis = redis_client

    async def check_phone_rate_limit(self, phone_number: str, limit: int = 10, window: int = 60) -> bool:
        if not self.redis:
            return True
        key = f"rate_limit:phone:{phone_number}"
        current_count = await self.redis.incr(key)
        if current_count == 1:
            await self.redis.expire(key, window)
        return current_count <= limit

# Globally accessible instances
rate_limiter = AdvancedRateLimiter(cache_service.redis)
