# /shopgenie/services/credential_service.py

import logging
from typing import List

from pymongo.errors import PyMongoError

from shopgenie.config.retailers import normalize_retailer_key
from shopgenie.services.db_service import db_service
from shopgenie.services.security_service import SecurityService

logger = logging.getLogger(__name__)


class CredentialStorageError(Exception):
    """
    Storage failure in the retailer_credentials collection. The message
    always names the collection so the conversation boundary can recognise
    it and point the user at account setup.
    """


class CredentialService:
    async def save_credentials(self, user_id: str, retailer: str, login_id: str, secret: str, login_type: str) -> None:
        """Stores a retailer login. The secret is bcrypt-hashed, never kept in clear text."""
        document = {
            "user_id": user_id,
            "retailer": normalize_retailer_key(retailer),
            "login_id": login_id,
            "login_type": login_type,
            "secret_hash": SecurityService.hash_password(secret),
        }
        try:
            await db_service.upsert_retailer_credentials(document)
        except PyMongoError as e:
            raise CredentialStorageError(f"retailer_credentials write failed for login_type={login_type}: {e}") from e
        logger.info(f"Saved {login_type} credentials for user {user_id} on {document['retailer']}")

    async def count_credentials(self, user_id: str) -> int:
        try:
            return await db_service.count_retailer_credentials(user_id)
        except PyMongoError as e:
            raise CredentialStorageError(f"retailer_credentials count failed: {e}") from e

    async def list_connected_retailers(self, user_id: str) -> List[str]:
        try:
            credentials = await db_service.find_retailer_credentials(user_id)
        except PyMongoError as e:
            raise CredentialStorageError(f"retailer_credentials read failed: {e}") from e
        return [c["retailer"] for c in credentials]

    async def has_credentials(self, user_id: str, retailer: str) -> bool:
        return normalize_retailer_key(retailer) in await self.list_connected_retailers(user_id)

    async def delete_all_credentials(self, user_id: str) -> int:
        try:
            deleted = await db_service.delete_retailer_credentials(user_id)
        except PyMongoError as e:
            raise CredentialStorageError(f"retailer_credentials delete failed: {e}") from e
        logger.info(f"Deleted {deleted} retailer credentials for user {user_id}")
        return deleted


credential_service = CredentialService()
