# /shopgenie/services/db_service.py

import logging
from motor.motor_asyncio import AsyncIOMotorClient
from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError
from datetime import datetime, timezone
from typing import List, Optional, Dict, Any

from shopgenie.config.settings import settings
from shopgenie.utils.metrics import database_operations_counter

logger = logging.getLogger(__name__)

# Constants
DEFAULT_QUERY_LIMIT = 100


class CartStatus:
    ACTIVE = "active"
    HANDED_OFF = "handed_off"
    ABANDONED = "abandoned"


class DatabaseService:
    """
    Manages all interactions with MongoDB: users, sessions, addresses,
    carts, retailer credentials and the message log.

    Reads that can safely degrade go through `_safe_db_operation`. Writes
    that the conversation depends on (sessions, carts, credentials) let
    errors propagate so the caller can apologise instead of silently
    losing state.
    """

    def __init__(self, mongo_uri: str):
        try:
            self.client = AsyncIOMotorClient(
                mongo_uri,
                maxPoolSize=settings.max_pool_size,
                minPoolSize=settings.min_pool_size,
                tls=settings.mongo_ssl,
                serverSelectionTimeoutMS=5000,
                connectTimeoutMS=10000
            )
            self.db = self.client.get_default_database("shopgenie")
            logger.info("MongoDB client initialized successfully.")
        except Exception as e:
            logger.error(f"Error initializing MongoDB client: {e}")
            raise

    # ==================== Helper Methods ====================

    def _serialize_id(self, document: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        """Convert ObjectId to string for use outside the storage layer."""
        if document and "_id" in document:
            document["_id"] = str(document["_id"])
        return document

    def _serialize_ids(self, documents: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return [self._serialize_id(doc) for doc in documents]

    def _object_id(self, value: str) -> Optional[ObjectId]:
        if not value or not isinstance(value, str) or not ObjectId.is_valid(value):
            return None
        return ObjectId(value)

    async def _safe_db_operation(self, operation, default_return: Any = None) -> Any:
        """
        Execute database operation with consistent error handling.

        Args:
            operation: Async callable to execute
            default_return: Value to return on failure

        Returns:
            Operation result or default_return on failure
        """
        try:
            return await operation()
        except Exception as e:
            logger.exception(f"Database operation failed: {type(e).__name__}")
            database_operations_counter.labels(operation="db_error", status="failed").inc()
            return default_return

    def _now_utc(self) -> datetime:
        return datetime.now(timezone.utc)

    # ==================== Index Management ====================

    async def create_indexes(self) -> None:
        """Create all necessary database indexes on startup."""
        indexes = [
            ("users", [("phone_number", 1)], {"unique": True}),
            ("sessions", [("user_id", 1)], {"unique": True}),
            ("addresses", [("user_id", 1), ("is_primary", 1)], {}),
            ("carts", [("user_id", 1), ("status", 1)], {}),
            ("cart_items", [("cart_id", 1)], {}),
            ("retailer_credentials", [("user_id", 1), ("retailer", 1)], {"unique": True}),
            ("message_logs", [("phone", 1), ("timestamp", -1)], {}),
            ("message_logs", [("wamid", 1)], {}),
        ]

        for collection, keys, options in indexes:
            try:
                await self.db[collection].create_index(keys, **options)
                logger.debug(f"Created index on {collection}: {keys}")
            except Exception as e:
                logger.error(f"Failed to create index on {collection} {keys}: {e}")

        logger.info("Database indexes created successfully.")

    async def health_check(self) -> bool:
        try:
            await self.client.admin.command('ping')
            return True
        except Exception as e:
            logger.error(f"MongoDB health check failed: {e}")
            return False

    # ==================== User Operations ====================

    async def get_user_by_phone(self, phone_number: str) -> Optional[Dict[str, Any]]:
        database_operations_counter.labels(operation="get_user", status="attempted").inc()
        user = await self.db.users.find_one({"phone_number": phone_number})
        return self._serialize_id(user)

    async def create_user(self, phone_number: str) -> Dict[str, Any]:
        """
        Insert a user row. A concurrent insert for the same number is
        resolved by re-reading the winner's row.
        """
        document = {
            "phone_number": phone_number,
            "allowed": True,
            "created_at": self._now_utc(),
            "last_interaction": self._now_utc(),
        }
        try:
            result = await self.db.users.insert_one(document)
            document["_id"] = str(result.inserted_id)
            database_operations_counter.labels(operation="create_user", status="success").inc()
            return document
        except DuplicateKeyError:
            logger.warning(f"Duplicate user creation attempt for phone: {phone_number[:5]}***")
            return await self.get_user_by_phone(phone_number)

    async def set_user_allowed(self, user_id: str, allowed: bool) -> bool:
        result = await self.db.users.update_one(
            {"_id": self._object_id(user_id)},
            {"$set": {"allowed": allowed, "updated_at": self._now_utc()}}
        )
        return result.modified_count > 0

    async def touch_user(self, user_id: str) -> None:
        await self._safe_db_operation(
            lambda: self.db.users.update_one(
                {"_id": self._object_id(user_id)},
                {"$set": {"last_interaction": self._now_utc()}}
            )
        )

    # ==================== Session Operations ====================

    async def get_session(self, user_id: str) -> Optional[Dict[str, Any]]:
        return await self.db.sessions.find_one({"user_id": user_id}, {"_id": 0})

    async def save_session(
        self,
        user_id: str,
        blob: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Replace the stored session fields and bump the version.

        With `expected_version` the write only applies when the stored
        version still matches (compare-and-swap). Returns the stored document,
        or None when the version check failed.
        """
        query: Dict[str, Any] = {"user_id": user_id}
        upsert = True
        if expected_version is not None:
            query["version"] = expected_version
            upsert = expected_version == 0

        try:
            document = await self.db.sessions.find_one_and_update(
                query,
                {
                    "$set": {**blob, "updated_at": self._now_utc()},
                    "$inc": {"version": 1},
                },
                upsert=upsert,
                projection={"_id": 0},
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError:
            # Another writer created the row first.
            return None
        database_operations_counter.labels(
            operation="save_session", status="success" if document else "conflict"
        ).inc()
        return document

    # ==================== Address Operations ====================

    async def get_primary_address(self, user_id: str) -> Optional[Dict[str, Any]]:
        address = await self._safe_db_operation(
            lambda: self.db.addresses.find_one({"user_id": user_id, "is_primary": True})
        )
        return self._serialize_id(address)

    async def save_primary_address(self, address: Dict[str, Any]) -> str:
        user_id = address["user_id"]
        await self.db.addresses.update_many(
            {"user_id": user_id, "is_primary": True},
            {"$set": {"is_primary": False}}
        )
        address = {**address, "is_primary": True}
        address.setdefault("created_at", self._now_utc())
        result = await self.db.addresses.insert_one(address)
        return str(result.inserted_id)

    async def set_primary_address_confirmed(self, user_id: str, confirmed: bool) -> bool:
        update: Dict[str, Any] = {"$set": {"confirmed": confirmed}}
        if not confirmed:
            # A rejected address stops being the primary one.
            update["$set"]["is_primary"] = False
        result = await self.db.addresses.update_one({"user_id": user_id, "is_primary": True}, update)
        return result.modified_count > 0

    # ==================== Cart Operations ====================

    async def get_active_cart(self, user_id: str) -> Optional[Dict[str, Any]]:
        cart = await self.db.carts.find_one(
            {"user_id": user_id, "status": CartStatus.ACTIVE},
            sort=[("created_at", -1)]
        )
        return self._serialize_id(cart)

    async def create_cart(self, user_id: str) -> Dict[str, Any]:
        await self.db.carts.update_many(
            {"user_id": user_id, "status": CartStatus.ACTIVE},
            {"$set": {"status": CartStatus.ABANDONED, "updated_at": self._now_utc()}}
        )
        document = {"user_id": user_id, "status": CartStatus.ACTIVE, "created_at": self._now_utc()}
        result = await self.db.carts.insert_one(document)
        document["_id"] = str(result.inserted_id)
        return document

    async def set_cart_status(self, cart_id: str, status: str) -> bool:
        result = await self.db.carts.update_one(
            {"_id": self._object_id(cart_id)},
            {"$set": {"status": status, "updated_at": self._now_utc()}}
        )
        return result.modified_count > 0

    async def get_cart_items(self, cart_id: str) -> List[Dict[str, Any]]:
        cursor = self.db.cart_items.find({"cart_id": cart_id}).sort("created_at", 1)
        items = await cursor.to_list(length=DEFAULT_QUERY_LIMIT)
        return self._serialize_ids(items)

    async def find_cart_item(self, cart_id: str, name: str, unit: str) -> Optional[Dict[str, Any]]:
        item = await self.db.cart_items.find_one({"cart_id": cart_id, "name": name, "unit": unit})
        return self._serialize_id(item)

    async def insert_cart_item(self, item: Dict[str, Any]) -> str:
        item = {**item, "created_at": self._now_utc()}
        result = await self.db.cart_items.insert_one(item)
        return str(result.inserted_id)

    async def increment_cart_item(self, item_id: str, quantity: float) -> None:
        await self.db.cart_items.update_one({"_id": self._object_id(item_id)}, {"$inc": {"quantity": quantity}})

    async def update_cart_item(self, item_id: str, fields: Dict[str, Any]) -> bool:
        result = await self.db.cart_items.update_one({"_id": self._object_id(item_id)}, {"$set": fields})
        return result.modified_count > 0

    async def delete_cart_items(self, cart_id: str, names: Optional[List[str]] = None) -> int:
        query: Dict[str, Any] = {"cart_id": cart_id}
        if names is not None:
            query["name"] = {"$in": names}
        result = await self.db.cart_items.delete_many(query)
        return result.deleted_count

    # ==================== Retailer Credential Operations ====================

    async def upsert_retailer_credentials(self, document: Dict[str, Any]) -> None:
        now = self._now_utc()
        await self.db.retailer_credentials.update_one(
            {"user_id": document["user_id"], "retailer": document["retailer"]},
            {"$set": {**document, "updated_at": now}, "$setOnInsert": {"created_at": now}},
            upsert=True,
        )

    async def count_retailer_credentials(self, user_id: str) -> int:
        return await self.db.retailer_credentials.count_documents({"user_id": user_id})

    async def find_retailer_credentials(self, user_id: str) -> List[Dict[str, Any]]:
        cursor = self.db.retailer_credentials.find(
            {"user_id": user_id}, {"secret_hash": 0}
        ).sort("created_at", 1)
        return self._serialize_ids(await cursor.to_list(length=DEFAULT_QUERY_LIMIT))

    async def delete_retailer_credentials(self, user_id: str) -> int:
        result = await self.db.retailer_credentials.delete_many({"user_id": user_id})
        return result.deleted_count

    # ==================== Message Logging ====================

    async def log_message(self, message_data: Dict[str, Any]) -> None:
        """
        Log inbound or outbound message.

        Args:
            message_data: Message information to log
        """
        message_data.setdefault("timestamp", self._now_utc())
        await self._safe_db_operation(lambda: self.db.message_logs.insert_one(message_data))

    async def update_message_status(self, wamid: str, status: str) -> None:
        """Records a delivery status (sent, delivered, read, failed) reported by WhatsApp."""
        await self._safe_db_operation(
            lambda: self.db.message_logs.update_one(
                {"wamid": wamid},
                {"$set": {"status": status, "status_updated_at": self._now_utc()}}
            )
        )


db_service = DatabaseService(settings.mongo_atlas_uri)
