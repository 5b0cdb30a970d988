import itertools
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient
from dotenv import load_dotenv
from unittest.mock import AsyncMock

# Load environment variables FIRST, before any app imports, so that
# pydantic-settings finds the required variables when settings are built.
load_dotenv(dotenv_path=Path(__file__).resolve().parent.parent / ".env.test")

from shopgenie.main import app  # noqa: E402
from shopgenie.services import security_service  # noqa: E402
from shopgenie.services.ai_service import ai_service  # noqa: E402
from shopgenie.services.cache_service import cache_service  # noqa: E402
from shopgenie.services.db_service import db_service  # noqa: E402
from shopgenie.services.geocoding_service import geocoding_service  # noqa: E402
from shopgenie.services.session_store import SessionStore, session_store  # noqa: E402
from shopgenie.services.whatsapp_service import whatsapp_service  # noqa: E402


class InMemorySessionStore(SessionStore):
    """SessionStore backed by a dict, with the same versioning rules as the MongoDB adapter."""

    def __init__(self):
        self.rows: Dict[str, Dict[str, Any]] = {}

    async def _load(self, user_id: str) -> Optional[Dict[str, Any]]:
        row = self.rows.get(user_id)
        return dict(row) if row else None

    async def _save(self, user_id: str, blob: Dict[str, Any], expected_version: Optional[int]) -> Optional[Dict[str, Any]]:
        current = self.rows.get(user_id)
        current_version = current["version"] if current else 0
        if expected_version is not None and expected_version != current_version:
            return None
        row = {**blob, "version": current_version + 1, "updated_at": datetime.now(timezone.utc)}
        self.rows[user_id] = row
        return dict(row)


class FakeDatabase:
    """In-memory stand-in for the DatabaseService methods the conversation touches."""

    PATCHED_METHODS = (
        "get_user_by_phone", "create_user", "set_user_allowed", "touch_user",
        "get_primary_address", "save_primary_address", "set_primary_address_confirmed",
        "get_active_cart", "create_cart", "set_cart_status", "get_cart_items", "find_cart_item",
        "insert_cart_item", "increment_cart_item", "update_cart_item", "delete_cart_items",
        "upsert_retailer_credentials", "count_retailer_credentials", "find_retailer_credentials",
        "delete_retailer_credentials", "log_message", "update_message_status",
    )

    def __init__(self):
        self._ids = itertools.count(1)
        self.users: Dict[str, Dict[str, Any]] = {}
        self.addresses: List[Dict[str, Any]] = []
        self.carts: List[Dict[str, Any]] = []
        self.cart_items: List[Dict[str, Any]] = []
        self.credentials: Dict[tuple, Dict[str, Any]] = {}
        self.messages: List[Dict[str, Any]] = []

    def _new_id(self) -> str:
        return f"{next(self._ids):024x}"

    # users
    async def get_user_by_phone(self, phone_number):
        user = self.users.get(phone_number)
        return dict(user) if user else None

    async def create_user(self, phone_number):
        user = {"_id": self._new_id(), "phone_number": phone_number, "allowed": True}
        self.users[phone_number] = user
        return dict(user)

    async def set_user_allowed(self, user_id, allowed):
        for user in self.users.values():
            if user["_id"] == user_id:
                user["allowed"] = allowed
                return True
        return False

    async def touch_user(self, user_id):
        return None

    # addresses
    async def get_primary_address(self, user_id):
        for address in self.addresses:
            if address["user_id"] == user_id and address["is_primary"]:
                return dict(address)
        return None

    async def save_primary_address(self, address):
        for existing in self.addresses:
            if existing["user_id"] == address["user_id"]:
                existing["is_primary"] = False
        document = {**address, "_id": self._new_id(), "is_primary": True}
        self.addresses.append(document)
        return document["_id"]

    async def set_primary_address_confirmed(self, user_id, confirmed):
        for address in self.addresses:
            if address["user_id"] == user_id and address["is_primary"]:
                address["confirmed"] = confirmed
                if not confirmed:
                    address["is_primary"] = False
                return True
        return False

    # carts
    async def get_active_cart(self, user_id):
        active = [c for c in self.carts if c["user_id"] == user_id and c["status"] == "active"]
        return dict(active[-1]) if active else None

    async def create_cart(self, user_id):
        for cart in self.carts:
            if cart["user_id"] == user_id and cart["status"] == "active":
                cart["status"] = "abandoned"
        cart = {"_id": self._new_id(), "user_id": user_id, "status": "active"}
        self.carts.append(cart)
        return dict(cart)

    async def set_cart_status(self, cart_id, status):
        for cart in self.carts:
            if cart["_id"] == cart_id:
                cart["status"] = status
                return True
        return False

    async def get_cart_items(self, cart_id):
        return [dict(item) for item in self.cart_items if item["cart_id"] == cart_id]

    async def find_cart_item(self, cart_id, name, unit):
        for item in self.cart_items:
            if item["cart_id"] == cart_id and item["name"] == name and item["unit"] == unit:
                return dict(item)
        return None

    async def insert_cart_item(self, item):
        document = {**item, "_id": self._new_id()}
        self.cart_items.append(document)
        return document["_id"]

    async def increment_cart_item(self, item_id, quantity):
        for item in self.cart_items:
            if item["_id"] == item_id:
                item["quantity"] += quantity

    async def update_cart_item(self, item_id, fields):
        for item in self.cart_items:
            if item["_id"] == item_id:
                item.update(fields)
                return True
        return False

    async def delete_cart_items(self, cart_id, names=None):
        keep = [i for i in self.cart_items if i["cart_id"] != cart_id or (names is not None and i["name"] not in names)]
        deleted = len(self.cart_items) - len(keep)
        self.cart_items = keep
        return deleted

    # retailer credentials
    async def upsert_retailer_credentials(self, document):
        self.credentials[(document["user_id"], document["retailer"])] = dict(document)

    async def count_retailer_credentials(self, user_id):
        return sum(1 for (owner, _) in self.credentials if owner == user_id)

    async def find_retailer_credentials(self, user_id):
        return [
            {k: v for k, v in doc.items() if k != "secret_hash"}
            for (owner, _), doc in self.credentials.items() if owner == user_id
        ]

    async def delete_retailer_credentials(self, user_id):
        keys = [key for key in self.credentials if key[0] == user_id]
        for key in keys:
            del self.credentials[key]
        return len(keys)

    # message log
    async def log_message(self, message_data):
        self.messages.append(dict(message_data))

    async def update_message_status(self, wamid, status):
        for message in self.messages:
            if message.get("wamid") == wamid:
                message["status"] = status

    # helpers for tests
    def user_id(self, phone_number: str) -> str:
        return self.users[phone_number]["_id"]

    def connect(self, user_id: str, retailer: str) -> None:
        self.credentials[(user_id, retailer)] = {
            "user_id": user_id, "retailer": retailer, "login_id": "seeded", "login_type": "phone",
            "secret_hash": "seeded",
        }


@pytest.fixture(autouse=True)
def offline_clients(mocker):
    """
    Keeps every test away from Redis, OpenAI and Google Maps: the cache and
    rate limiter see no Redis, the classifier uses the rule-based path and
    geocoding echoes the user's text.
    """
    mocker.patch.object(cache_service, "redis", None)
    mocker.patch.object(security_service.rate_limiter, "redis", None)
    mocker.patch.object(whatsapp_service.circuit_breaker, "redis", None)
    mocker.patch.object(ai_service, "openai_client", None)
    mocker.patch.object(geocoding_service, "api_key", None)


@pytest.fixture
def sessions(mocker):
    store = InMemorySessionStore()
    mocker.patch.object(session_store, "_load", new=store._load)
    mocker.patch.object(session_store, "_save", new=store._save)
    return store


@pytest.fixture
def fake_db(mocker):
    fake = FakeDatabase()
    for name in FakeDatabase.PATCHED_METHODS:
        mocker.patch.object(db_service, name, new=getattr(fake, name))
    return fake


@pytest.fixture
def mock_whatsapp(mocker):
    """Replaces the outbound WhatsApp calls made while processing a webhook message."""
    send = mocker.patch.object(whatsapp_service, "send_message", new_callable=AsyncMock, return_value="wamid.out")
    mocker.patch.object(whatsapp_service, "mark_as_read", new_callable=AsyncMock)
    return send


@pytest.fixture(scope="function")
def test_client(mocker):
    """
    Provides a TestClient for API integration tests. Index creation is
    skipped so the lifespan never needs a running MongoDB.
    """
    mocker.patch.object(db_service, "create_indexes", new_callable=AsyncMock)

    # The app's lifespan (startup/shutdown events) is managed by the TestClient
    with TestClient(app) as client:
        yield client
