# /shopgenie/services/session_store.py

import logging
from typing import Any, Dict, Optional

from shopgenie.models.session import EMPTY_SESSION_BLOB, Flow, Session
from shopgenie.services.db_service import db_service
from shopgenie.utils.metrics import flow_transition_counter

logger = logging.getLogger(__name__)

SESSION_FIELDS = frozenset(EMPTY_SESSION_BLOB.keys())


class SessionConflictError(Exception):
    """Raised when a versioned session write finds a newer stored version."""


class SessionStore:
    """
    Narrow get/merge/clear contract over the per-user session blob.

    `merge` is shallow: a given `flow_data` replaces the stored one wholesale.
    Every write bumps the stored version. Passing `expected_version` turns the
    write into a compare-and-swap that raises `SessionConflictError` when
    another writer got there first.
    """

    async def get(self, user_id: str) -> Session:
        document = await self._load(user_id)
        if not document:
            return Session(user_id=user_id)
        return Session.from_blob(
            user_id,
            {key: document.get(key) for key in SESSION_FIELDS},
            version=document.get("version", 0),
            updated_at=document.get("updated_at"),
        )

    async def merge(
        self,
        user_id: str,
        partial: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> Session:
        unknown = set(partial) - SESSION_FIELDS
        if unknown:
            raise ValueError(f"Unknown session fields: {sorted(unknown)}")

        current = await self._load(user_id) or {}
        blob = {key: current.get(key, EMPTY_SESSION_BLOB[key]) for key in SESSION_FIELDS}
        blob.update(partial)

        document = await self._save(user_id, blob, expected_version)
        if document is None:
            raise SessionConflictError(f"Session for user {user_id} changed since version {expected_version}")

        flow_transition_counter.labels(flow=blob.get("flow_kind") or "none", step=blob.get("flow_step") or "none").inc()
        return Session.from_blob(
            user_id,
            {key: document.get(key) for key in SESSION_FIELDS},
            version=document.get("version", 0),
            updated_at=document.get("updated_at"),
        )

    async def set_flow(self, user_id: str, flow: Optional[Flow], expected_version: Optional[int] = None) -> Session:
        """Starts, advances or ends a flow. The whole blob is replaced, never merged field by field."""
        blob = Session(user_id=user_id, flow=flow).to_blob()
        return await self.merge(user_id, blob, expected_version)

    async def clear(self, user_id: str, expected_version: Optional[int] = None) -> Session:
        logger.info(f"Clearing session for user {user_id}")
        return await self.merge(user_id, {**EMPTY_SESSION_BLOB, "flow_data": {}}, expected_version)

    # ==================== Persistence ====================

    async def _load(self, user_id: str) -> Optional[Dict[str, Any]]:
        return await db_service.get_session(user_id)

    async def _save(
        self,
        user_id: str,
        blob: Dict[str, Any],
        expected_version: Optional[int],
    ) -> Optional[Dict[str, Any]]:
        return await db_service.save_session(user_id, blob, expected_version)


session_store = SessionStore()
