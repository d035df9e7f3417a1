"""Per-user session and customer bookkeeping"""

from typing import Optional

import structlog

from chatorder.bot.errors import StoreError
from chatorder.bot.store import Store
from chatorder.schemas.session import SessionState, Stage, dump_cart

logger = structlog.get_logger()

PATCHABLE_FIELDS = {"stage", "cart_items", "customer_name", "customer_address"}


class SessionManager:
    """Loads, creates and writes bot sessions for Messenger users"""

    def __init__(self, store: Store, default_customer_name: str):
        self.store = store
        self.default_customer_name = default_customer_name

    async def ensure_customer(self, psid: str) -> None:
        """Create the customer record on first contact; failures never block ordering"""
        try:
            existing = await self.store.get_customer(psid)
            if existing is None:
                await self.store.create_customer(psid, self.default_customer_name)
                logger.info("Customer created", psid=psid)
        except StoreError as e:
            logger.warning("Could not ensure customer", psid=psid, error=e.reason)

    async def get_or_create_session(self, psid: str) -> SessionState:
        try:
            session = await self.store.get_session(psid)
        except StoreError as e:
            logger.warning("Session lookup failed, creating", psid=psid, error=e.reason)
            session = None

        if session is not None:
            return session

        try:
            session = await self.store.create_session(psid)
        except StoreError as e:
            # Another delivery for the same user may have created the row first
            logger.warning("Session create failed, re-reading", psid=psid, error=e.reason)
            session = await self.store.get_session(psid)
            if session is None:
                raise
            return session

        logger.info("Session created", psid=psid)
        return session

    async def refresh(self, psid: str) -> Optional[SessionState]:
        return await self.store.get_session(psid)

    async def persist(
        self,
        session: SessionState,
        force: bool = False,
        **patch,
    ) -> SessionState:
        """
        Write a partial update and return the updated snapshot.

        The write is conditional on the snapshot's version unless force is set;
        a concurrent change raises StaleSessionError.
        """
        unknown = set(patch) - PATCHABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot patch session fields: {sorted(unknown)}")

        if "stage" in patch:
            patch["stage"] = Stage(patch["stage"])

        values = dict(patch)
        if "stage" in values:
            values["stage"] = values["stage"].value
        if "cart_items" in values:
            values["cart_items"] = dump_cart(values["cart_items"])

        await self.store.update_session(
            session.messenger_psid,
            values,
            expected_version=None if force else session.version,
        )

        updated = session.model_copy(update={**patch, "version": session.version + 1})
        logger.debug(
            "Session persisted",
            psid=session.messenger_psid,
            fields=sorted(patch),
            stage=updated.stage.value,
        )
        return updated
