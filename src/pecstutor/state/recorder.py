"""Best-effort persistence of session activity.

Writes go through ``ActivityStore`` in a worker thread. Activities that fail
to write are buffered per session and flushed as one batch when the session
ends. Store failures
are logged and reported as ``False``/``None``, never raised, so the live
engine state is unaffected by persistence trouble.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from typing import Optional

from pecstutor.state.activity import ActivityRecord, ActivityStore, SessionSummary

logger = logging.getLogger(__name__)

_STORE_ERRORS = (sqlite3.Error, OSError)


class SessionRecorder:
    def __init__(self, store: ActivityStore):
        self.store = store
        self._pending: dict[str, list[ActivityRecord]] = {}

    def pending(self, session_id: str) -> list[ActivityRecord]:
        """Activities recorded for a session but not yet written."""
        return list(self._pending.get(session_id, []))

    async def start_session(
        self,
        child_id: str,
        phase: int,
        facilitator_id: Optional[str] = None,
        environment: str = "home",
    ) -> Optional[str]:
        try:
            row = await asyncio.to_thread(
                self.store.create_session, child_id, phase, facilitator_id, environment
            )
        except _STORE_ERRORS as e:
            logger.warning("could not create session for child %s: %s", child_id, e)
            return None

        self._pending[row.id] = []
        logger.info("session %s started (child=%s, phase=%d)", row.id, child_id, phase)
        return row.id

    async def record_activity(self, session_id: str, activity: ActivityRecord) -> bool:
        if not session_id:
            return False

        try:
            await asyncio.to_thread(self.store.record_activity, session_id, activity)
        except _STORE_ERRORS as e:
            pending = self._pending.setdefault(session_id, [])
            pending.append(activity)
            logger.warning(
                "activity for session %s left pending (%d queued): %s",
                session_id, len(pending), e,
            )
            return False
        return True

    async def end_session(self, session_id: str, summary: SessionSummary) -> bool:
        """Flush pending activities, then close the session.

        A failed flush keeps the buffer and leaves the session open so the
        caller can retry.
        """
        if not session_id:
            return False

        pending = self._pending.get(session_id, [])
        if pending:
            try:
                await asyncio.to_thread(
                    self.store.record_activities, session_id, list(pending)
                )
            except _STORE_ERRORS as e:
                logger.warning(
                    "flush of %d pending activities for session %s failed: %s",
                    len(pending), session_id, e,
                )
                return False
            logger.info("flushed %d pending activities for session %s",
                        len(pending), session_id)
            pending.clear()

        try:
            row = await asyncio.to_thread(self.store.end_session, session_id, summary)
        except _STORE_ERRORS as e:
            logger.warning("could not end session %s: %s", session_id, e)
            return False

        self._pending.pop(session_id, None)
        return row is not None
