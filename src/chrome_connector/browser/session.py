"""Per-identifier browser sessions and the in-memory store that owns them.

A session is one isolated browsing context plus the single page opened in it.
Contexts are never shared between sessions. The store maps session identifiers
to live sessions; it reads the shared browser handle from its manager to spawn
contexts but never mutates it.
"""

from __future__ import annotations

import asyncio
import logging
import random
import string
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from chrome_connector.browser.profile import STEALTH_INIT_SCRIPT, BrowserProfile
from chrome_connector.exceptions import SessionCreationError

if TYPE_CHECKING:
    from playwright.async_api import BrowserContext, Page

    from chrome_connector.browser.manager import BrowserManager

logger = logging.getLogger(__name__)

_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_session_id() -> str:
    """Return an identifier of the form ``session_<epoch-ms>_<9 base36 chars>``."""
    suffix = ''.join(random.choices(_ID_ALPHABET, k=9))
    return f'session_{int(time.time() * 1000)}_{suffix}'


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class BrowserSession:
    """One isolated browsing context and its active page."""

    id: str
    context: BrowserContext
    page: Page
    profile: BrowserProfile
    created_at: datetime = field(default_factory=_utcnow)
    last_activity: datetime = field(default_factory=_utcnow)

    def touch(self) -> None:
        self.last_activity = _utcnow()

    def idle_seconds(self, now: datetime | None = None) -> float:
        return ((now or _utcnow()) - self.last_activity).total_seconds()

    def summary(self) -> dict[str, Any]:
        """JSON-safe description used by the session listing."""
        try:
            current_url = self.page.url
        except Exception:
            current_url = None
        return {
            'sessionId': self.id,
            'createdAt': self.created_at.isoformat(),
            'lastActivity': self.last_activity.isoformat(),
            'currentUrl': current_url,
            'ageMinutes': round((_utcnow() - self.created_at).total_seconds() / 60, 2),
        }


class SessionStore:
    """Registry of live sessions keyed by identifier.

    Creation is serialized by an ``asyncio.Lock`` so that two concurrent first
    references to the same identifier produce one session, not two contexts.
    """

    def __init__(self, manager: BrowserManager, profile: BrowserProfile):
        self._manager = manager
        self.profile = profile
        self._sessions: dict[str, BrowserSession] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    @property
    def ids(self) -> list[str]:
        return list(self._sessions.keys())

    def get_session(self, session_id: str) -> BrowserSession | None:
        """Look up a session without creating one."""
        return self._sessions.get(session_id)

    async def get_or_create_session(self, session_id: str | None = None) -> BrowserSession:
        """Return the session for ``session_id``, creating it when unknown.

        Raises:
            SessionCreationError: If the browsing context cannot be created.
            BrowserInitializationError: If the browser must be launched and fails to.
        """
        if session_id and session_id in self._sessions:
            session = self._sessions[session_id]
            session.touch()
            return session

        async with self._lock:
            # Another task may have created it while we waited for the lock
            if session_id and session_id in self._sessions:
                session = self._sessions[session_id]
                session.touch()
                return session
            return await self._create_session(session_id or generate_session_id())

    async def _create_session(self, session_id: str) -> BrowserSession:
        browser = await self._manager.ensure_browser()
        profile = self.profile.model_copy(deep=True)

        context = None
        try:
            context = await browser.new_context(**profile.context_options())
            if profile.stealth:
                await context.add_init_script(script=STEALTH_INIT_SCRIPT)
            page = await context.new_page()
        except Exception as e:
            logger.error(f'Failed to create session {session_id}: {type(e).__name__}: {e}')
            if context is not None:
                try:
                    await context.close()
                except Exception as close_error:
                    logger.debug(f'Failed to close half-created context for {session_id}: {close_error}')
            raise SessionCreationError(f'Session creation failed: {e}', session_id) from e

        self._attach_page_listeners(session_id, page)

        session = BrowserSession(id=session_id, context=context, page=page, profile=profile)
        self._sessions[session_id] = session
        logger.info(f'Created browser session: {session_id}')
        return session

    @staticmethod
    def _attach_page_listeners(session_id: str, page: Page) -> None:
        page.on('pageerror', lambda error: logger.error(f'Page error in session {session_id}: {error}'))
        page.on('console', lambda msg: logger.debug(f'Console {msg.type} in session {session_id}: {msg.text}'))

    async def close_session(self, session_id: str) -> bool:
        """Close and remove one session. Returns False when the id is unknown."""
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        try:
            await session.context.close()
        except Exception as e:
            logger.warning(f'Error closing context for session {session_id}: {type(e).__name__}: {e}')
        logger.info(f'Closed session: {session_id}')
        return True

    async def close_all(self) -> int:
        """Best-effort close of every session; the map is empty afterwards."""
        closed = 0
        for session_id, session in list(self._sessions.items()):
            try:
                await session.context.close()
                closed += 1
            except Exception as e:
                logger.warning(f'Error closing context for session {session_id}: {type(e).__name__}: {e}')
        self._sessions.clear()
        return closed

    async def close_idle_sessions(self, max_idle_seconds: float) -> list[str]:
        """Close sessions whose last activity is older than ``max_idle_seconds``."""
        now = _utcnow()
        expired = [sid for sid, session in self._sessions.items() if session.idle_seconds(now) > max_idle_seconds]
        for session_id in expired:
            await self.close_session(session_id)
            logger.info(f'Auto-closed idle session {session_id}')
        return expired

    def list_sessions(self) -> list[dict[str, Any]]:
        return [session.summary() for session in self._sessions.values()]
