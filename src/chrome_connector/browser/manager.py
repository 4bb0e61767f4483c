"""Lifecycle controller for the shared Chromium process.

The manager is the only component that creates or destroys the browser handle.
Sessions are spawned from it by the ``SessionStore`` the manager owns.
"""

import logging

from playwright.async_api import Browser, Playwright, async_playwright

from chrome_connector.browser.profile import BrowserProfile
from chrome_connector.browser.session import BrowserSession, SessionStore
from chrome_connector.exceptions import BrowserInitializationError, BrowserNotInitializedError

logger = logging.getLogger(__name__)


class BrowserManager:
    """Owns the shared browser process and the session store built on top of it."""

    def __init__(self, profile: BrowserProfile | None = None):
        """Initialize BrowserManager.

        Args:
            profile: Launch flags and context options. Defaults to ``BrowserProfile()``.
        """
        self.profile = profile or BrowserProfile()
        self.sessions = SessionStore(self, self.profile)
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None

    @property
    def is_initialized(self) -> bool:
        return self._browser is not None

    @property
    def browser(self) -> Browser:
        """The shared browser handle.

        Raises:
            BrowserNotInitializedError: If initialize() has not completed.
        """
        if self._browser is None:
            raise BrowserNotInitializedError()
        return self._browser

    async def initialize(self) -> None:
        """Start Playwright and launch Chromium.

        Raises:
            BrowserInitializationError: If the browser process cannot be launched.
        """
        if self._browser is not None:
            logger.warning('Browser already initialized')
            return

        logger.info('Initializing Chrome browser...')
        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(**self.profile.launch_options())
        except Exception as e:
            logger.error(f'Failed to initialize browser: {type(e).__name__}: {e}')
            await self._stop_playwright()
            raise BrowserInitializationError(f'Browser initialization failed: {e}') from e

        logger.info('Chrome browser initialized successfully')

    async def ensure_browser(self) -> Browser:
        """Return the browser handle, launching it on first use."""
        if self._browser is None:
            await self.initialize()
        return self.browser

    async def get_or_create_session(self, session_id: str | None = None) -> BrowserSession:
        return await self.sessions.get_or_create_session(session_id)

    async def close_session(self, session_id: str) -> bool:
        return await self.sessions.close_session(session_id)

    async def shutdown(self) -> None:
        """Close every session, then the browser, then Playwright.

        Each step is best-effort: a failure is logged and the remaining steps still run.
        """
        logger.info('Cleaning up browser sessions...')
        try:
            await self.sessions.close_all()
        except Exception as e:
            logger.error(f'Error closing sessions during shutdown: {type(e).__name__}: {e}')

        if self._browser is not None:
            try:
                await self._browser.close()
            except Exception as e:
                logger.error(f'Error closing browser: {type(e).__name__}: {e}')
            finally:
                self._browser = None

        await self._stop_playwright()
        logger.info('Browser cleanup completed')

    async def _stop_playwright(self) -> None:
        if self._playwright is None:
            return
        try:
            await self._playwright.stop()
        except Exception as e:
            logger.error(f'Error stopping Playwright: {type(e).__name__}: {e}')
        finally:
            self._playwright = None

    async def __aenter__(self):
        """Async context manager entry."""
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.shutdown()
