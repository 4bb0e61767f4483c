"""Browser lifecycle, sessions and wait helpers."""

from chrome_connector.browser.manager import BrowserManager
from chrome_connector.browser.profile import BrowserProfile, ViewportSize
from chrome_connector.browser.session import BrowserSession, SessionStore, generate_session_id

__all__ = [
    'BrowserManager',
    'BrowserProfile',
    'BrowserSession',
    'SessionStore',
    'ViewportSize',
    'generate_session_id',
]
