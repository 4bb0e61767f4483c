"""Screenshot storage."""

from chrome_connector.screenshots.service import ScreenshotStore

__all__ = ['ScreenshotStore']
