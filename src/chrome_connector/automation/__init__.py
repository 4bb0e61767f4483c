"""Automation engine and its request/result models."""

from chrome_connector.automation.service import AutomationEngine
from chrome_connector.automation.views import (
    ContentResult,
    InteractionResult,
    NavigationResult,
    ScreenshotResult,
    ScriptResult,
)

__all__ = [
    'AutomationEngine',
    'ContentResult',
    'InteractionResult',
    'NavigationResult',
    'ScreenshotResult',
    'ScriptResult',
]
