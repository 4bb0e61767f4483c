"""Session-scoped browser automation engine exposed over the Model Context Protocol."""

__version__ = '1.0.0'

__all__ = [
    'AutomationEngine',
    'BrowserManager',
    'BrowserProfile',
    'SecurityPolicy',
    'SecurityValidator',
    '__version__',
]


def __getattr__(name: str):
    """Lazy imports so ``chrome_connector.__version__`` does not load Playwright."""
    if name == 'AutomationEngine':
        from chrome_connector.automation.service import AutomationEngine

        return AutomationEngine
    if name == 'BrowserManager':
        from chrome_connector.browser.manager import BrowserManager

        return BrowserManager
    if name == 'BrowserProfile':
        from chrome_connector.browser.profile import BrowserProfile

        return BrowserProfile
    if name == 'SecurityPolicy':
        from chrome_connector.security.views import SecurityPolicy

        return SecurityPolicy
    if name == 'SecurityValidator':
        from chrome_connector.security.validator import SecurityValidator

        return SecurityValidator
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
