"""Security policy and input validation."""

from chrome_connector.security.validator import SecurityValidator
from chrome_connector.security.views import DEFAULT_BLOCKED_DOMAINS, SecurityPolicy, ValidationResult

__all__ = [
    'DEFAULT_BLOCKED_DOMAINS',
    'SecurityPolicy',
    'SecurityValidator',
    'ValidationResult',
]
