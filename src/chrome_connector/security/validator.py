"""Security validation for URLs, selectors, scripts and form input.

The validator is the gate every automation operation passes through before the
browser is touched. It holds no state beyond its ``SecurityPolicy`` and every
check is a pure function of its input, so it can be exercised without a browser.

Selector and script checks are denylist pattern matching. They stop naive
injection attempts but are not a sandbox.

Example:
    >>> validator = SecurityValidator(SecurityPolicy())
    >>> validator.validate_url('http://localhost:9999/x').error
    'Domain localhost is blocked'
"""

import logging
import re
from urllib.parse import urlsplit

from chrome_connector.exceptions import SecurityValidationError
from chrome_connector.security.views import SecurityPolicy, ValidationResult

logger = logging.getLogger(__name__)

ALLOWED_SCHEMES = ('http', 'https')

MAX_SELECTOR_LENGTH = 1000
MAX_SCRIPT_LENGTH = 10000
MAX_INPUT_TEXT_LENGTH = 10000

# Alphanumerics plus the CSS punctuation used by ids, classes, attributes and combinators
SELECTOR_CHARSET = re.compile(r'^[a-zA-Z0-9\s\-_\[\]=\'".:>#,()]+$')

DANGEROUS_SELECTOR_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r'javascript:',
        r'expression\(',
        r'script:',
        r'vbscript:',
        r'onload=',
        r'onerror=',
    )
)

DANGEROUS_SCRIPT_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r'eval\s*\(',
        r'Function\s*\(',
        r'setTimeout\s*\(',
        r'setInterval\s*\(',
        r'document\.write',
        r'innerHTML\s*=',
        r'outerHTML\s*=',
        r'location\s*=',
        r'window\s*\.',
        r'document\.cookie',
        r'localStorage',
        r'sessionStorage',
    )
)

_ANGLE_BRACKETS = re.compile(r'[<>]')
_JAVASCRIPT_PROTOCOL = re.compile(r'javascript:', re.IGNORECASE)
_EVENT_HANDLER = re.compile(r'on\w+\s*=', re.IGNORECASE)


class SecurityValidator:
    """Validates operation inputs against a ``SecurityPolicy``."""

    def __init__(self, policy: SecurityPolicy | None = None):
        self.policy = policy or SecurityPolicy()

    def validate_url(self, url: str) -> ValidationResult:
        """Check a URL against the blocked list, the allowed list and the scheme whitelist.

        Args:
            url: Absolute URL to validate.

        Returns:
            Accepting result, or a rejection naming the reason.
        """
        try:
            parts = urlsplit(url)
            hostname = parts.hostname or ''
        except (ValueError, TypeError, AttributeError) as e:
            return ValidationResult.reject(f'Invalid URL format: {e}')

        if not parts.scheme:
            return ValidationResult.reject(f'Invalid URL format: {url!r} has no scheme')
        scheme = parts.scheme.lower()
        if scheme in ALLOWED_SCHEMES and not hostname:
            return ValidationResult.reject(f'Invalid URL format: {url!r} has no host')

        for blocked in self.policy.blocked_domains:
            if blocked and blocked in hostname:
                return ValidationResult.reject(f'Domain {hostname} is blocked')

        allowed_domains = [domain for domain in self.policy.allowed_domains if domain]
        if allowed_domains and not any(domain in hostname for domain in allowed_domains):
            return ValidationResult.reject(f'Domain {hostname} is not in allowed list')

        if scheme not in ALLOWED_SCHEMES:
            return ValidationResult.reject(f'Protocol {scheme}: is not allowed')

        return ValidationResult.accept()

    def validate_selector(self, selector: str) -> ValidationResult:
        """Check a CSS selector's length, character set and dangerous substrings."""
        if not isinstance(selector, str) or not selector:
            return ValidationResult.reject('Invalid selector: selector must be a non-empty string')
        if len(selector) > MAX_SELECTOR_LENGTH:
            return ValidationResult.reject(
                f'Invalid selector: length must be less than or equal to {MAX_SELECTOR_LENGTH} characters'
            )
        if not SELECTOR_CHARSET.match(selector):
            return ValidationResult.reject('Invalid selector: contains characters outside the allowed set')

        for pattern in DANGEROUS_SELECTOR_PATTERNS:
            if pattern.search(selector):
                return ValidationResult.reject('Selector contains potentially dangerous content')

        return ValidationResult.accept()

    def validate_script(self, script: str) -> ValidationResult:
        """Check a script's length and reject denylisted capability patterns."""
        if not isinstance(script, str) or not script:
            return ValidationResult.reject('Invalid script: script must be a non-empty string')
        if len(script) > MAX_SCRIPT_LENGTH:
            return ValidationResult.reject(
                f'Invalid script: length must be less than or equal to {MAX_SCRIPT_LENGTH} characters'
            )

        for pattern in DANGEROUS_SCRIPT_PATTERNS:
            if pattern.search(script):
                logger.debug(f'Script rejected by pattern {pattern.pattern!r}')
                return ValidationResult.reject('Script contains potentially dangerous operations')

        return ValidationResult.accept()

    def validate_input_text(self, text: str) -> ValidationResult:
        """Check form input length. The empty string is valid."""
        if not isinstance(text, str):
            return ValidationResult.reject('Invalid input text: value must be a string')
        if len(text) > MAX_INPUT_TEXT_LENGTH:
            return ValidationResult.reject(
                f'Invalid input text: length must be less than or equal to {MAX_INPUT_TEXT_LENGTH} characters'
            )
        return ValidationResult.accept()

    def sanitize_string(self, text: str) -> str:
        """Strip angle brackets, javascript: and inline event handlers from a string."""
        text = _ANGLE_BRACKETS.sub('', text)
        text = _JAVASCRIPT_PROTOCOL.sub('', text)
        text = _EVENT_HANDLER.sub('', text)
        return text.strip()

    def check_resource_limits(
        self,
        operation: str,
        elapsed_ms: float | None = None,
        memory_mb: float | None = None,
    ) -> ValidationResult:
        """Compare measured elapsed time and memory against the policy bounds.

        Either figure may be omitted; a zero bound disables that check.
        """
        max_time = self.policy.max_execution_time_ms
        if elapsed_ms and max_time and elapsed_ms > max_time:
            return ValidationResult.reject(f'Operation {operation} exceeded time limit of {max_time}ms')

        max_memory = self.policy.max_memory_mb
        if memory_mb and max_memory and memory_mb > max_memory:
            return ValidationResult.reject(f'Operation {operation} exceeded memory limit of {max_memory}MB')

        return ValidationResult.accept()

    @staticmethod
    def require(result: ValidationResult, field: str | None = None) -> None:
        """Raise ``SecurityValidationError`` when ``result`` is a rejection."""
        if not result.valid:
            raise SecurityValidationError(result.error or 'Validation failed', field=field)
