"""Exceptions raised by the chrome connector engine.

Two families exist:

- ``SecurityValidationError`` and subclasses: raised before any browser action
  when an input is rejected by the security policy. Always preventable by the caller.
- ``BrowserError`` and subclasses: raised when the shared browser process or a
  session context cannot be brought up. The engine is unusable until re-initialized.

Recoverable environment failures (navigation timeouts, missing elements, script
exceptions) are never raised past the engine; they are returned as results with
``success=False``.
"""


class ConnectorError(Exception):
    """Base exception for all connector errors."""
    pass


class SecurityValidationError(ConnectorError):
    """Exception raised when an input is rejected by the security policy."""

    def __init__(self, reason: str, field: str | None = None):
        super().__init__(reason)
        self.reason = reason
        self.field = field

    def __str__(self) -> str:
        return self.reason


class UnsupportedActionError(SecurityValidationError):
    """Exception raised when an element interaction names an unknown action."""

    def __init__(self, action: str):
        super().__init__(f'Unsupported action: {action}', field='action')
        self.action = action


class BrowserError(ConnectorError):
    """Base exception for browser process and session failures."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class BrowserInitializationError(BrowserError):
    """Exception raised when the shared browser process fails to launch."""
    pass


class BrowserNotInitializedError(BrowserError):
    """Exception raised when the browser handle is used before initialize()."""

    def __init__(self, message: str = 'Browser not initialized. Call initialize() first.'):
        super().__init__(message)


class SessionCreationError(BrowserError):
    """Exception raised when a browsing context cannot be created for a session."""

    def __init__(self, message: str, session_id: str):
        super().__init__(message)
        self.session_id = session_id

    def __str__(self) -> str:
        return f'{self.message} (session: {self.session_id})'
