"""Security policy value objects."""

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_BLOCKED_DOMAINS: tuple[str, ...] = (
    'localhost',
    '127.0.0.1',
    '0.0.0.0',
    'file://',
    'ftp://',
)


class SecurityPolicy(BaseModel):
    """Immutable security policy applied to every browser operation.

    An empty ``allowed_domains`` means every domain that is not blocked is permitted.
    The block list is always consulted before the allow list.
    """

    model_config = ConfigDict(frozen=True, extra='forbid')

    allowed_domains: tuple[str, ...] = Field(
        default=(), description='Hostname substrings that are allowed. Empty allows all non-blocked hosts.'
    )
    blocked_domains: tuple[str, ...] = Field(
        default=DEFAULT_BLOCKED_DOMAINS, description='Hostname substrings that are always rejected.'
    )
    max_execution_time_ms: int = Field(default=30000, ge=0, description='Per-operation time limit in milliseconds')
    max_memory_mb: int = Field(default=512, ge=0, description='Process memory limit in megabytes')
    enable_sandbox: bool = Field(default=True, description='Bound script evaluation by max_execution_time_ms')


class ValidationResult(BaseModel):
    """Outcome of a single validation check."""

    model_config = ConfigDict(frozen=True)

    valid: bool
    error: str | None = None

    def __bool__(self) -> bool:
        return self.valid

    @classmethod
    def accept(cls) -> 'ValidationResult':
        return cls(valid=True)

    @classmethod
    def reject(cls, error: str) -> 'ValidationResult':
        return cls(valid=False, error=error)
