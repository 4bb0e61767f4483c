"""Request and result models for the automation operations.

Requests accept the camelCase names used on the wire, their snake_case
equivalents, and the legacy aliases older clients send (``timeout``,
``waitTimeout``, ``additionalDelay``, nested ``options``). Results serialize
to camelCase and omit unset fields.
"""

from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

WaitCondition = Literal['load', 'domcontentloaded', 'networkidle']
ImageFormat = Literal['png', 'jpeg']
ContentFormat = Literal['text', 'html', 'markdown']
InteractionAction = Literal['click', 'type', 'select', 'hover', 'focus', 'clear']

INTERACTION_ACTIONS: tuple[str, ...] = ('click', 'type', 'select', 'hover', 'focus', 'clear')


class _RequestModel(BaseModel):
    model_config = ConfigDict(extra='ignore', populate_by_name=True)

    session_id: str | None = Field(default=None, validation_alias=AliasChoices('sessionId', 'session_id'))


class NavigateRequest(_RequestModel):
    url: str
    wait_condition: WaitCondition = Field(
        default='domcontentloaded', validation_alias=AliasChoices('waitCondition', 'wait_condition', 'waitUntil')
    )
    timeout_ms: int | None = Field(
        default=None, ge=0, validation_alias=AliasChoices('timeoutMs', 'timeout_ms', 'timeout')
    )


class ClipArea(BaseModel):
    x: float
    y: float
    width: float = Field(gt=0, validation_alias=AliasChoices('width', 'w'))
    height: float = Field(gt=0, validation_alias=AliasChoices('height', 'h'))


class ScreenshotRequest(_RequestModel):
    selector: str | None = None
    full_page: bool = Field(default=False, validation_alias=AliasChoices('fullPage', 'full_page'))
    format: ImageFormat = 'png'
    quality: int | None = Field(default=None, ge=0, le=100)
    clip: ClipArea | None = None
    wait_condition: WaitCondition | None = Field(
        default='networkidle', validation_alias=AliasChoices('waitCondition', 'wait_condition')
    )
    wait_timeout_ms: int = Field(
        default=5000, ge=0, validation_alias=AliasChoices('waitTimeoutMs', 'wait_timeout_ms', 'waitTimeout')
    )
    additional_delay_ms: int = Field(
        default=1000,
        ge=0,
        validation_alias=AliasChoices('additionalDelayMs', 'additional_delay_ms', 'additionalDelay'),
    )


class ExtractContentRequest(_RequestModel):
    format: ContentFormat = 'text'
    selector: str | None = None
    remove_scripts: bool = Field(default=True, validation_alias=AliasChoices('removeScripts', 'remove_scripts'))
    remove_styles: bool = Field(default=False, validation_alias=AliasChoices('removeStyles', 'remove_styles'))


class InteractElementRequest(_RequestModel):
    selector: str
    # Kept as a plain string so unknown actions reach the engine's own rejection
    action: str
    value: str | None = None
    delay: float = Field(default=0, ge=0)
    force: bool = False
    timeout_ms: int = Field(default=5000, ge=0, validation_alias=AliasChoices('timeoutMs', 'timeout_ms', 'timeout'))

    @model_validator(mode='before')
    @classmethod
    def _flatten_options(cls, data: Any) -> Any:
        """Lift the legacy nested ``options`` bundle to top-level fields."""
        if isinstance(data, dict) and isinstance(data.get('options'), dict):
            data = {**data['options'], **{k: v for k, v in data.items() if k != 'options'}}
        return data


class ExecuteScriptRequest(_RequestModel):
    script: str
    args: list[Any] = Field(default_factory=list)
    await_promise: bool = Field(default=False, validation_alias=AliasChoices('awaitPromise', 'await_promise'))


class CloseSessionRequest(BaseModel):
    model_config = ConfigDict(extra='ignore')

    session_id: str = Field(validation_alias=AliasChoices('sessionId', 'session_id'))


class OperationResult(BaseModel):
    """Common shape of every operation result."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool
    session_id: str | None = None
    error: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class NavigationResult(OperationResult):
    url: str
    title: str | None = None
    status_code: int | None = None


class ScreenshotMetadata(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    width: float
    height: float
    format: str
    path: str | None = None


class ScreenshotResult(OperationResult):
    data: str | None = None
    metadata: ScreenshotMetadata | None = None


class ContentMetadata(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    length: int
    encoding: str = 'utf-8'
    url: str | None = None
    timestamp: str | None = None
    strategy: str | None = None


class ContentResult(OperationResult):
    content: str | None = None
    metadata: ContentMetadata | None = None


class ElementInfo(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    tag_name: str
    text: str
    value: str | None = None


class InteractionResult(OperationResult):
    element: ElementInfo | None = None


class ScriptResult(OperationResult):
    result: Any = None

    def to_payload(self) -> dict[str, Any]:
        # A null script result is meaningful, so it is kept even when None
        payload = super().to_payload()
        if self.success:
            payload['result'] = self.result
        return payload
