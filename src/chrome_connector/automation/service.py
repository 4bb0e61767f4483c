"""Automation engine: the five browser operations behind the protocol surface.

Every operation follows the same shape: validate inputs, resolve the session,
run the browser action with its resilience strategy, shape a result.

Failure semantics:
    - Validation failures raise ``SecurityValidationError`` before the browser is touched.
    - Browser/environment failures return a result with ``success=False`` and a plain
      message; the session stays usable for the next call.
    - ``BrowserInitializationError`` and ``SessionCreationError`` propagate.

Operations on the same session are not serialized here. Callers that issue
concurrent operations against one session must order them themselves.
"""

import asyncio
import logging
import time
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import psutil

from chrome_connector.automation.extraction import (
    diagnose_page,
    extract_html,
    extract_text,
    html_to_markdown,
    strip_tags,
)
from chrome_connector.automation.views import (
    INTERACTION_ACTIONS,
    ClipArea,
    ContentMetadata,
    ContentResult,
    ElementInfo,
    InteractionResult,
    NavigationResult,
    ScreenshotMetadata,
    ScreenshotResult,
    ScriptResult,
)
from chrome_connector.browser.manager import BrowserManager
from chrome_connector.browser.session import BrowserSession
from chrome_connector.browser.waits import SETTLE_DELAY_MS, sleep_ms, wait_best_effort, wait_for_page_ready, wait_required
from chrome_connector.exceptions import SecurityValidationError, UnsupportedActionError
from chrome_connector.screenshots.service import ScreenshotStore
from chrome_connector.security.validator import SecurityValidator

if TYPE_CHECKING:
    from playwright.async_api import Locator

logger = logging.getLogger(__name__)

ELEMENT_SCREENSHOT_TIMEOUT_MS = 10000
DEFAULT_WAIT_TIMEOUT_MS = 5000
DEFAULT_INTERACTION_TIMEOUT_MS = 5000
SELECTOR_WAIT_TIMEOUT_MS = 10000
VALUE_READ_TIMEOUT_MS = 1000

# The user script becomes the body of a function receiving ``args``
SCRIPT_WRAPPER = """async ([script, args, awaitPromise]) => {
    const fn = new Function('args', script);
    const value = fn(args);
    if (value && typeof value.then === 'function') {
        return awaitPromise ? await value : null;
    }
    return value;
}"""


def describe_error(error: BaseException) -> str:
    """Plain one-message description of an exception, without Playwright's call log."""
    message = getattr(error, 'message', None) or str(error)
    message = message.split('\nCall log:')[0].strip()
    return message or type(error).__name__


def current_memory_mb() -> float:
    return psutil.Process().memory_info().rss / (1024 * 1024)


class AutomationEngine:
    """Runs navigate, screenshot, extract_content, interact_element and execute_script.

    One instance is constructed at process start and handed to the protocol layer.
    """

    def __init__(
        self,
        manager: BrowserManager,
        validator: SecurityValidator,
        screenshot_store: ScreenshotStore | None = None,
        settle_delay_ms: float = SETTLE_DELAY_MS,
    ):
        self.manager = manager
        self.validator = validator
        self.screenshot_store = screenshot_store
        self.settle_delay_ms = settle_delay_ms

    # ------------------------------------------------------------------
    # Lifecycle pass-throughs
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        await self.manager.initialize()

    async def shutdown(self) -> None:
        await self.manager.shutdown()

    async def close_session(self, session_id: str) -> bool:
        return await self.manager.close_session(session_id)

    def list_sessions(self) -> list[dict[str, Any]]:
        return self.manager.sessions.list_sessions()

    async def _resolve(self, session_id: str | None) -> BrowserSession:
        return await self.manager.get_or_create_session(session_id)

    def _check_limits(self, operation: str, started: float) -> None:
        elapsed_ms = (time.monotonic() - started) * 1000
        try:
            memory_mb = current_memory_mb()
        except psutil.Error as e:
            logger.debug(f'Could not read process memory: {e}')
            memory_mb = None
        verdict = self.validator.check_resource_limits(operation, elapsed_ms=elapsed_ms, memory_mb=memory_mb)
        if not verdict:
            logger.warning(verdict.error)

    # ------------------------------------------------------------------
    # navigate
    # ------------------------------------------------------------------

    async def navigate(
        self,
        url: str,
        session_id: str | None = None,
        wait_condition: str = 'domcontentloaded',
        timeout_ms: int | None = None,
    ) -> NavigationResult:
        """Navigate a session's page to ``url``.

        Raises:
            SecurityValidationError: If the URL is rejected by the policy.
        """
        self.validator.require(self.validator.validate_url(url), field='url')
        session = await self._resolve(session_id)
        page = session.page
        timeout = timeout_ms or session.profile.timeout_ms
        shown = self.validator.sanitize_string(url)
        started = time.monotonic()

        try:
            logger.info(f'Navigating session {session.id} to {shown}')
            response = await page.goto(url, wait_until=wait_condition, timeout=timeout)
            final_url = page.url

            if final_url != url:
                redirect_check = self.validator.validate_url(final_url)
                if not redirect_check:
                    logger.warning(
                        f'Navigation to {shown} ended on disallowed URL '
                        f'{self.validator.sanitize_string(final_url)}: {redirect_check.error}'
                    )
                    await wait_best_effort(lambda: page.goto('about:blank'), 'Reset to about:blank')
                    return NavigationResult(
                        success=False,
                        url=url,
                        session_id=session.id,
                        error=f'Navigation redirected to disallowed URL: {redirect_check.error}',
                    )

            title = await page.title()
            return NavigationResult(
                success=True,
                url=final_url,
                title=title,
                status_code=response.status if response is not None else None,
                session_id=session.id,
            )
        except Exception as e:
            logger.error(f'Navigation failed for {shown}: {type(e).__name__}: {e}', exc_info=True)
            return NavigationResult(success=False, url=url, session_id=session.id, error=describe_error(e))
        finally:
            self._check_limits('navigate', started)

    # ------------------------------------------------------------------
    # screenshot
    # ------------------------------------------------------------------

    async def screenshot(
        self,
        session_id: str | None = None,
        selector: str | None = None,
        format: str = 'png',
        full_page: bool = False,
        quality: int | None = None,
        clip: ClipArea | dict | None = None,
        wait_condition: str | None = 'networkidle',
        wait_timeout_ms: int = DEFAULT_WAIT_TIMEOUT_MS,
        additional_delay_ms: int = 1000,
    ) -> ScreenshotResult:
        """Capture the page, or one element of it, as base64.

        A page that never reaches ``wait_condition`` is captured anyway.

        Raises:
            SecurityValidationError: If ``selector`` is rejected by the policy.
        """
        if selector:
            self.validator.require(self.validator.validate_selector(selector), field='selector')
        if isinstance(clip, dict):
            clip = ClipArea.model_validate(clip)

        session = await self._resolve(session_id)
        page = session.page
        # Playwright treats 0 as no deadline
        wait_timeout_ms = wait_timeout_ms or DEFAULT_WAIT_TIMEOUT_MS
        started = time.monotonic()

        try:
            if wait_condition:
                logger.info(f'Waiting for {wait_condition} before screenshot...')
                await wait_best_effort(
                    lambda: page.wait_for_load_state(wait_condition, timeout=wait_timeout_ms),
                    f"Wait condition '{wait_condition}'",
                )
            await sleep_ms(additional_delay_ms)

            options: dict[str, Any] = {'type': format}
            if quality is not None and format == 'jpeg':
                options['quality'] = quality

            width: float = session.profile.viewport.width
            height: float = session.profile.viewport.height

            if selector:
                locator = page.locator(selector).first
                image = await locator.screenshot(timeout=ELEMENT_SCREENSHOT_TIMEOUT_MS, **options)
                box = await locator.bounding_box()
                if box:
                    width, height = box['width'], box['height']
            else:
                options['full_page'] = full_page
                if clip is not None:
                    options['clip'] = clip.model_dump()
                    width, height = clip.width, clip.height
                image = await page.screenshot(**options)

            path = None
            if self.screenshot_store is not None:
                path = str(await self.screenshot_store.save_async(image, format))

            return ScreenshotResult(
                success=True,
                session_id=session.id,
                data=ScreenshotStore.encode_bytes(image),
                metadata=ScreenshotMetadata(width=width, height=height, format=format, path=path),
            )
        except Exception as e:
            logger.error(f'Screenshot failed: {type(e).__name__}: {e}', exc_info=True)
            return ScreenshotResult(success=False, session_id=session.id, error=describe_error(e))
        finally:
            self._check_limits('screenshot', started)

    # ------------------------------------------------------------------
    # extract_content
    # ------------------------------------------------------------------

    async def extract_content(
        self,
        session_id: str | None = None,
        format: str = 'text',
        selector: str | None = None,
        remove_scripts: bool = True,
        remove_styles: bool = False,
    ) -> ContentResult:
        """Extract the page (or one element) as text, HTML or markdown.

        An empty extraction is still a success; the page state is logged for diagnosis.

        Raises:
            SecurityValidationError: If ``selector`` is rejected by the policy.
        """
        if selector:
            self.validator.require(self.validator.validate_selector(selector), field='selector')

        session = await self._resolve(session_id)
        page = session.page
        started = time.monotonic()

        try:
            logger.info(f'Starting content extraction for {page.url}')
            await wait_for_page_ready(page, self.settle_delay_ms)

            if selector:
                content = await self._extract_from_element(
                    page.locator(selector), selector, format, remove_scripts, remove_styles
                )
                strategy = 'selector'
            elif format == 'html':
                html, strategy = await extract_html(page)
                content = strip_tags(html, remove_scripts=remove_scripts, remove_styles=remove_styles)
            elif format == 'markdown':
                html, strategy = await extract_html(page)
                content = html_to_markdown(strip_tags(html, remove_scripts=True, remove_styles=True))
            else:
                content, strategy = await extract_text(page)

            logger.info(f'Content extraction completed. Length: {len(content)} characters')
            if not content:
                logger.warning('Content extraction returned empty result - debugging page state')
                await diagnose_page(page)

            return ContentResult(
                success=True,
                session_id=session.id,
                content=content,
                metadata=ContentMetadata(
                    length=len(content),
                    url=page.url,
                    timestamp=datetime.now(timezone.utc).isoformat(),
                    strategy=strategy,
                ),
            )
        except Exception as e:
            logger.error(f'Content extraction failed: {type(e).__name__}: {e}', exc_info=True)
            return ContentResult(success=False, session_id=session.id, error=describe_error(e))
        finally:
            self._check_limits('extract_content', started)

    async def _extract_from_element(
        self, locator: 'Locator', selector: str, format: str, remove_scripts: bool, remove_styles: bool
    ) -> str:
        shown = self.validator.sanitize_string(selector)
        logger.info(f'Extracting content from selector: {shown}')
        await wait_best_effort(lambda: locator.first.wait_for(timeout=SELECTOR_WAIT_TIMEOUT_MS), f'Selector {shown}')
        element = locator.first
        if format == 'html':
            html = await element.inner_html(timeout=SELECTOR_WAIT_TIMEOUT_MS)
            return strip_tags(html, remove_scripts=remove_scripts, remove_styles=remove_styles)
        if format == 'markdown':
            html = await element.inner_html(timeout=SELECTOR_WAIT_TIMEOUT_MS)
            return html_to_markdown(strip_tags(html, remove_scripts=True, remove_styles=True))
        return await element.text_content(timeout=SELECTOR_WAIT_TIMEOUT_MS) or ''

    # ------------------------------------------------------------------
    # interact_element
    # ------------------------------------------------------------------

    async def interact_element(
        self,
        session_id: str | None,
        selector: str,
        action: str,
        value: str | None = None,
        delay: float = 0,
        force: bool = False,
        timeout_ms: int = DEFAULT_INTERACTION_TIMEOUT_MS,
    ) -> InteractionResult:
        """Click, type, select, hover, focus or clear one element.

        Raises:
            SecurityValidationError: If the selector or typed text is rejected, or a
                ``type``/``select`` action has no value.
            UnsupportedActionError: If ``action`` is not a known interaction.
        """
        self.validator.require(self.validator.validate_selector(selector), field='selector')
        if action not in INTERACTION_ACTIONS:
            raise UnsupportedActionError(action)
        if action in ('type', 'select') and value is None:
            raise SecurityValidationError(f"Action '{action}' requires a value", field='value')
        if action == 'type':
            self.validator.require(self.validator.validate_input_text(value), field='value')

        session = await self._resolve(session_id)
        timeout_ms = timeout_ms or DEFAULT_INTERACTION_TIMEOUT_MS
        started = time.monotonic()

        try:
            locator = session.page.locator(selector).first
            await wait_required(
                lambda: locator.wait_for(timeout=timeout_ms), f'Element {self.validator.sanitize_string(selector)}'
            )
            await self._dispatch(locator, action, value, delay=delay, force=force, timeout_ms=timeout_ms)

            tag_name = await locator.evaluate('el => el.tagName', timeout=timeout_ms)
            text = await locator.text_content(timeout=timeout_ms) or ''
            try:
                current_value = await locator.input_value(timeout=VALUE_READ_TIMEOUT_MS)
            except Exception:
                current_value = None

            return InteractionResult(
                success=True,
                session_id=session.id,
                element=ElementInfo(tag_name=tag_name, text=text, value=current_value),
            )
        except Exception as e:
            logger.error(f'Element interaction failed: {type(e).__name__}: {e}', exc_info=True)
            return InteractionResult(success=False, session_id=session.id, error=describe_error(e))
        finally:
            self._check_limits('interact_element', started)

    @staticmethod
    async def _dispatch(
        locator: 'Locator',
        action: str,
        value: str | None,
        delay: float,
        force: bool,
        timeout_ms: int,
    ) -> None:
        if action == 'click':
            await locator.click(force=force, timeout=timeout_ms)
        elif action == 'type':
            if delay:
                await locator.clear(timeout=timeout_ms)
                await locator.press_sequentially(value, delay=delay, timeout=timeout_ms)
            else:
                await locator.fill(value, force=force, timeout=timeout_ms)
        elif action == 'select':
            await locator.select_option(value, force=force, timeout=timeout_ms)
        elif action == 'hover':
            await locator.hover(force=force, timeout=timeout_ms)
        elif action == 'focus':
            await locator.focus(timeout=timeout_ms)
        elif action == 'clear':
            await locator.clear(force=force, timeout=timeout_ms)
        else:
            raise UnsupportedActionError(action)

    # ------------------------------------------------------------------
    # execute_script
    # ------------------------------------------------------------------

    async def execute_script(
        self,
        script: str,
        session_id: str | None = None,
        args: Sequence[Any] = (),
        await_promise: bool = False,
    ) -> ScriptResult:
        """Run ``script`` as the body of ``function(args)`` in the page.

        Raises:
            SecurityValidationError: If the script matches a denylisted pattern.
        """
        self.validator.require(self.validator.validate_script(script), field='script')
        session = await self._resolve(session_id)
        policy = self.validator.policy
        started = time.monotonic()

        try:
            evaluation = session.page.evaluate(SCRIPT_WRAPPER, [script, list(args), await_promise])
            if policy.enable_sandbox and policy.max_execution_time_ms:
                result = await asyncio.wait_for(evaluation, timeout=policy.max_execution_time_ms / 1000)
            else:
                result = await evaluation
            return ScriptResult(success=True, session_id=session.id, result=result)
        except asyncio.TimeoutError:
            message = f'Script execution exceeded time limit of {policy.max_execution_time_ms}ms'
            logger.error(message)
            return ScriptResult(success=False, session_id=session.id, error=message)
        except Exception as e:
            logger.error(f'Script execution failed: {type(e).__name__}: {e}', exc_info=True)
            return ScriptResult(success=False, session_id=session.id, error=describe_error(e))
        finally:
            self._check_limits('execute_script', started)
