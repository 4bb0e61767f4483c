"""Tests for the automation engine operations.

Each operation is driven against fake Playwright objects and checked for:
    - Validation failures raising before any browser call
    - Browser failures coming back as ``success=False`` results
    - The session surviving a failed operation
    - Result shapes and metadata
"""

import asyncio
import base64
import logging
from unittest.mock import AsyncMock

import pytest

from chrome_connector.automation.service import SCRIPT_WRAPPER, AutomationEngine, describe_error
from chrome_connector.automation.views import ClipArea
from chrome_connector.exceptions import SecurityValidationError, UnsupportedActionError
from chrome_connector.screenshots.service import ScreenshotStore
from chrome_connector.security.validator import MAX_INPUT_TEXT_LENGTH, SecurityValidator
from chrome_connector.security.views import SecurityPolicy

from conftest import make_fake_locator


def test_describe_error_drops_call_log():
    error = TimeoutError("Timeout 5000ms exceeded.\nCall log:\n  - waiting for locator('#missing')")
    assert describe_error(error) == "Timeout 5000ms exceeded."


def test_describe_error_falls_back_to_type_name():
    assert describe_error(RuntimeError()) == "RuntimeError"


# ===========================================================================
# navigate
# ===========================================================================


class TestNavigate:
    @pytest.mark.asyncio
    async def test_success_reports_title_status_and_session(self, engine):
        result = await engine.navigate("https://example.com", session_id="s1")

        assert result.success is True
        assert result.url == "https://example.com"
        assert result.title == "Example Domain"
        assert result.status_code == 200
        assert result.session_id == "s1"

    @pytest.mark.asyncio
    async def test_passes_wait_condition_and_timeout(self, engine, manager):
        await engine.navigate("https://example.com", session_id="s1", wait_condition="load", timeout_ms=1234)

        page = manager.sessions.get_session("s1").page
        page.goto.assert_awaited_once_with("https://example.com", wait_until="load", timeout=1234)

    @pytest.mark.asyncio
    async def test_logged_url_is_sanitized(self, engine, caplog):
        url = "https://example.com/search?q=<img src=x onerror=alert(1)>"

        with caplog.at_level(logging.INFO, logger="chrome_connector.automation.service"):
            result = await engine.navigate(url, session_id="s1")

        assert result.success is True
        messages = [record.getMessage() for record in caplog.records if "Navigating" in record.getMessage()]
        assert messages
        assert "<" not in messages[0] and "onerror=" not in messages[0]
        assert "example.com/search" in messages[0]

    @pytest.mark.asyncio
    async def test_default_timeout_comes_from_profile(self, engine, manager):
        await engine.navigate("https://example.com", session_id="s1")

        page = manager.sessions.get_session("s1").page
        assert page.goto.call_args.kwargs["timeout"] == 30000

    @pytest.mark.asyncio
    async def test_blocked_url_raises_before_browser_use(self, engine, fake_browser):
        with pytest.raises(SecurityValidationError) as exc:
            await engine.navigate("http://localhost:3000", session_id="s1")

        assert "blocked" in str(exc.value)
        fake_browser.new_context.assert_not_called()

    @pytest.mark.asyncio
    async def test_navigation_failure_is_soft_and_session_survives(self, engine, manager):
        session = await manager.get_or_create_session("s1")
        session.page.goto = AsyncMock(
            side_effect=TimeoutError("Timeout 30000ms exceeded.\nCall log:\n  - navigating to ...")
        )

        result = await engine.navigate("https://slow.example.com", session_id="s1")

        assert result.success is False
        assert result.url == "https://slow.example.com"
        assert result.error == "Timeout 30000ms exceeded."
        assert "s1" in manager.sessions

        later = await engine.extract_content(session_id="s1")
        assert later.success is True

    @pytest.mark.asyncio
    async def test_redirect_to_blocked_host_is_reset(self, engine, manager):
        session = await manager.get_or_create_session("s1")
        page = session.page

        async def goto(target, **kwargs):
            page.url = "about:blank" if target == "about:blank" else "http://127.0.0.1/admin"
            return None

        page.goto = AsyncMock(side_effect=goto)

        result = await engine.navigate("https://redirector.example.com", session_id="s1")

        assert result.success is False
        assert "disallowed" in result.error
        assert page.goto.await_args_list[-1].args == ("about:blank",)
        assert page.url == "about:blank"

    @pytest.mark.asyncio
    async def test_missing_response_gives_no_status(self, engine, manager):
        session = await manager.get_or_create_session("s1")
        page = session.page

        async def goto(target, **kwargs):
            page.url = target
            return None

        page.goto = AsyncMock(side_effect=goto)

        result = await engine.navigate("https://example.com/#anchor", session_id="s1")

        assert result.success is True
        assert result.status_code is None
        assert "statusCode" not in result.to_payload()


# ===========================================================================
# screenshot
# ===========================================================================


class TestScreenshot:
    @pytest.mark.asyncio
    async def test_page_capture_is_base64_with_viewport_metadata(self, engine, manager):
        result = await engine.screenshot(session_id="s1", additional_delay_ms=0)

        assert result.success is True
        assert base64.b64decode(result.data) == b"page-image"
        assert result.metadata.width == 1280
        assert result.metadata.height == 720
        assert result.metadata.format == "png"

        page = manager.sessions.get_session("s1").page
        page.wait_for_load_state.assert_awaited_once_with("networkidle", timeout=5000)
        assert "quality" not in page.screenshot.call_args.kwargs

    @pytest.mark.asyncio
    async def test_jpeg_quality_and_full_page_are_forwarded(self, engine, manager):
        await engine.screenshot(session_id="s1", format="jpeg", quality=60, full_page=True, additional_delay_ms=0)

        kwargs = manager.sessions.get_session("s1").page.screenshot.call_args.kwargs
        assert kwargs == {"type": "jpeg", "quality": 60, "full_page": True}

    @pytest.mark.asyncio
    async def test_clip_sets_metadata_dimensions(self, engine, manager):
        result = await engine.screenshot(
            session_id="s1", clip={"x": 0, "y": 0, "width": 300, "height": 200}, additional_delay_ms=0
        )

        assert (result.metadata.width, result.metadata.height) == (300, 200)
        kwargs = manager.sessions.get_session("s1").page.screenshot.call_args.kwargs
        assert kwargs["clip"] == ClipArea(x=0, y=0, width=300, height=200).model_dump()

    @pytest.mark.asyncio
    async def test_element_capture_uses_bounding_box(self, engine, manager):
        result = await engine.screenshot(session_id="s1", selector="#hero", additional_delay_ms=0)

        assert result.success is True
        assert base64.b64decode(result.data) == b"element-image"
        assert (result.metadata.width, result.metadata.height) == (200, 50)

    @pytest.mark.asyncio
    async def test_element_capture_uses_first_match(self, engine, manager):
        session = await manager.get_or_create_session("s1")
        first = make_fake_locator()
        session.page.locator_mock.first = first

        result = await engine.screenshot(session_id="s1", selector=".card", additional_delay_ms=0)

        assert result.success is True
        first.screenshot.assert_awaited_once()
        session.page.locator_mock.screenshot.assert_not_called()

    @pytest.mark.asyncio
    async def test_zero_wait_timeout_falls_back_to_default(self, engine, manager):
        await engine.screenshot(session_id="s1", wait_timeout_ms=0, additional_delay_ms=0)

        manager.sessions.get_session("s1").page.wait_for_load_state.assert_awaited_once_with(
            "networkidle", timeout=5000
        )

    @pytest.mark.asyncio
    async def test_wait_condition_failure_is_best_effort(self, engine, manager):
        session = await manager.get_or_create_session("s1")
        session.page.wait_for_load_state = AsyncMock(side_effect=TimeoutError("networkidle never reached"))

        result = await engine.screenshot(session_id="s1", additional_delay_ms=0)

        assert result.success is True
        session.page.screenshot.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_wait_can_be_disabled(self, engine, manager):
        await engine.screenshot(session_id="s1", wait_condition=None, additional_delay_ms=0)

        manager.sessions.get_session("s1").page.wait_for_load_state.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_element_is_soft_and_session_survives(self, engine, manager):
        session = await manager.get_or_create_session("s1")
        session.page.locator_mock.screenshot = AsyncMock(
            side_effect=TimeoutError("Timeout 10000ms exceeded.\nCall log:\n  - waiting for locator('#missing')")
        )

        result = await engine.screenshot(session_id="s1", selector="#missing", additional_delay_ms=0)

        assert result.success is False
        assert result.error == "Timeout 10000ms exceeded."
        assert result.data is None

        later = await engine.extract_content(session_id="s1")
        assert later.success is True

    @pytest.mark.asyncio
    async def test_dangerous_selector_raises_before_browser_use(self, engine, fake_browser):
        with pytest.raises(SecurityValidationError):
            await engine.screenshot(session_id="s1", selector="img[onerror='x']")

        fake_browser.new_context.assert_not_called()

    @pytest.mark.asyncio
    async def test_capture_is_saved_when_store_configured(self, manager, validator, tmp_path):
        engine = AutomationEngine(manager, validator, ScreenshotStore(tmp_path), settle_delay_ms=0)

        result = await engine.screenshot(session_id="s1", additional_delay_ms=0)

        saved = list(tmp_path.iterdir())
        assert len(saved) == 1
        assert saved[0].read_bytes() == b"page-image"
        assert result.metadata.path == str(saved[0])


# ===========================================================================
# extract_content
# ===========================================================================


class TestExtractContent:
    @pytest.mark.asyncio
    async def test_text_uses_first_strategy(self, engine):
        result = await engine.extract_content(session_id="s1")

        assert result.success is True
        assert result.content == "Hello world"
        assert result.metadata.length == len("Hello world")
        assert result.metadata.strategy == "body_text_content"
        assert result.metadata.encoding == "utf-8"
        assert result.metadata.timestamp

    @pytest.mark.asyncio
    async def test_text_falls_back_to_inner_text(self, engine, manager):
        session = await manager.get_or_create_session("s1")
        session.page.text_content = AsyncMock(return_value="   ")
        session.page.evaluate = AsyncMock(return_value="Rendered text")

        result = await engine.extract_content(session_id="s1")

        assert result.content == "Rendered text"
        assert result.metadata.strategy == "inner_text"

    @pytest.mark.asyncio
    async def test_html_removes_scripts_by_default(self, engine):
        result = await engine.extract_content(session_id="s1", format="html")

        assert "<script" not in result.content
        assert "<style>" in result.content
        assert result.metadata.strategy == "page_content"

    @pytest.mark.asyncio
    async def test_html_can_remove_styles(self, engine):
        result = await engine.extract_content(session_id="s1", format="html", remove_styles=True)

        assert "<style" not in result.content

    @pytest.mark.asyncio
    async def test_markdown_conversion(self, engine):
        result = await engine.extract_content(session_id="s1", format="markdown")

        assert result.content.startswith("# Title")
        assert "**world**" in result.content
        assert "[the docs](https://example.com/docs)" in result.content
        assert "<" not in result.content and ">" not in result.content
        assert "tracking" not in result.content
        assert "color: red" not in result.content

    @pytest.mark.asyncio
    async def test_selector_extracts_element_text(self, engine, manager):
        result = await engine.extract_content(session_id="s1", selector="#main")

        assert result.content == "Submit"
        assert result.metadata.strategy == "selector"
        manager.sessions.get_session("s1").page.locator.assert_called_with("#main")

    @pytest.mark.asyncio
    async def test_selector_markdown(self, engine):
        result = await engine.extract_content(session_id="s1", selector="#main", format="markdown")

        assert result.content.startswith("## Section")

    @pytest.mark.asyncio
    async def test_selector_html_honours_strip_flags(self, engine, manager):
        session = await manager.get_or_create_session("s1")
        session.page.locator_mock.inner_html = AsyncMock(
            return_value="<p>x</p><script>steal()</script><style>.a{}</style>"
        )

        default = await engine.extract_content(session_id="s1", selector="#main", format="html")
        no_styles = await engine.extract_content(session_id="s1", selector="#main", format="html", remove_styles=True)
        raw = await engine.extract_content(session_id="s1", selector="#main", format="html", remove_scripts=False)

        assert default.content == "<p>x</p><style>.a{}</style>"
        assert no_styles.content == "<p>x</p>"
        assert "<script>steal()</script>" in raw.content

    @pytest.mark.asyncio
    async def test_empty_page_is_success_with_empty_content(self, engine, manager):
        session = await manager.get_or_create_session("s1")
        session.page.text_content = AsyncMock(return_value="")
        session.page.evaluate = AsyncMock(return_value="")

        result = await engine.extract_content(session_id="s1")

        assert result.success is True
        assert result.content == ""
        assert result.metadata.length == 0

    @pytest.mark.asyncio
    async def test_invalid_selector_raises(self, engine, fake_browser):
        with pytest.raises(SecurityValidationError):
            await engine.extract_content(session_id="s1", selector="div{}")

        fake_browser.new_context.assert_not_called()

    @pytest.mark.asyncio
    async def test_readiness_waits_do_not_fail_extraction(self, engine, manager):
        session = await manager.get_or_create_session("s1")
        session.page.wait_for_load_state = AsyncMock(side_effect=TimeoutError("never idle"))
        session.page.wait_for_selector = AsyncMock(side_effect=TimeoutError("no body"))

        result = await engine.extract_content(session_id="s1")

        assert result.success is True
        assert result.content == "Hello world"


# ===========================================================================
# interact_element
# ===========================================================================


class TestInteractElement:
    @pytest.mark.asyncio
    async def test_click_reports_element(self, engine, manager):
        result = await engine.interact_element("s1", "#submit", "click")

        assert result.success is True
        assert result.element.tag_name == "BUTTON"
        assert result.element.text == "Submit"
        assert result.element.value is None
        assert result.to_payload()["element"] == {"tagName": "BUTTON", "text": "Submit"}

        locator = manager.sessions.get_session("s1").page.locator_mock
        locator.click.assert_awaited_once_with(force=False, timeout=5000)

    @pytest.mark.asyncio
    async def test_type_fills_and_reads_value(self, engine, manager):
        session = await manager.get_or_create_session("s1")
        locator = session.page.locator_mock
        locator.input_value = AsyncMock(return_value="hello")

        result = await engine.interact_element("s1", "input[name='q']", "type", value="hello")

        locator.fill.assert_awaited_once_with("hello", force=False, timeout=5000)
        assert result.element.value == "hello"

    @pytest.mark.asyncio
    async def test_type_with_delay_types_sequentially(self, engine, manager):
        await engine.interact_element("s1", "#q", "type", value="abc", delay=50)

        locator = manager.sessions.get_session("s1").page.locator_mock
        locator.clear.assert_awaited_once()
        locator.press_sequentially.assert_awaited_once_with("abc", delay=50, timeout=5000)
        locator.fill.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "action, method",
        [("select", "select_option"), ("hover", "hover"), ("focus", "focus"), ("clear", "clear")],
    )
    async def test_other_actions_dispatch(self, engine, manager, action, method):
        value = "opt-1" if action == "select" else None

        result = await engine.interact_element("s1", "#target", action, value=value)

        assert result.success is True
        getattr(manager.sessions.get_session("s1").page.locator_mock, method).assert_awaited_once()

    @pytest.mark.asyncio
    async def test_overlong_type_value_rejected_before_browser_use(self, engine, fake_browser):
        with pytest.raises(SecurityValidationError):
            await engine.interact_element("s1", "#q", "type", value="x" * (MAX_INPUT_TEXT_LENGTH + 1))

        fake_browser.new_context.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("action", ["type", "select"])
    async def test_value_required_for_type_and_select(self, engine, fake_browser, action):
        with pytest.raises(SecurityValidationError) as exc:
            await engine.interact_element("s1", "#q", action)

        assert exc.value.field == "value"
        fake_browser.new_context.assert_not_called()

    @pytest.mark.asyncio
    async def test_unsupported_action_raises(self, engine, fake_browser):
        with pytest.raises(UnsupportedActionError) as exc:
            await engine.interact_element("s1", "#q", "doubleclick")

        assert str(exc.value) == "Unsupported action: doubleclick"
        fake_browser.new_context.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_element_is_soft_failure(self, engine, manager):
        session = await manager.get_or_create_session("s1")
        locator = session.page.locator_mock
        locator.wait_for = AsyncMock(side_effect=TimeoutError("Timeout 5000ms exceeded."))

        result = await engine.interact_element("s1", "#missing", "click")

        assert result.success is False
        assert result.error == "Timeout 5000ms exceeded."
        locator.click.assert_not_called()
        assert "s1" in manager.sessions

    @pytest.mark.asyncio
    async def test_options_are_forwarded(self, engine, manager):
        await engine.interact_element("s1", "#submit", "click", force=True, timeout_ms=900)

        locator = manager.sessions.get_session("s1").page.locator_mock
        locator.wait_for.assert_awaited_once_with(timeout=900)
        locator.click.assert_awaited_once_with(force=True, timeout=900)
        locator.evaluate.assert_awaited_once_with("el => el.tagName", timeout=900)

    @pytest.mark.asyncio
    async def test_zero_timeout_falls_back_to_default(self, engine, manager):
        await engine.interact_element("s1", "#submit", "click", timeout_ms=0)

        locator = manager.sessions.get_session("s1").page.locator_mock
        locator.wait_for.assert_awaited_once_with(timeout=5000)
        locator.click.assert_awaited_once_with(force=False, timeout=5000)


# ===========================================================================
# execute_script
# ===========================================================================


class TestExecuteScript:
    @pytest.mark.asyncio
    async def test_script_runs_through_wrapper(self, engine, manager):
        session = await manager.get_or_create_session("s1")
        session.page.evaluate = AsyncMock(return_value=3)

        result = await engine.execute_script("return args[0] + args[1]", session_id="s1", args=[1, 2])

        assert result.success is True
        assert result.result == 3
        session.page.evaluate.assert_awaited_once_with(SCRIPT_WRAPPER, ["return args[0] + args[1]", [1, 2], False])

    @pytest.mark.asyncio
    async def test_null_result_is_kept_in_payload(self, engine):
        result = await engine.execute_script("return null", session_id="s1")

        assert result.to_payload() == {"success": True, "sessionId": "s1", "result": None}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("script", ["eval('1')", "return document.cookie", "window.location.href"])
    async def test_denylisted_script_raises_before_browser_use(self, engine, fake_browser, script):
        with pytest.raises(SecurityValidationError):
            await engine.execute_script(script, session_id="s1")

        fake_browser.new_context.assert_not_called()

    @pytest.mark.asyncio
    async def test_page_exception_is_soft_failure(self, engine, manager):
        session = await manager.get_or_create_session("s1")
        session.page.evaluate = AsyncMock(side_effect=Exception("ReferenceError: foo is not defined"))

        result = await engine.execute_script("return foo", session_id="s1")

        assert result.success is False
        assert "ReferenceError" in result.error
        assert "result" not in result.to_payload()

    @pytest.mark.asyncio
    async def test_sandbox_bounds_execution_time(self, manager):
        validator = SecurityValidator(SecurityPolicy(max_execution_time_ms=50))
        engine = AutomationEngine(manager, validator, settle_delay_ms=0)
        session = await manager.get_or_create_session("s1")

        async def hang(*args, **kwargs):
            await asyncio.sleep(5)

        session.page.evaluate = AsyncMock(side_effect=hang)

        result = await engine.execute_script("return 1", session_id="s1")

        assert result.success is False
        assert result.error == "Script execution exceeded time limit of 50ms"


# ===========================================================================
# Session pass-throughs
# ===========================================================================


@pytest.mark.asyncio
async def test_list_and_close_sessions(engine):
    await engine.navigate("https://example.com", session_id="s1")

    assert [s["sessionId"] for s in engine.list_sessions()] == ["s1"]
    assert await engine.close_session("s1") is True
    assert engine.list_sessions() == []
