"""Pytest configuration and fixtures for the chrome connector test suite.

No test launches a real browser. Playwright's ``Browser``, ``BrowserContext``,
``Page`` and ``Locator`` are replaced with ``MagicMock``/``AsyncMock`` fakes
that are wired into a real ``BrowserManager``, so session bookkeeping, the
validation gate and the failure semantics are exercised for real.

Shared Stubs:
    DummyServer records the handlers registered through the low-level MCP
    ``Server`` decorators so tests can call them directly without a transport.
"""

import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

# Add the src directory to the path so tests can import chrome_connector from a checkout
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from chrome_connector.automation.service import AutomationEngine  # noqa: E402
from chrome_connector.browser.manager import BrowserManager  # noqa: E402
from chrome_connector.browser.profile import BrowserProfile  # noqa: E402
from chrome_connector.config import ConnectorConfig  # noqa: E402
from chrome_connector.mcp import server as mcp_server_module  # noqa: E402
from chrome_connector.security.validator import SecurityValidator  # noqa: E402
from chrome_connector.security.views import SecurityPolicy  # noqa: E402

SAMPLE_HTML = (
    "<html><head><meta charset=\"utf-8\"><style>body { color: red; }</style></head>"
    "<body><h1>Title</h1><p>Hello <strong>world</strong>, see "
    '<a href="https://example.com/docs">the docs</a>.</p>'
    "<script>console.log('tracking');</script></body></html>"
)


# ---------------------------------------------------------------------------
# Shared dummy MCP SDK stub
# ---------------------------------------------------------------------------


class DummyServer:
    """Minimal stub for mcp.server.Server that keeps registered handlers."""

    def __init__(self, name):
        self.name = name
        self.handlers = {}

    def _register(self, kind):
        def decorator(func):
            self.handlers[kind] = func
            return func

        return decorator

    def list_tools(self):
        return self._register("list_tools")

    def list_prompts(self):
        return self._register("list_prompts")

    def get_prompt(self):
        return self._register("get_prompt")

    def call_tool(self):
        return self._register("call_tool")

    def get_capabilities(self, **kwargs):
        return {}

    async def run(self, *args, **kwargs):
        return None


# ---------------------------------------------------------------------------
# Fake Playwright objects
# ---------------------------------------------------------------------------


def make_fake_response(status=200):
    response = MagicMock()
    response.status = status
    return response


def make_fake_locator(tag_name="BUTTON", text="Submit"):
    """Create a Locator-like mock. ``.first`` returns the locator itself."""
    locator = MagicMock()
    locator.first = locator
    locator.wait_for = AsyncMock()
    locator.click = AsyncMock()
    locator.fill = AsyncMock()
    locator.clear = AsyncMock()
    locator.press_sequentially = AsyncMock()
    locator.select_option = AsyncMock()
    locator.hover = AsyncMock()
    locator.focus = AsyncMock()
    locator.evaluate = AsyncMock(return_value=tag_name)
    locator.text_content = AsyncMock(return_value=text)
    locator.input_value = AsyncMock(side_effect=Exception("Not an <input>, <textarea> or <select> element"))
    locator.inner_html = AsyncMock(return_value="<h2>Section</h2><p>Body</p>")
    locator.screenshot = AsyncMock(return_value=b"element-image")
    locator.bounding_box = AsyncMock(return_value={"x": 10, "y": 20, "width": 200, "height": 50})
    locator.count = AsyncMock(return_value=1)
    return locator


def make_fake_page(url="about:blank", title="Example Domain", html=SAMPLE_HTML, body_text="Hello world"):
    """Create a Page-like mock whose ``goto`` updates ``page.url``."""
    page = MagicMock()
    page.url = url
    page.locator_mock = make_fake_locator()

    async def goto(target, **kwargs):
        page.url = target
        return make_fake_response(200)

    page.goto = AsyncMock(side_effect=goto)
    page.title = AsyncMock(return_value=title)
    page.screenshot = AsyncMock(return_value=b"page-image")
    page.wait_for_load_state = AsyncMock()
    page.wait_for_selector = AsyncMock()
    page.text_content = AsyncMock(return_value=body_text)
    page.content = AsyncMock(return_value=html)
    page.evaluate = AsyncMock(return_value=None)
    page.locator = MagicMock(return_value=page.locator_mock)
    page.on = MagicMock()
    return page


def make_fake_context(page=None):
    context = MagicMock()
    context.page = page or make_fake_page()
    context.new_page = AsyncMock(return_value=context.page)
    context.add_init_script = AsyncMock()
    context.close = AsyncMock()
    return context


def make_fake_browser(page_factory=None):
    """Create a Browser-like mock. Every ``new_context`` call yields a fresh context."""
    browser = MagicMock()
    browser.contexts_created = []

    async def new_context(**kwargs):
        context = make_fake_context(page_factory() if page_factory else None)
        context.options = kwargs
        browser.contexts_created.append(context)
        return context

    browser.new_context = AsyncMock(side_effect=new_context)
    browser.close = AsyncMock()
    return browser


# ---------------------------------------------------------------------------
# Shared fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def fake_browser():
    return make_fake_browser()


@pytest.fixture()
def manager(fake_browser):
    """A BrowserManager whose shared browser is the fake, as if initialize() had run."""
    manager = BrowserManager(BrowserProfile())
    manager._browser = fake_browser
    return manager


@pytest.fixture()
def validator():
    return SecurityValidator(SecurityPolicy())


@pytest.fixture()
def engine(manager, validator):
    return AutomationEngine(manager, validator, settle_delay_ms=0)


@pytest.fixture()
def connector_config():
    return ConnectorConfig(screenshot_dir=None)


@pytest.fixture()
def mcp_server(monkeypatch, connector_config, fake_browser):
    """Create a ConnectorServer with a dummy MCP Server and the fake browser."""
    monkeypatch.setattr(mcp_server_module, "Server", DummyServer)
    server = mcp_server_module.ConnectorServer(connector_config)
    server.manager._browser = fake_browser
    server.engine.settle_delay_ms = 0
    return server
