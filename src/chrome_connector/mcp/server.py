"""MCP server for the chrome connector: exposes session-scoped browser automation over stdio.

Tools:
- navigate, screenshot, extract_content, interact_element, execute_script
- list_sessions, close_session

Usage:
    python -m chrome_connector.mcp

Or as an MCP server in Claude Desktop or other MCP clients:
    {
        "mcpServers": {
            "chrome-connector": {
                "command": "chrome-connector",
                "args": ["serve"],
                "env": {
                    "ALLOWED_DOMAINS": "example.com,wikipedia.org"
                }
            }
        }
    }
"""

import asyncio
import json
import logging
import sys
import time
from typing import Any

import mcp.server.stdio
import mcp.types as types
from dotenv import load_dotenv
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions
from pydantic import ValidationError

from chrome_connector.automation.service import AutomationEngine
from chrome_connector.automation.views import (
    CloseSessionRequest,
    ExecuteScriptRequest,
    ExtractContentRequest,
    InteractElementRequest,
    NavigateRequest,
    ScreenshotRequest,
)
from chrome_connector.browser.manager import BrowserManager
from chrome_connector.config import ConnectorConfig, load_connector_config
from chrome_connector.exceptions import ConnectorError
from chrome_connector.logging_config import setup_logging
from chrome_connector.screenshots.service import ScreenshotStore
from chrome_connector.security.validator import SecurityValidator

logger = logging.getLogger(__name__)

IDLE_CHECK_INTERVAL_SECONDS = 120

_SESSION_ID_PROPERTY = {
    'type': 'string',
    'description': 'Optional browser session ID. If not provided, a new session will be created',
}

TOOL_SCHEMAS: list[dict[str, Any]] = [
    {
        'name': 'navigate',
        'description': 'Navigate to a specific URL in the browser',
        'inputSchema': {
            'type': 'object',
            'properties': {
                'url': {'type': 'string', 'description': 'The URL to navigate to'},
                'sessionId': _SESSION_ID_PROPERTY,
                'waitCondition': {
                    'type': 'string',
                    'enum': ['load', 'domcontentloaded', 'networkidle'],
                    'description': 'Wait condition for page load completion',
                    'default': 'domcontentloaded',
                },
                'timeout': {'type': 'number', 'description': 'Navigation timeout in milliseconds', 'default': 30000},
            },
            'required': ['url'],
        },
    },
    {
        'name': 'screenshot',
        'description': 'Capture a screenshot of the current page or a specific element',
        'inputSchema': {
            'type': 'object',
            'properties': {
                'sessionId': _SESSION_ID_PROPERTY,
                'selector': {'type': 'string', 'description': 'CSS selector of the element to capture'},
                'fullPage': {'type': 'boolean', 'description': 'Capture the full scrollable page', 'default': False},
                'format': {'type': 'string', 'enum': ['png', 'jpeg'], 'default': 'png'},
                'quality': {
                    'type': 'number',
                    'minimum': 0,
                    'maximum': 100,
                    'description': 'JPEG quality (ignored for png)',
                },
                'clip': {
                    'type': 'object',
                    'properties': {
                        'x': {'type': 'number'},
                        'y': {'type': 'number'},
                        'width': {'type': 'number'},
                        'height': {'type': 'number'},
                    },
                    'required': ['x', 'y', 'width', 'height'],
                },
                'waitCondition': {
                    'type': 'string',
                    'enum': ['load', 'domcontentloaded', 'networkidle'],
                    'description': 'Load state to wait for before capturing (best effort)',
                    'default': 'networkidle',
                },
                'waitTimeout': {'type': 'number', 'description': 'Wait condition timeout in ms', 'default': 5000},
                'additionalDelay': {
                    'type': 'number',
                    'description': 'Extra delay before capturing in ms',
                    'default': 1000,
                },
            },
        },
    },
    {
        'name': 'extract_content',
        'description': 'Extract text, HTML or markdown content from the current page',
        'inputSchema': {
            'type': 'object',
            'properties': {
                'sessionId': _SESSION_ID_PROPERTY,
                'format': {'type': 'string', 'enum': ['text', 'html', 'markdown'], 'default': 'text'},
                'selector': {'type': 'string', 'description': 'CSS selector to extract from instead of the page'},
                'removeScripts': {'type': 'boolean', 'default': True},
                'removeStyles': {'type': 'boolean', 'default': False},
            },
        },
    },
    {
        'name': 'interact_element',
        'description': 'Click, type, select, hover, focus or clear an element',
        'inputSchema': {
            'type': 'object',
            'properties': {
                'sessionId': _SESSION_ID_PROPERTY,
                'selector': {'type': 'string', 'description': 'CSS selector of the target element'},
                'action': {'type': 'string', 'enum': ['click', 'type', 'select', 'hover', 'focus', 'clear']},
                'value': {'type': 'string', 'description': 'Text to type or option value to select'},
                'options': {
                    'type': 'object',
                    'properties': {
                        'delay': {'type': 'number', 'default': 0},
                        'force': {'type': 'boolean', 'default': False},
                        'timeout': {'type': 'number', 'default': 5000},
                    },
                },
            },
            'required': ['selector', 'action'],
        },
    },
    {
        'name': 'execute_script',
        'description': 'Execute JavaScript in the page. The script is the body of a function receiving `args`.',
        'inputSchema': {
            'type': 'object',
            'properties': {
                'sessionId': _SESSION_ID_PROPERTY,
                'script': {'type': 'string', 'description': 'JavaScript function body to run'},
                'args': {'type': 'array', 'items': {}, 'default': []},
                'awaitPromise': {'type': 'boolean', 'default': False},
            },
            'required': ['script'],
        },
    },
    {
        'name': 'list_sessions',
        'description': 'List open browser sessions',
        'inputSchema': {'type': 'object', 'properties': {}},
    },
    {
        'name': 'close_session',
        'description': 'Close a browser session and release its context',
        'inputSchema': {
            'type': 'object',
            'properties': {'sessionId': {'type': 'string', 'description': 'Session to close'}},
            'required': ['sessionId'],
        },
    },
]

PROMPTS: dict[str, str] = {
    'browser_automation_help': 'Get help with browser automation using this MCP connector',
    'security_guidelines': 'Security guidelines and best practices for browser automation',
}

BROWSER_AUTOMATION_HELP = """# Browser Automation with MCP Chrome Connector

This MCP server drives a shared Chromium instance. Available tools:

## Navigation
- **navigate**: Navigate to URLs with wait conditions and security validation
- Parameters: url (required), sessionId, waitCondition, timeout

## Visual Capture
- **screenshot**: Capture screenshots of pages or specific elements
- Parameters: sessionId, selector, fullPage, format (png/jpeg), quality, clip, waitCondition, waitTimeout, additionalDelay

## Content Extraction
- **extract_content**: Extract page content as text, HTML, or markdown
- Parameters: sessionId, format (text/html/markdown), selector, removeScripts, removeStyles

## Element Interaction
- **interact_element**: Click, type, select, hover, focus, or clear elements
- Parameters: sessionId, selector (required), action (required), value, options

## Script Execution
- **execute_script**: Run JavaScript code in the browser context
- Parameters: sessionId, script (required), args, awaitPromise

## Session Management
- Pass the sessionId returned by a previous call to reuse its cookies, storage and page
- Omitting sessionId creates a fresh session
- list_sessions and close_session inspect and release sessions

## Usage Tips
1. Start with navigation to establish a browser session
2. Use screenshots to visually understand page state
3. Extract content to analyze page information
4. Use element interaction for form filling and clicking
5. Execute scripts for complex page manipulation

Example workflow:
1. navigate -> screenshot -> extract_content -> interact_element -> screenshot"""


def render_security_guidelines(config: ConnectorConfig) -> str:
    security = config.security
    allowed = ', '.join(security.allowed_domains) or 'all non-blocked domains'
    blocked = ', '.join(security.blocked_domains) or 'none'
    return f"""# Security Guidelines for Browser Automation

## Domain Security
- Allowed domains: {allowed}
- Blocked domains: {blocked}
- Only http and https URLs are navigable

## Script Execution Security
- All JavaScript is validated for dangerous patterns
- Blocked functions: eval, Function constructor, setTimeout, setInterval
- Blocked DOM manipulation: innerHTML, outerHTML, document.write
- Blocked storage access: localStorage, sessionStorage, document.cookie

## Input Validation
- CSS selectors are validated against a character whitelist and script-like content
- Typed text is limited in length
- URL validation prevents protocol-based attacks

## Resource Limits
- Execution timeout: {security.max_execution_time_ms}ms (configurable)
- Memory limit: {security.max_memory_mb}MB (configurable)
- Sandbox mode: {'enabled' if security.enable_sandbox else 'disabled'}

## Environment Variables
- ALLOWED_DOMAINS: Comma-separated list of allowed domains
- BLOCKED_DOMAINS: Comma-separated list of blocked domains
- MAX_EXECUTION_TIME: Maximum script execution time (ms)
- MAX_MEMORY_USAGE: Maximum memory usage (MB)
- ENABLE_SANDBOX: Enable/disable sandbox mode (true/false)
- BROWSER_HEADLESS: Run browser in headless mode (true/false)

## Error Handling
- All tools return structured JSON responses with a success flag
- Rejected inputs are reported without touching the browser
- Browser failures leave the session usable for the next call"""


class ConnectorServer:
    """MCP server wrapping one automation engine."""

    def __init__(self, config: ConnectorConfig | None = None):
        self.config = config or load_connector_config()
        self.server = Server(self.config.server.name)

        self.validator = SecurityValidator(self.config.security)
        self.manager = BrowserManager(self.config.browser)
        self.screenshot_store = (
            ScreenshotStore(self.config.screenshot_dir) if self.config.screenshot_dir is not None else None
        )
        self.engine = AutomationEngine(self.manager, self.validator, self.screenshot_store)

        self.session_timeout_minutes = self.config.session_idle_timeout_minutes
        self._cleanup_task: asyncio.Task | None = None

        self._setup_handlers()

    def _setup_handlers(self):
        """Setup MCP server handlers."""

        @self.server.list_tools()
        async def handle_list_tools() -> list[types.Tool]:
            return [types.Tool(**schema) for schema in TOOL_SCHEMAS]

        @self.server.list_prompts()
        async def handle_list_prompts() -> list[types.Prompt]:
            return [types.Prompt(name=name, description=description) for name, description in PROMPTS.items()]

        @self.server.get_prompt()
        async def handle_get_prompt(name: str, arguments: dict[str, str] | None) -> types.GetPromptResult:
            text = self.render_prompt(name)
            return types.GetPromptResult(
                description=PROMPTS[name],
                messages=[types.PromptMessage(role='user', content=types.TextContent(type='text', text=text))],
            )

        @self.server.call_tool()
        async def handle_call_tool(name: str, arguments: dict[str, Any] | None) -> list[types.TextContent]:
            return [types.TextContent(type='text', text=await self.call_tool(name, arguments or {}))]

    def render_prompt(self, name: str) -> str:
        if name == 'browser_automation_help':
            return BROWSER_AUTOMATION_HELP
        if name == 'security_guidelines':
            return render_security_guidelines(self.config)
        raise ValueError(f'Unknown prompt: {name}')

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> str:
        """Run a tool and render its result as JSON text. Raised errors become ``success: false``."""
        start_time = time.time()
        logger.info(f'Executing tool: {name}')
        try:
            payload = await self._execute_tool(name, arguments)
        except (ConnectorError, ValidationError, ValueError) as e:
            logger.error(f'Tool {name} failed: {type(e).__name__}: {e}')
            payload = {'success': False, 'error': str(e)}
        except Exception as e:
            logger.error(f'Tool execution failed: {e}', exc_info=True)
            payload = {'success': False, 'error': str(e) or type(e).__name__}

        duration_ms = (time.time() - start_time) * 1000
        logger.info(f'Tool {name} completed in {duration_ms:.0f}ms (success={payload.get("success")})')
        return json.dumps(payload, indent=2, default=str)

    async def _execute_tool(self, tool_name: str, arguments: dict[str, Any]) -> dict[str, Any]:
        if tool_name == 'navigate':
            request = NavigateRequest.model_validate(arguments)
            result = await self.engine.navigate(
                request.url,
                session_id=request.session_id,
                wait_condition=request.wait_condition,
                timeout_ms=request.timeout_ms,
            )

        elif tool_name == 'screenshot':
            request = ScreenshotRequest.model_validate(arguments)
            result = await self.engine.screenshot(
                session_id=request.session_id,
                selector=request.selector,
                format=request.format,
                full_page=request.full_page,
                quality=request.quality,
                clip=request.clip,
                wait_condition=request.wait_condition,
                wait_timeout_ms=request.wait_timeout_ms,
                additional_delay_ms=request.additional_delay_ms,
            )

        elif tool_name == 'extract_content':
            request = ExtractContentRequest.model_validate(arguments)
            result = await self.engine.extract_content(
                session_id=request.session_id,
                format=request.format,
                selector=request.selector,
                remove_scripts=request.remove_scripts,
                remove_styles=request.remove_styles,
            )

        elif tool_name == 'interact_element':
            request = InteractElementRequest.model_validate(arguments)
            result = await self.engine.interact_element(
                request.session_id,
                request.selector,
                request.action,
                value=request.value,
                delay=request.delay,
                force=request.force,
                timeout_ms=request.timeout_ms,
            )

        elif tool_name == 'execute_script':
            request = ExecuteScriptRequest.model_validate(arguments)
            result = await self.engine.execute_script(
                request.script,
                session_id=request.session_id,
                args=request.args,
                await_promise=request.await_promise,
            )

        elif tool_name == 'list_sessions':
            sessions = self.engine.list_sessions()
            return {'success': True, 'count': len(sessions), 'sessions': sessions}

        elif tool_name == 'close_session':
            request = CloseSessionRequest.model_validate(arguments)
            closed = await self.engine.close_session(request.session_id)
            if not closed:
                return {'success': False, 'sessionId': request.session_id, 'error': 'Session not found'}
            return {'success': True, 'sessionId': request.session_id}

        else:
            raise ValueError(f"Tool '{tool_name}' not found")

        return result.to_payload()

    async def _cleanup_expired_sessions(self) -> None:
        """Close sessions idle for longer than the configured timeout."""
        closed = await self.manager.sessions.close_idle_sessions(self.session_timeout_minutes * 60)
        for session_id in closed:
            logger.info(f'Auto-closed expired session {session_id}')

    async def _start_cleanup_task(self) -> None:
        """Start the background idle-session cleanup task, if eviction is enabled."""
        if not self.session_timeout_minutes:
            return

        async def cleanup_loop():
            while True:
                try:
                    await self._cleanup_expired_sessions()
                except Exception as e:
                    logger.error(f'Error in cleanup task: {e}')
                await asyncio.sleep(IDLE_CHECK_INTERVAL_SECONDS)

        self._cleanup_task = asyncio.create_task(cleanup_loop())

    async def _stop_cleanup_task(self) -> None:
        if self._cleanup_task is None:
            return
        self._cleanup_task.cancel()
        try:
            await self._cleanup_task
        except asyncio.CancelledError:
            pass
        self._cleanup_task = None

    async def run(self):
        """Run the MCP server until the client disconnects."""
        logger.info('Starting MCP Chrome Connector...')
        await self.engine.initialize()
        await self._start_cleanup_task()

        try:
            async with mcp.server.stdio.stdio_server() as (read_stream, write_stream):
                logger.info('MCP Chrome Connector started successfully')
                await self.server.run(
                    read_stream,
                    write_stream,
                    InitializationOptions(
                        server_name=self.config.server.name,
                        server_version=self.config.server.version,
                        capabilities=self.server.get_capabilities(
                            notification_options=NotificationOptions(),
                            experimental_capabilities={},
                        ),
                    ),
                )
        finally:
            logger.info('Shutting down MCP Chrome Connector...')
            await self._stop_cleanup_task()
            await self.engine.shutdown()
            logger.info('Shutdown completed')


def configure_logging(config: ConnectorConfig) -> None:
    """Route logs to the log file, and to stderr only in debug mode. Stdout carries the protocol."""
    setup_logging(
        stream=sys.stderr if config.logging.debug else None,
        log_level=config.logging.level,
        log_file=config.logging.file,
        force_setup=True,
    )


async def main(config: ConnectorConfig | None = None):
    load_dotenv()
    config = config or load_connector_config()
    configure_logging(config)

    server = ConnectorServer(config)
    await server.run()


if __name__ == '__main__':
    asyncio.run(main())
