"""Browser profile configuration: launch flags and per-session context options."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_USER_AGENT = (
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36'
)

DEFAULT_LAUNCH_ARGS: tuple[str, ...] = (
    '--no-sandbox',
    '--disable-setuid-sandbox',
    '--disable-dev-shm-usage',
    '--disable-blink-features=AutomationControlled',
    '--no-first-run',
    '--disable-default-apps',
)

# Mirrors what a desktop Chrome sends on a top-level navigation
DEFAULT_HTTP_HEADERS: dict[str, str] = {
    'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,image/apng,*/*;q=0.8',
    'Accept-Language': 'en-US,en;q=0.9',
    'DNT': '1',
    'Upgrade-Insecure-Requests': '1',
    'sec-ch-ua': '"Chromium";v="120", "Google Chrome";v="120", "Not-A.Brand";v="99"',
    'sec-ch-ua-mobile': '?0',
    'sec-ch-ua-platform': '"Windows"',
}

STEALTH_INIT_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
Object.defineProperty(navigator, 'languages', { get: () => ['en-US', 'en'] });
Object.defineProperty(navigator, 'hardwareConcurrency', { get: () => 8 });
"""


class ViewportSize(BaseModel):
    """Viewport size configuration."""

    width: int = Field(ge=0)
    height: int = Field(ge=0)

    def __getitem__(self, key: str) -> int:
        return dict(self)[key]


class BrowserProfile(BaseModel):
    """Settings for the shared browser process and the contexts spawned from it.

    Every session keeps a snapshot of the profile it was created with.
    """

    model_config = ConfigDict(
        extra='ignore',
        validate_assignment=True,
        populate_by_name=True,
    )

    headless: bool = Field(default=True, description='Whether to run the browser in headless mode')
    viewport: ViewportSize = Field(
        default_factory=lambda: ViewportSize(width=1280, height=720), description='Page viewport size'
    )
    screen: ViewportSize = Field(
        default_factory=lambda: ViewportSize(width=1920, height=1080), description='Reported screen size'
    )
    timeout_ms: int = Field(default=30000, ge=0, description='Default navigation timeout in milliseconds')
    args: list[str] = Field(default_factory=list, description='Additional CLI args to pass to the browser')

    user_agent: str = Field(default=DEFAULT_USER_AGENT, description='User agent for every context')
    locale: str = Field(default='en-US')
    timezone_id: str = Field(default='America/New_York')
    extra_http_headers: dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_HTTP_HEADERS))
    permissions: list[str] = Field(default_factory=lambda: ['geolocation', 'notifications'])
    stealth: bool = Field(default=True, description='Install the automation-masking init script on new contexts')

    def launch_args(self) -> list[str]:
        """Default Chromium flags followed by configured extras, without duplicates."""
        merged: list[str] = []
        for arg in (*DEFAULT_LAUNCH_ARGS, *self.args):
            if arg and arg not in merged:
                merged.append(arg)
        return merged

    def launch_options(self) -> dict[str, Any]:
        return {'headless': self.headless, 'args': self.launch_args()}

    def context_options(self) -> dict[str, Any]:
        """Keyword arguments for ``Browser.new_context``."""
        return {
            'viewport': {'width': self.viewport.width, 'height': self.viewport.height},
            'screen': {'width': self.screen.width, 'height': self.screen.height},
            'user_agent': self.user_agent,
            'locale': self.locale,
            'timezone_id': self.timezone_id,
            'permissions': list(self.permissions),
            'extra_http_headers': dict(self.extra_http_headers),
            'java_script_enabled': True,
            'accept_downloads': True,
            'bypass_csp': True,
        }
