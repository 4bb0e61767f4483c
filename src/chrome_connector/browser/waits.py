"""Wait helpers with two explicit contracts.

``wait_best_effort`` swallows a timeout or failure and reports it as ``False``;
the caller proceeds in a degraded mode. ``wait_required`` lets the failure
propagate so the operation turns it into a failed result.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from playwright.async_api import Page

logger = logging.getLogger(__name__)

NETWORK_IDLE_TIMEOUT_MS = 15000
DOM_READY_TIMEOUT_MS = 10000
BODY_TIMEOUT_MS = 10000
SETTLE_DELAY_MS = 2000


async def wait_best_effort(wait: Callable[[], Awaitable[Any]], description: str) -> bool:
    """Run ``wait()``; log and return False on any failure instead of raising."""
    try:
        await wait()
        return True
    except Exception as e:
        logger.warning(f'{description} did not complete, continuing: {type(e).__name__}: {e}')
        return False


async def wait_required(wait: Callable[[], Awaitable[Any]], description: str) -> Any:
    """Run ``wait()`` and let any failure propagate."""
    try:
        return await wait()
    except Exception as e:
        logger.debug(f'{description} failed: {type(e).__name__}: {e}')
        raise


async def sleep_ms(delay_ms: float) -> None:
    if delay_ms and delay_ms > 0:
        await asyncio.sleep(delay_ms / 1000)


async def wait_for_page_ready(page: 'Page', settle_delay_ms: float = SETTLE_DELAY_MS) -> None:
    """Best-effort readiness sequence: network idle, DOM ready, body present, settle.

    No single signal means "ready" on every site, so each step is tried
    independently and none of them can fail the caller.
    """
    logger.info('Waiting for page to be fully ready...')
    await wait_best_effort(
        lambda: page.wait_for_load_state('networkidle', timeout=NETWORK_IDLE_TIMEOUT_MS), 'Network idle wait'
    )
    await wait_best_effort(
        lambda: page.wait_for_load_state('domcontentloaded', timeout=DOM_READY_TIMEOUT_MS), 'DOM content loaded wait'
    )
    await wait_best_effort(lambda: page.wait_for_selector('body', timeout=BODY_TIMEOUT_MS), 'Body element wait')
    await sleep_ms(settle_delay_ms)
    logger.info('Page ready detection completed')
