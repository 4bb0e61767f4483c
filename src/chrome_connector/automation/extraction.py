"""Content extraction strategies, HTML-to-markdown conversion and page diagnostics.

Whole-document extraction is modelled as an ordered list of strategies tried in
sequence with a stop condition, so the policy (which strategy wins) can be
tested with a fake page and without a browser.

The markdown conversion is a fixed, order-dependent set of tag substitutions.
It is intentionally lossy and is not a full HTML-to-Markdown grammar.
"""

import logging
import re
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from playwright.async_api import Page

logger = logging.getLogger(__name__)

MIN_HTML_LENGTH = 100
EMPTY_HTML_DOCUMENT = '<html><head></head><body></body></html>'


@dataclass(frozen=True)
class ExtractionStrategy:
    """A named way of reading content from a page."""

    name: str
    fetch: Callable[['Page'], Awaitable[str | None]]


def has_text(content: str) -> bool:
    return bool(content.strip())


def is_substantial_html(content: str) -> bool:
    return len(content) > MIN_HTML_LENGTH


async def run_strategies(
    page: 'Page',
    strategies: Sequence[ExtractionStrategy],
    accept: Callable[[str], bool],
) -> tuple[str, str | None]:
    """Try each strategy in order and stop at the first accepted result.

    A strategy that raises is logged and skipped.

    Returns:
        ``(content, strategy_name)`` for the winning strategy, or the last content
        obtained (possibly ``''``) with ``None`` when no strategy was accepted.
    """
    content = ''
    for strategy in strategies:
        try:
            content = await strategy.fetch(page) or ''
        except Exception as e:
            logger.warning(f'{strategy.name} extraction failed: {type(e).__name__}: {e}')
            continue
        if accept(content):
            logger.info(f'Content extracted via {strategy.name}: {len(content)} chars')
            return content, strategy.name

    logger.warning('All extraction strategies returned insufficient content')
    return content, None


async def _body_text_content(page: 'Page') -> str | None:
    return await page.text_content('body')


async def _inner_text(page: 'Page') -> str | None:
    return await page.evaluate("() => document.body ? document.body.innerText : ''")


async def _text_content(page: 'Page') -> str | None:
    return await page.evaluate("() => document.body ? document.body.textContent : ''")


async def _page_content(page: 'Page') -> str | None:
    return await page.content()


async def _outer_html(page: 'Page') -> str | None:
    return await page.evaluate("() => document.documentElement ? document.documentElement.outerHTML : ''")


async def _reconstructed_html(page: 'Page') -> str | None:
    return await page.evaluate(
        """() => {
            if (!document.body) return '';
            const head = document.head ? document.head.innerHTML : '';
            return `<html><head>${head}</head><body>${document.body.innerHTML}</body></html>`;
        }"""
    )


TEXT_STRATEGIES: tuple[ExtractionStrategy, ...] = (
    ExtractionStrategy('body_text_content', _body_text_content),
    ExtractionStrategy('inner_text', _inner_text),
    ExtractionStrategy('text_content', _text_content),
)

HTML_STRATEGIES: tuple[ExtractionStrategy, ...] = (
    ExtractionStrategy('page_content', _page_content),
    ExtractionStrategy('outer_html', _outer_html),
    ExtractionStrategy('reconstructed', _reconstructed_html),
)


async def extract_text(page: 'Page') -> tuple[str, str | None]:
    """Visible page text and the strategy that produced it. Whitespace-only text becomes ''."""
    content, strategy = await run_strategies(page, TEXT_STRATEGIES, has_text)
    return (content if has_text(content) else ''), strategy


async def extract_html(page: 'Page') -> tuple[str, str | None]:
    return await run_strategies(page, HTML_STRATEGIES, is_substantial_html)


_SCRIPT_BLOCK = re.compile(r'<script\b[^>]*>.*?</script\s*>', re.IGNORECASE | re.DOTALL)
_STYLE_BLOCK = re.compile(r'<style\b[^>]*>.*?</style\s*>', re.IGNORECASE | re.DOTALL)


def strip_tags(html: str, remove_scripts: bool = True, remove_styles: bool = False) -> str:
    """Remove ``<script>`` and/or ``<style>`` blocks, including their bodies."""
    if remove_scripts:
        html = _SCRIPT_BLOCK.sub('', html)
    if remove_styles:
        html = _STYLE_BLOCK.sub('', html)
    return html


# Order matters: headings and paragraphs before inline tags, and the final
# catch-all strips whatever markup is left.
MARKDOWN_SUBSTITUTIONS: tuple[tuple[re.Pattern[str], str], ...] = tuple(
    (re.compile(pattern, re.IGNORECASE), replacement)
    for pattern, replacement in (
        (r'<h1[^>]*>(.*?)</h1>', r'# \1\n\n'),
        (r'<h2[^>]*>(.*?)</h2>', r'## \1\n\n'),
        (r'<h3[^>]*>(.*?)</h3>', r'### \1\n\n'),
        (r'<p(?:\s[^>]*)?>(.*?)</p>', r'\1\n\n'),
        (r'<a\s[^>]*href="([^"]*)"[^>]*>(.*?)</a>', r'[\2](\1)'),
        (r'<strong(?:\s[^>]*)?>(.*?)</strong>', r'**\1**'),
        (r'<b(?:\s[^>]*)?>(.*?)</b>', r'**\1**'),
        (r'<em(?:\s[^>]*)?>(.*?)</em>', r'*\1*'),
        (r'<i(?:\s[^>]*)?>(.*?)</i>', r'*\1*'),
        (r'<code(?:\s[^>]*)?>(.*?)</code>', r'`\1`'),
        (r'<[^>]*>', ''),
        (r'\n\s*\n\s*\n', '\n\n'),
    )
)


def html_to_markdown(html: str) -> str:
    """Convert HTML to markdown with the fixed substitution table, then trim."""
    markdown = html
    for pattern, replacement in MARKDOWN_SUBSTITUTIONS:
        markdown = pattern.sub(replacement, markdown)
    return markdown.strip()


async def diagnose_page(page: 'Page') -> dict:
    """Log the page state after an empty extraction.

    The returned dict exists for tests; callers never surface it to clients.
    """
    report: dict = {}
    logger.info('=== DEBUG: Analyzing page state ===')
    try:
        report['url'] = page.url
        try:
            report['title'] = await page.title()
        except Exception:
            report['title'] = 'Unable to get title'
        try:
            report['ready_state'] = await page.evaluate('() => document.readyState')
        except Exception:
            report['ready_state'] = 'unknown'
        logger.info(f"URL: {report['url']}")
        logger.info(f"Title: {report['title']}")
        logger.info(f"Document ready state: {report['ready_state']}")

        for tag in ('html', 'head', 'body'):
            report[f'has_{tag}'] = await page.locator(tag).count() > 0
        logger.info(
            f"HTML elements - html: {report['has_html']}, head: {report['has_head']}, body: {report['has_body']}"
        )

        body = page.locator('body')
        try:
            report['body_text_length'] = len(await body.text_content() or '')
        except Exception:
            report['body_text_length'] = 0
        try:
            report['body_html_length'] = len(await body.inner_html() or '')
        except Exception:
            report['body_html_length'] = 0
        logger.info(
            f"Body content - text length: {report['body_text_length']}, html length: {report['body_html_length']}"
        )

        try:
            report['errors'] = await page.evaluate(
                """() => Array.from(document.querySelectorAll('*[class*="error"], *[id*="error"]'))
                    .map(el => el.textContent)
                    .filter(text => text && text.trim().length > 0)"""
            )
        except Exception:
            report['errors'] = []
        if report['errors']:
            logger.warning(f"Page errors found: {report['errors']}")
    except Exception as e:
        logger.error(f'Debug page state failed: {type(e).__name__}: {e}')

    logger.info('=== END DEBUG ===')
    return report
