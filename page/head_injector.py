"""HTML helpers for reading the canonical URL and injecting into <head>."""
import logging
import re
from typing import Optional

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

HEAD_CLOSE_PATTERN = re.compile(r"</head\s*>", re.IGNORECASE)


def extract_canonical_url(html: str) -> Optional[str]:
    """
    Read the page's canonical URL from <link rel="canonical">.

    Args:
        html: Page markup

    Returns:
        Canonical URL, or None if the page does not declare one
    """
    soup = BeautifulSoup(html or '', 'html.parser')
    link = soup.find('link', rel='canonical')
    if not link:
        return None

    href = (link.get('href') or '').strip()
    return href or None


def inject_into_head(html: str, markup: str) -> str:
    """
    Insert markup just before the page's closing </head> tag.

    The page text is otherwise left exactly as received. Pages without a
    <head>, or whose head is never explicitly closed, are returned
    unchanged.

    Args:
        html: Page markup
        markup: Element(s) to insert

    Returns:
        Updated page markup
    """
    soup = BeautifulSoup(html, 'html.parser')
    if soup.find('head') is None:
        logger.warning("Page has no <head>; skipping injection")
        return html

    match = HEAD_CLOSE_PATTERN.search(html)
    if match is None:
        logger.warning("Page has no closing </head> tag; skipping injection")
        return html

    return html[:match.start()] + markup + html[match.start():]
