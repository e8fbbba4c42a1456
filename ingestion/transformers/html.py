"""
HTML transforms for website imports.

The pipeline is sanitize -> extract main content -> Markdown. Link and meta
extraction read the sanitized page.
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional

import html2text
from bs4 import BeautifulSoup
from lxml.etree import ParserError
from readability import Document

from core.exceptions import ContentParseError
from core.urls import make_absolute_url

logger = logging.getLogger(__name__)

UNSAFE_TAGS = ["script", "style", "iframe", "noscript", "object", "embed", "frame", "frameset"]
_EVENT_HANDLER_ATTRIBUTE = re.compile(r"^on", re.IGNORECASE)
_UNSAFE_URL_SCHEMES = ("javascript:", "vbscript:", "data:text/html")


@dataclass(frozen=True)
class ExtractedContent:
    title: str
    html: str


def sanitize_html(html: str) -> str:
    """
    Strip script-capable markup: unsafe tags, ``on*`` event handler
    attributes and ``javascript:`` links.
    """
    soup = BeautifulSoup(html, "lxml")

    for tag in soup(UNSAFE_TAGS):
        tag.decompose()

    for tag in soup.find_all(True):
        for attribute in list(tag.attrs):
            if _EVENT_HANDLER_ATTRIBUTE.match(attribute):
                del tag.attrs[attribute]
                continue
            value = tag.attrs[attribute]
            if attribute in ("href", "src", "action") and isinstance(value, str):
                if value.strip().lower().startswith(_UNSAFE_URL_SCHEMES):
                    del tag.attrs[attribute]

    return str(soup)


def extract_main_content(html: str) -> ExtractedContent:
    """
    Main article content via readability.

    Raises:
        ContentParseError: If readability cannot parse the page
    """
    try:
        doc = Document(html)
        return ExtractedContent(title=doc.short_title() or doc.title() or "", html=doc.summary(html_partial=True))
    except (ParserError, ValueError, TypeError) as e:
        raise ContentParseError(
            "Could not extract main content",
            context={"content_type": "text/html", "parser": "readability"},
            original_exception=e
        )


def html_to_markdown(html: str) -> str:
    h = html2text.HTML2Text()
    h.body_width = 0
    h.ignore_images = False
    h.ignore_links = False
    markdown = h.handle(html)
    return re.sub(r"\n{3,}", "\n\n", markdown).strip()


def extract_outgoing_links(html: str, base_url: str) -> List[str]:
    """Absolute http(s) links in document order, without duplicates or fragments."""
    soup = BeautifulSoup(html, "lxml")
    links = []
    seen = set()
    for anchor in soup.find_all("a", href=True):
        href = anchor["href"].strip()
        if not href or href.startswith("#"):
            continue
        absolute = make_absolute_url(href, base_url).split("#", 1)[0]
        if not absolute.startswith(("http://", "https://")) or absolute in seen:
            continue
        seen.add(absolute)
        links.append(absolute)
    return links


def extract_meta_description(html: str) -> Optional[str]:
    soup = BeautifulSoup(html, "lxml")
    for attrs in ({"name": "description"}, {"property": "og:description"}, {"name": "twitter:description"}):
        meta = soup.find("meta", attrs=attrs)
        if meta and meta.get("content", "").strip():
            return meta["content"].strip()
    return None
