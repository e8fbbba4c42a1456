import asyncio
import logging
from urllib.parse import urlparse

from bs4 import BeautifulSoup

from core.exceptions import ContentParseError, ValidationError
from core.urls import get_xkcd_comic_id, make_absolute_url
from ingestion.importers.base import FeedItemImporter, ImportOutcome
from ingestion.transformers.html import extract_main_content, html_to_markdown, sanitize_html
from schemas.feed_items import FeedItem, XkcdComicDetails
from services.storage import XKCD_EXPLAIN_FILENAME

logger = logging.getLogger(__name__)

EXPLAIN_XKCD_URL = "https://www.explainxkcd.com/wiki/index.php/{comic_id}"


def parse_xkcd_comic(html: str, page_url: str) -> dict:
    """
    Title, alt text and image URLs from a comic page.

    Raises:
        ContentParseError: If any of them is missing
    """
    soup = BeautifulSoup(html, "lxml")
    title_element = soup.select_one("#ctitle")
    image = soup.select_one("#comic img")

    title = title_element.get_text(strip=True) if title_element else ""
    alt_text = image.get("title", "").strip() if image else ""
    image_url_small = image.get("src", "").strip() if image else ""
    srcset = image.get("srcset", "").strip() if image else ""
    image_url_large = srcset.split(" ")[0] if srcset else image_url_small

    if not title or not alt_text or not image_url_small:
        raise ContentParseError(
            "Could not parse XKCD comic details from HTML",
            context={"content_type": "text/html", "url": page_url, "title": title}
        )

    origin = "{0.scheme}://{0.netloc}/".format(urlparse(page_url))
    return {
        "title": title,
        "xkcd": XkcdComicDetails(
            alt_text=alt_text,
            image_url_small=make_absolute_url(image_url_small, origin),
            image_url_large=make_absolute_url(image_url_large, origin),
        ),
    }


class XkcdFeedItemImporter(FeedItemImporter):
    """Writes comic details onto the item and stores the explainxkcd page."""

    async def import_comic(self, feed_item: FeedItem) -> None:
        page = await self.fetcher.fetch(feed_item.url, headers={"Accept": "text/html"})
        updates = parse_xkcd_comic(page.text, page.url)
        await self.update_feed_item(feed_item.feed_item_id, updates)

    async def import_explanation(self, feed_item: FeedItem, comic_id: int) -> None:
        page = await self.fetcher.fetch(EXPLAIN_XKCD_URL.format(comic_id=comic_id))
        soup = BeautifulSoup(sanitize_html(page.text), "lxml")
        content = soup.select_one("#mw-content-text")
        explanation_html = str(content) if content else extract_main_content(str(soup)).html
        await self.store_file(feed_item, XKCD_EXPLAIN_FILENAME, html_to_markdown(explanation_html), "text/markdown")

    async def import_item(self, feed_item: FeedItem) -> ImportOutcome:
        comic_id = get_xkcd_comic_id(feed_item.url)
        if comic_id is None:
            raise ValidationError(
                "Not an XKCD comic URL",
                context={"field_name": "url", "field_value": feed_item.url}
            )

        results = await asyncio.gather(
            self.import_comic(feed_item),
            self.import_explanation(feed_item, comic_id),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, Exception):
                raise result

        logger.debug(f"Imported XKCD comic {comic_id}")
        return ImportOutcome()
