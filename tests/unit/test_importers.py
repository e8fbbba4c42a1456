"""
Unit tests for feed item importers
"""

import uuid
from datetime import datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from youtube_transcript_api import TranscriptsDisabled

from core.exceptions import ContentFetchError, ContentParseError, StoreError, ValidationError
from ingestion.http_fetcher import FetchedPage, HttpFetcher
from ingestion.importers.dispatcher import FeedItemImporterDispatcher
from ingestion.importers.website import WebsiteFeedItemImporter
from ingestion.importers.xkcd import XkcdFeedItemImporter, parse_xkcd_comic
from ingestion.importers.youtube import YouTubeFeedItemImporter, format_timestamp, format_transcript
from ingestion.transformers.summarizer import HierarchicalSummarizer
from models.base import FeedItemType
from schemas.feed_items import FeedItem
from schemas.feed_sources import PwaFeedSource
from schemas.import_states import make_new_import_state, make_processing_import_state
from services.llm import LlmClient

NOW = datetime(2024, 1, 15, 10, 0)
ACCOUNT_ID = "firebase-uid-alice"

ARTICLE_HTML = """
<html><head><title>Deep Dive</title><meta name="description" content="A long read"></head>
<body><article>
<h1>Deep Dive</h1>
<p>The quick brown fox jumps over the lazy dog, several times, in a paragraph long enough for readability
to treat it as the article body rather than boilerplate around it.</p>
<p>See <a href="/next">the next post</a>.</p>
</article></body></html>
"""

XKCD_HTML = """
<html><body>
<div id="ctitle">Standards</div>
<div id="comic">
<img src="//imgs.xkcd.com/comics/standards.png"
     title="Fortunately, the charging one has been solved now that we've all standardized on mini-USB."
     srcset="//imgs.xkcd.com/comics/standards_2x.png 2x" alt="Standards">
</div>
</body></html>
"""

EXPLAIN_HTML = """
<html><body><div id="mw-content-text"><h2>Explanation</h2><p>Competing standards multiply.</p></div></body></html>
"""


def make_feed_item(url: str, feed_item_type: FeedItemType) -> FeedItem:
    return FeedItem(
        feed_item_id=str(uuid.uuid4()),
        account_id=ACCOUNT_ID,
        feed_item_type=feed_item_type,
        feed_source=PwaFeedSource(),
        url=url,
        import_state=make_processing_import_state(make_new_import_state(NOW), NOW),
        created_time=NOW,
        last_updated_time=NOW,
    )


@pytest.fixture
def update_feed_item():
    return AsyncMock()


@pytest.fixture
def write_file_to_storage():
    return AsyncMock()


@pytest.fixture
def fetcher():
    fetcher = HttpFetcher(timeout=5.0, max_retries=1, retry_delay=0)
    fetcher.fetch = AsyncMock()
    return fetcher


def written_paths(write_file_to_storage):
    return [c.args[0] for c in write_file_to_storage.call_args_list]


class StaticLlmClient(LlmClient):
    async def generate(self, prompt: str) -> str:
        return "• Foxes jump"


class TestWebsiteImporter:

    @pytest.mark.asyncio
    async def test_import_article(self, update_feed_item, write_file_to_storage, fetcher):
        fetcher.fetch.return_value = FetchedPage(url="https://example.com/post", status_code=200, text=ARTICLE_HTML)
        feed_item = make_feed_item("https://example.com/post", FeedItemType.ARTICLE)
        importer = WebsiteFeedItemImporter(update_feed_item, write_file_to_storage, fetcher)

        outcome = await importer.import_item(feed_item)

        assert outcome.should_refresh is False
        prefix = f"feedItems/{ACCOUNT_ID}/{feed_item.feed_item_id}/"
        assert written_paths(write_file_to_storage) == [prefix + "raw.html", prefix + "llmContext.md"]
        markdown = write_file_to_storage.call_args_list[1].args[1]
        assert "quick brown fox" in markdown

        feed_item_id, updates = update_feed_item.call_args.args
        assert feed_item_id == feed_item.feed_item_id
        assert updates["title"] == "Deep Dive"
        assert updates["description"] == "A long read"
        assert updates["outgoing_links"] == ["https://example.com/next"]
        assert "summary" not in updates

    @pytest.mark.asyncio
    async def test_import_with_summarizer(self, update_feed_item, write_file_to_storage, fetcher):
        fetcher.fetch.return_value = FetchedPage(url="https://example.com/post", status_code=200, text=ARTICLE_HTML)
        importer = WebsiteFeedItemImporter(
            update_feed_item, write_file_to_storage, fetcher, HierarchicalSummarizer(StaticLlmClient())
        )

        await importer.import_item(make_feed_item("https://example.com/post", FeedItemType.ARTICLE))

        assert update_feed_item.call_args.args[1]["summary"] == "• Foxes jump"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("feed_item_type, should_refresh", [
        (FeedItemType.WEBSITE, True),
        (FeedItemType.ARTICLE, False),
        (FeedItemType.TWEET, False),
    ])
    async def test_only_websites_are_refreshed(
        self, update_feed_item, write_file_to_storage, fetcher, feed_item_type, should_refresh
    ):
        fetcher.fetch.return_value = FetchedPage(url="https://example.com/post", status_code=200, text=ARTICLE_HTML)
        importer = WebsiteFeedItemImporter(update_feed_item, write_file_to_storage, fetcher)

        outcome = await importer.import_item(make_feed_item("https://example.com/post", feed_item_type))

        assert outcome.should_refresh is should_refresh

    @pytest.mark.asyncio
    async def test_fetch_failure_propagates(self, update_feed_item, write_file_to_storage, fetcher):
        fetcher.fetch.side_effect = ContentFetchError("HTTP 418 fetching", context={"status_code": 418})
        importer = WebsiteFeedItemImporter(update_feed_item, write_file_to_storage, fetcher)

        with pytest.raises(ContentFetchError):
            await importer.import_item(make_feed_item("https://example.com/post", FeedItemType.WEBSITE))

        update_feed_item.assert_not_called()
        write_file_to_storage.assert_not_called()

    @pytest.mark.asyncio
    async def test_storage_failure_becomes_store_error(self, update_feed_item, fetcher):
        fetcher.fetch.return_value = FetchedPage(url="https://example.com/post", status_code=200, text=ARTICLE_HTML)
        write_file_to_storage = AsyncMock(side_effect=OSError("disk full"))
        importer = WebsiteFeedItemImporter(update_feed_item, write_file_to_storage, fetcher)

        with pytest.raises(StoreError) as exc_info:
            await importer.import_item(make_feed_item("https://example.com/post", FeedItemType.WEBSITE))

        assert "raw.html" in exc_info.value.message


class TestXkcdImporter:

    def test_parse_comic(self):
        details = parse_xkcd_comic(XKCD_HTML, "https://xkcd.com/927/")

        assert details["title"] == "Standards"
        assert details["xkcd"].alt_text.startswith("Fortunately")
        assert details["xkcd"].image_url_small == "https://imgs.xkcd.com/comics/standards.png"
        assert details["xkcd"].image_url_large == "https://imgs.xkcd.com/comics/standards_2x.png"

    def test_parse_comic_without_alt_text(self):
        html = XKCD_HTML.replace('title="Fortunately', 'data-title="Fortunately')

        with pytest.raises(ContentParseError):
            parse_xkcd_comic(html, "https://xkcd.com/927/")

    @pytest.mark.asyncio
    async def test_import_comic(self, update_feed_item, write_file_to_storage, fetcher):
        async def fetch(url, headers=None):
            if "explainxkcd" in url:
                return FetchedPage(url=url, status_code=200, text=EXPLAIN_HTML)
            return FetchedPage(url=url, status_code=200, text=XKCD_HTML)

        fetcher.fetch.side_effect = fetch
        feed_item = make_feed_item("https://xkcd.com/927/", FeedItemType.XKCD)

        await XkcdFeedItemImporter(update_feed_item, write_file_to_storage, fetcher).import_item(feed_item)

        fetched_urls = {c.args[0] for c in fetcher.fetch.call_args_list}
        assert fetched_urls == {"https://xkcd.com/927/", "https://www.explainxkcd.com/wiki/index.php/927"}
        updates = update_feed_item.call_args.args[1]
        assert updates["title"] == "Standards"
        assert written_paths(write_file_to_storage) == [
            f"feedItems/{ACCOUNT_ID}/{feed_item.feed_item_id}/xkcdExplain.md"
        ]
        assert "Competing standards multiply." in write_file_to_storage.call_args.args[1]

    @pytest.mark.asyncio
    async def test_non_comic_url(self, update_feed_item, write_file_to_storage, fetcher):
        importer = XkcdFeedItemImporter(update_feed_item, write_file_to_storage, fetcher)

        with pytest.raises(ValidationError):
            await importer.import_item(make_feed_item("https://xkcd.com/about", FeedItemType.XKCD))

        fetcher.fetch.assert_not_called()


class TestYouTubeImporter:

    def test_format_timestamp(self):
        assert format_timestamp(5) == "00:05"
        assert format_timestamp(65.9) == "01:05"
        assert format_timestamp(3725) == "1:02:05"

    def test_format_transcript(self):
        snippets = [
            SimpleNamespace(text="Hello   world", start=0.0),
            SimpleNamespace(text="  ", start=2.0),
            SimpleNamespace(text="Second\nline", start=65.0),
        ]

        assert format_transcript(snippets) == "[00:00] Hello world\n[01:05] Second line"

    @pytest.mark.asyncio
    async def test_import_video(self, update_feed_item, write_file_to_storage, fetcher):
        transcript_api = MagicMock()
        transcript_api.fetch.return_value = [SimpleNamespace(text="Never gonna give you up", start=43.0)]
        feed_item = make_feed_item("https://www.youtube.com/watch?v=dQw4w9WgXcQ", FeedItemType.VIDEO)
        importer = YouTubeFeedItemImporter(update_feed_item, write_file_to_storage, fetcher, transcript_api)

        await importer.import_item(feed_item)

        transcript_api.fetch.assert_called_once_with("dQw4w9WgXcQ")
        path, content, content_type = write_file_to_storage.call_args.args
        assert path == f"feedItems/{ACCOUNT_ID}/{feed_item.feed_item_id}/transcript.md"
        assert content == "[00:43] Never gonna give you up"
        assert content_type == "text/markdown"

    @pytest.mark.asyncio
    async def test_transcripts_disabled(self, update_feed_item, write_file_to_storage, fetcher):
        transcript_api = MagicMock()
        transcript_api.fetch.side_effect = TranscriptsDisabled("dQw4w9WgXcQ")
        importer = YouTubeFeedItemImporter(update_feed_item, write_file_to_storage, fetcher, transcript_api)

        with pytest.raises(ContentFetchError) as exc_info:
            await importer.import_item(make_feed_item("https://youtu.be/dQw4w9WgXcQ", FeedItemType.VIDEO))

        assert exc_info.value.context["video_id"] == "dQw4w9WgXcQ"
        write_file_to_storage.assert_not_called()

    @pytest.mark.asyncio
    async def test_not_a_video_url(self, update_feed_item, write_file_to_storage, fetcher):
        importer = YouTubeFeedItemImporter(update_feed_item, write_file_to_storage, fetcher, MagicMock())

        with pytest.raises(ValidationError):
            await importer.import_item(make_feed_item("https://example.com/video", FeedItemType.VIDEO))


class TestDispatcher:

    @pytest.mark.parametrize("feed_item_type,importer_class", [
        (FeedItemType.ARTICLE, WebsiteFeedItemImporter),
        (FeedItemType.WEBSITE, WebsiteFeedItemImporter),
        (FeedItemType.TWEET, WebsiteFeedItemImporter),
        (FeedItemType.VIDEO, YouTubeFeedItemImporter),
        (FeedItemType.XKCD, XkcdFeedItemImporter),
    ])
    def test_importer_by_type(self, update_feed_item, write_file_to_storage, fetcher, feed_item_type, importer_class):
        dispatcher = FeedItemImporterDispatcher(update_feed_item, write_file_to_storage, fetcher)

        assert isinstance(dispatcher.get_importer(feed_item_type), importer_class)

    def test_importer_by_type_value(self, update_feed_item, write_file_to_storage, fetcher):
        dispatcher = FeedItemImporterDispatcher(update_feed_item, write_file_to_storage, fetcher)

        assert dispatcher.get_importer("XKCD") is dispatcher.xkcd
