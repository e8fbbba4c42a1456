import asyncio
import logging
from typing import Iterable, Optional

from youtube_transcript_api import CouldNotRetrieveTranscript, YouTubeTranscriptApi

from core.exceptions import ContentFetchError, NetworkError, ValidationError
from core.urls import get_youtube_video_id
from ingestion.http_fetcher import HttpFetcher
from ingestion.importers.base import FeedItemImporter, ImportOutcome, UpdateFeedItemFn, WriteFileToStorageFn
from schemas.feed_items import FeedItem
from services.storage import TRANSCRIPT_FILENAME

logger = logging.getLogger(__name__)


def format_timestamp(seconds: float) -> str:
    total = int(seconds)
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


def format_transcript(snippets: Iterable) -> str:
    """One ``[mm:ss] text`` line per snippet."""
    lines = []
    for snippet in snippets:
        text = " ".join(snippet.text.split())
        if text:
            lines.append(f"[{format_timestamp(snippet.start)}] {text}")
    return "\n".join(lines)


class YouTubeFeedItemImporter(FeedItemImporter):
    """Stores the video transcript as ``transcript.md``."""

    def __init__(
        self,
        update_feed_item: UpdateFeedItemFn,
        write_file_to_storage: WriteFileToStorageFn,
        fetcher: HttpFetcher,
        transcript_api: Optional[YouTubeTranscriptApi] = None,
    ):
        super().__init__(update_feed_item, write_file_to_storage, fetcher)
        self.transcript_api = transcript_api or YouTubeTranscriptApi()

    async def fetch_transcript(self, video_id: str) -> str:
        """
        Raises:
            ContentFetchError: If the video has no retrievable transcript
            NetworkError: If the fetch does not finish within the fetcher timeout
        """
        context = {"video_id": video_id}
        try:
            transcript = await asyncio.wait_for(
                asyncio.to_thread(self.transcript_api.fetch, video_id),
                timeout=self.fetcher.timeout,
            )
        except asyncio.TimeoutError as e:
            raise NetworkError(
                "Timed out fetching YouTube transcript",
                context={**context, "timeout": self.fetcher.timeout},
                original_exception=e
            )
        except CouldNotRetrieveTranscript as e:
            raise ContentFetchError(
                "Error fetching YouTube transcript",
                context=context,
                original_exception=e
            )
        return format_transcript(transcript)

    async def import_item(self, feed_item: FeedItem) -> ImportOutcome:
        video_id = get_youtube_video_id(feed_item.url)
        if video_id is None:
            raise ValidationError(
                "Not a YouTube video URL",
                context={"field_name": "url", "field_value": feed_item.url}
            )

        transcript = await self.fetch_transcript(video_id)
        await self.store_file(feed_item, TRANSCRIPT_FILENAME, transcript, "text/markdown")
        logger.debug(f"Saved transcript for {video_id} ({len(transcript)} characters)")
        return ImportOutcome()
