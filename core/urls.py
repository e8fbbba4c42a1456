"""
URL classification helpers.
"""

import re
from typing import Optional
from urllib.parse import urlparse, parse_qs, urljoin

from models.base import FeedItemType, FeedSourceType

YOUTUBE_HOSTNAMES = {
    "youtube.com",
    "www.youtube.com",
    "m.youtube.com",
    "youtube-nocookie.com",
    "www.youtube-nocookie.com",
}
YOUTUBE_SHORT_HOSTNAMES = {"youtu.be", "www.youtu.be"}
XKCD_HOSTNAMES = {"xkcd.com", "www.xkcd.com"}
TWITTER_HOSTNAMES = {"twitter.com", "www.twitter.com", "x.com", "www.x.com", "mobile.twitter.com"}

_YOUTUBE_VIDEO_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{11}$")
_YOUTUBE_CHANNEL_PATH_PATTERN = re.compile(r"^/channel/(UC[A-Za-z0-9_-]{22})/?")
_YOUTUBE_HANDLE_PATH_PATTERN = re.compile(r"^/(@[A-Za-z0-9._-]+|c/[^/]+)/?")
_XKCD_PATH_PATTERN = re.compile(r"^/(\d+)/?$")
_TWEET_PATH_PATTERN = re.compile(r"^/[A-Za-z0-9_]+/status/(\d+)/?")


def _hostname(url: str) -> str:
    return (urlparse(url).hostname or "").lower()


def is_youtube_url(url: str) -> bool:
    host = _hostname(url)
    return host in YOUTUBE_HOSTNAMES or host in YOUTUBE_SHORT_HOSTNAMES


def get_youtube_video_id(url: str) -> Optional[str]:
    """Video id from a watch, short or embed URL, or None."""
    parsed = urlparse(url)
    host = (parsed.hostname or "").lower()

    video_id = None
    if host in YOUTUBE_SHORT_HOSTNAMES:
        video_id = parsed.path.lstrip("/").split("/")[0]
    elif host in YOUTUBE_HOSTNAMES:
        if parsed.path == "/watch":
            video_id = parse_qs(parsed.query).get("v", [None])[0]
        elif parsed.path.startswith(("/embed/", "/shorts/", "/live/")):
            video_id = parsed.path.split("/")[2]

    if video_id and _YOUTUBE_VIDEO_ID_PATTERN.match(video_id):
        return video_id
    return None


def get_youtube_channel_id(url: str) -> Optional[str]:
    """Channel id from a ``/channel/UC...`` URL, or None."""
    if _hostname(url) not in YOUTUBE_HOSTNAMES:
        return None
    match = _YOUTUBE_CHANNEL_PATH_PATTERN.match(urlparse(url).path)
    return match.group(1) if match else None


def is_youtube_handle_url(url: str) -> bool:
    if _hostname(url) not in YOUTUBE_HOSTNAMES:
        return False
    return bool(_YOUTUBE_HANDLE_PATH_PATTERN.match(urlparse(url).path))


def get_xkcd_comic_id(url: str) -> Optional[int]:
    if _hostname(url) not in XKCD_HOSTNAMES:
        return None
    match = _XKCD_PATH_PATTERN.match(urlparse(url).path)
    return int(match.group(1)) if match else None


def is_tweet_url(url: str) -> bool:
    if _hostname(url) not in TWITTER_HOSTNAMES:
        return False
    return bool(_TWEET_PATH_PATTERN.match(urlparse(url).path))


def get_feed_item_type_from_url(url: str, feed_source_type: FeedSourceType) -> FeedItemType:
    if get_youtube_video_id(url):
        return FeedItemType.VIDEO
    if get_xkcd_comic_id(url) is not None:
        return FeedItemType.XKCD
    if is_tweet_url(url):
        return FeedItemType.TWEET
    if feed_source_type == FeedSourceType.RSS:
        return FeedItemType.ARTICLE
    return FeedItemType.WEBSITE


def make_absolute_url(url: str, base_url: str) -> str:
    """
    Resolve ``url`` against ``base_url``. Protocol-relative URLs always become
    https.
    """
    url = url.strip()
    if url.startswith("//"):
        return f"https:{url}"
    return urljoin(base_url, url)
