import logging
from typing import Optional, Tuple

import httpx

from src.gtfs_bc.feed.domain.exceptions import DownloadError

logger = logging.getLogger(__name__)


class FeedDownloader:
    """Fetches a feed archive, trying the fallback URL when the primary fails."""

    DOWNLOAD_TIMEOUT = 120.0

    def __init__(
        self,
        feed_url: str,
        fallback_url: Optional[str] = None,
        timeout: float = DOWNLOAD_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.feed_url = feed_url
        self.fallback_url = fallback_url
        self.timeout = timeout
        self._transport = transport

    def obtain(self, timeout: Optional[float] = None) -> Tuple[bytes, str]:
        """Download the feed and return (content, effective_url).

        Raises DownloadError when the primary and the fallback both fail.
        """
        try:
            return self._download(self.feed_url, timeout), self.feed_url
        except httpx.HTTPError as primary_error:
            logger.warning(f"Feed download from {self.feed_url} failed: {primary_error}")
            if not self._has_distinct_fallback():
                raise DownloadError(self.feed_url, str(primary_error)) from primary_error

            logger.info(f"Trying fallback feed URL {self.fallback_url}")
            try:
                return self._download(self.fallback_url, timeout), self.fallback_url
            except httpx.HTTPError as fallback_error:
                raise DownloadError(
                    self.feed_url,
                    str(primary_error),
                    self.fallback_url,
                    str(fallback_error),
                ) from fallback_error

    def _has_distinct_fallback(self) -> bool:
        if not self.fallback_url:
            return False
        return self.fallback_url.strip().lower() != self.feed_url.strip().lower()

    def _download(self, url: str, timeout: Optional[float]) -> bytes:
        logger.info(f"Downloading GTFS feed from {url}...")
        client_kwargs = {
            "timeout": timeout or self.timeout,
            "follow_redirects": True,
        }
        if self._transport is not None:
            client_kwargs["transport"] = self._transport

        with httpx.Client(**client_kwargs) as client:
            response = client.get(url)
            response.raise_for_status()

        logger.info(f"Downloaded {len(response.content)} bytes from {url}")
        return response.content
