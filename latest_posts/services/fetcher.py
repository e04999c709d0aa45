"""
Feed fetching service.

This module provides the FeedFetcher class, which downloads a publication's
feed through a FeedParser, validates the response and retries with backoff,
rotating the client identity between attempts.
"""

import logging
import threading
from typing import List, Optional, Sequence

import requests
from latest_posts.models import PostRecord, SourceConfig
from latest_posts.normalizer import home_page, normalize_entry
from latest_posts.parsers.base import FeedParser
from latest_posts.services.retry import RetryError, RetryPolicy

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENTS = (
    "Mozilla/5.0 (compatible; Blog RSS Fetcher/1.0)",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.1 Safari/605.1.15",
    "Mozilla/5.0 (X11; Linux x86_64; rv:121.0) Gecko/20100101 Firefox/121.0",
)


class FetchError(Exception):
    """A fetch attempt failed in a way worth retrying."""


class FeedFetcher:
    """Fetches the latest posts of a publication with retries."""

    def __init__(
        self,
        parser: FeedParser,
        retry_policy: Optional[RetryPolicy] = None,
        user_agents: Sequence[str] = DEFAULT_USER_AGENTS,
        timeout: float = 15,
        min_body_length: int = 50,
        session: Optional[requests.Session] = None,
    ):
        if not user_agents:
            raise ValueError("user_agents must not be empty")
        self.parser = parser
        self.retry_policy = retry_policy or RetryPolicy(
            retry_on=(FetchError, requests.RequestException)
        )
        self.user_agents = list(user_agents)
        self.timeout = timeout
        self.min_body_length = min_body_length
        self._session = session
        self._local = threading.local()

    @property
    def session(self) -> requests.Session:
        """The injected session, or one requests.Session per thread."""
        if self._session is not None:
            return self._session
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            self._local.session = session
        return session

    def _headers(self, source_id: str, attempt: int) -> dict:
        """Builds request headers, rotating the User-Agent per attempt."""
        return {
            "User-Agent": self.user_agents[attempt % len(self.user_agents)],
            "Accept": self.parser.accept,
            "Cache-Control": "no-cache",
            "Pragma": "no-cache",
            "Referer": home_page(source_id) + "/",
            "DNT": "1",
            "Connection": "keep-alive",
        }

    def _attempt(self, source: SourceConfig, limit: int, attempt: int) -> List[PostRecord]:
        """Performs a single request and returns normalized posts."""
        url = self.parser.url_for(source["id"])
        logger.debug("GET %s (attempt %d)", url, attempt + 1)
        resp = self.session.get(
            url, headers=self._headers(source["id"], attempt), timeout=self.timeout
        )
        if not resp.ok:
            raise FetchError(f"HTTP {resp.status_code}: {resp.reason}")

        content = resp.content or b""
        body_length = len(content.strip())
        if body_length < self.min_body_length:
            raise FetchError(f"Response body too short ({body_length} bytes)")

        entries = self.parser.parse(content)
        if not entries:
            raise FetchError(f"No posts found in {self.parser.origin}")

        return [normalize_entry(entry, source) for entry in entries[:limit]]

    def fetch_posts(self, source: SourceConfig, limit: int = 3) -> Optional[List[PostRecord]]:
        """
        Fetches up to `limit` posts for a source.

        Returns None once every attempt has failed, so the caller can decide
        whether to abort.
        """
        url = self.parser.url_for(source["id"])
        try:
            posts = self.retry_policy.call(
                lambda attempt: self._attempt(source, limit, attempt), label=url
            )
        except RetryError as e:
            logger.error(
                "Error fetching %s after %d attempts: %s",
                url,
                e.attempts,
                e.last_error,
            )
            return None

        logger.info("Fetched %d posts for %s", len(posts), source["name"])
        return posts
