"""
Latest Posts Refresher
This script fetches the latest posts of two Substack publications and rewrites
the static post data in the site's WritingSection component.
"""

import concurrent.futures
import json
import logging
import os
import sys
import time
from typing import Any, Dict, List, Optional, Tuple

import requests
from latest_posts.models import PostRecord, SourceConfig
from latest_posts.parsers.base import FeedParser
from latest_posts.parsers.rss import RSSParser
from latest_posts.parsers.substack import SubstackArchiveParser
from latest_posts.services.fetcher import DEFAULT_USER_AGENTS, FeedFetcher, FetchError
from latest_posts.services.retry import RetryPolicy, linear_backoff
from latest_posts.services.template import patch_file


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

PARSERS = {
    "rss": RSSParser,
    "api": SubstackArchiveParser,
}

DEFAULT_CONFIG: Dict[str, Any] = {
    "sources": [
        {
            "id": "adityaaswani",
            "name": "Aditya",
            "label": "Aditya's latest posts",
            "variable": "adityaPosts",
        },
        {
            "id": "gentlevelocity",
            "name": "Gentle Velocity",
            "label": "Gentle Velocity latest posts",
            "variable": "gentleVelocityPosts",
        },
    ],
    "transport": "rss",
    "target": "src/components/WritingSection.astro",
    "max_posts": 3,
    "max_attempts": 3,
    "backoff_seconds": 2.0,
    "source_delay": 1.0,
    "fetch_mode": "sequential",
    "request_timeout": 15,
    "min_body_length": 50,
    "user_agents": list(DEFAULT_USER_AGENTS),
}


def load_config(config_filename: str = "config.json") -> Dict[str, Any]:
    """Loads configuration from a JSON file, merged over the defaults."""
    # Build absolute path relative to this script
    base_dir = os.path.dirname(os.path.abspath(__file__))
    config_path = os.path.join(base_dir, config_filename)

    config = dict(DEFAULT_CONFIG)
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            config.update(json.load(f))
    except FileNotFoundError:
        logger.warning("Config file not found at %s. Using defaults.", config_path)
    return config


def build_parser(config: Dict[str, Any]) -> FeedParser:
    """Returns the parser for the configured transport."""
    transport = config.get("transport", "rss")
    try:
        return PARSERS[transport]()
    except KeyError:
        raise ValueError(f"Unknown transport: {transport!r}") from None


def build_fetcher(config: Dict[str, Any], sleep=time.sleep) -> FeedFetcher:
    """Constructs a FeedFetcher from configuration."""
    policy = RetryPolicy(
        max_attempts=int(config["max_attempts"]),
        backoff=linear_backoff(float(config["backoff_seconds"])),
        retry_on=(FetchError, requests.RequestException),
        sleep=sleep,
    )
    return FeedFetcher(
        build_parser(config),
        retry_policy=policy,
        user_agents=config["user_agents"],
        timeout=config["request_timeout"],
        min_body_length=int(config["min_body_length"]),
    )


def fetch_all(
    fetcher: FeedFetcher, config: Dict[str, Any], sleep=time.sleep
) -> List[Tuple[SourceConfig, Optional[List[PostRecord]]]]:
    """Fetches every configured source, in source order."""
    sources: List[SourceConfig] = config["sources"]
    limit = int(config["max_posts"])

    if config.get("fetch_mode") == "concurrent":
        with concurrent.futures.ThreadPoolExecutor() as executor:
            futures = [
                executor.submit(fetcher.fetch_posts, source, limit)
                for source in sources
            ]
            return [
                (source, future.result()) for source, future in zip(sources, futures)
            ]

    # Fetch feeds sequentially to avoid rate limiting
    results = []
    for i, source in enumerate(sources):
        if i > 0:
            sleep(float(config["source_delay"]))
        results.append((source, fetcher.fetch_posts(source, limit)))
    return results


def update_writing_section(
    config: Dict[str, Any],
    fetcher: Optional[FeedFetcher] = None,
    sleep=time.sleep,
) -> bool:
    """
    Refreshes the target component. Returns False without touching the file
    if any source could not be fetched.
    """
    fetcher = fetcher or build_fetcher(config, sleep=sleep)

    logger.info("Fetching feeds...")
    results = fetch_all(fetcher, config, sleep=sleep)

    failed = [source["name"] for source, posts in results if posts is None]
    if failed:
        logger.warning("Failed to fetch %s, skipping update", ", ".join(failed))
        return False

    target = config["target"]
    updates = [(source, posts or []) for source, posts in results]
    patch_file(
        target,
        updates,
        origin=fetcher.parser.origin,
        feeds_origin=fetcher.parser.feeds_origin,
    )

    logger.info("Successfully updated %s with latest posts", target)
    for source, posts in updates:
        logger.info("%s posts: %d", source["name"], len(posts))
    return True


def main() -> int:
    """Main execution entry point."""
    try:
        config = load_config()
        success = update_writing_section(config)
    except Exception:  # pylint: disable=broad-exception-caught
        logger.exception("Error updating writing section")
        return 1
    return 0 if success else 1


if __name__ == "__main__":
    sys.exit(main())
