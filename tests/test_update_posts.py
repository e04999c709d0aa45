"""Unit tests for update_posts module."""

import os
import tempfile
import unittest
from unittest.mock import MagicMock, mock_open, patch

from latest_posts import update_posts
from latest_posts.parsers.rss import RSSParser
from latest_posts.parsers.substack import SubstackArchiveParser

COMPONENT = """---
// Static post data from Substack feeds (auto-updated: 2024-01-01T00:00:00.000Z)
// Aditya's latest posts from Substack API
const adityaPosts: BlogPost[] = [
  {
    title: "Old post",
    date: "January 1, 2024",
    link: "https://adityaaswani.substack.com/p/old",
    description: "Old description"
  }
];

// Gentle Velocity latest posts from Substack API
const gentleVelocityPosts: BlogPost[] = [
];
---
<section></section>
"""

POST = {
    "title": "New post",
    "link": "https://adityaaswani.substack.com/p/new",
    "date": "January 5, 2024",
    "description": "Fresh",
}


class TestUpdatePosts(unittest.TestCase):
    """Test cases for the refresh workflow."""

    def setUp(self):
        fd, self.target = tempfile.mkstemp(suffix=".astro")
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(COMPONENT)
        self.config = dict(update_posts.DEFAULT_CONFIG)
        self.config["target"] = self.target
        self.sleeps = []

        self.fetcher = MagicMock()
        self.fetcher.parser = RSSParser()

    def tearDown(self):
        os.remove(self.target)

    def _read(self):
        with open(self.target, "r", encoding="utf-8") as f:
            return f.read()

    def test_success_rewrites_target(self):
        self.fetcher.fetch_posts.return_value = [POST]

        ok = update_posts.update_writing_section(
            self.config, fetcher=self.fetcher, sleep=self.sleeps.append
        )

        self.assertTrue(ok)
        content = self._read()
        self.assertIn('title: "New post"', content)
        self.assertNotIn("Old post", content)
        self.assertIn("// Gentle Velocity latest posts from RSS feed", content)
        self.assertIn("// Static post data from RSS feeds (auto-updated: ", content)
        self.assertTrue(content.endswith("---\n<section></section>\n"))

        # Sources are fetched one after the other with a pause in between
        sources = [c.args[0]["id"] for c in self.fetcher.fetch_posts.call_args_list]
        self.assertEqual(sources, ["adityaaswani", "gentlevelocity"])
        self.assertEqual(self.sleeps, [1.0])

    def test_failed_source_leaves_target_untouched(self):
        self.fetcher.fetch_posts.side_effect = [None, [POST]]

        ok = update_posts.update_writing_section(
            self.config, fetcher=self.fetcher, sleep=self.sleeps.append
        )

        self.assertFalse(ok)
        self.assertEqual(self._read(), COMPONENT)
        self.assertEqual(self.fetcher.fetch_posts.call_count, 2)

    def test_concurrent_mode_keeps_source_order(self):
        self.config["fetch_mode"] = "concurrent"

        def fetch(source, limit):
            return [dict(POST, title=source["name"])]

        self.fetcher.fetch_posts.side_effect = fetch

        ok = update_posts.update_writing_section(
            self.config, fetcher=self.fetcher, sleep=self.sleeps.append
        )

        self.assertTrue(ok)
        content = self._read()
        self.assertLess(content.index('"Aditya"'), content.index('"Gentle Velocity"'))
        self.assertEqual(self.sleeps, [])

    def test_build_fetcher_uses_transport(self):
        self.config["transport"] = "api"
        fetcher = update_posts.build_fetcher(self.config)
        self.assertIsInstance(fetcher.parser, SubstackArchiveParser)
        self.assertEqual(fetcher.retry_policy.max_attempts, 3)
        self.assertEqual(fetcher.retry_policy.delay_before(2), 4.0)

    def test_unknown_transport(self):
        self.config["transport"] = "carrier-pigeon"
        with self.assertRaises(ValueError):
            update_posts.build_parser(self.config)


class TestConfigAndMain(unittest.TestCase):
    @patch("builtins.open", new_callable=mock_open, read_data='{"max_posts": 5}')
    def test_load_config_merges_defaults(self, mock_file):
        config = update_posts.load_config("dummy_config.json")
        self.assertEqual(config["max_posts"], 5)
        self.assertEqual(len(config["sources"]), 2)
        self.assertEqual(config["transport"], "rss")

    def test_load_config_missing_file(self):
        config = update_posts.load_config("does_not_exist.json")
        self.assertEqual(config, update_posts.DEFAULT_CONFIG)

    @patch("latest_posts.update_posts.update_writing_section")
    @patch("latest_posts.update_posts.load_config")
    def test_main_exit_codes(self, mock_load_config, mock_update):
        mock_update.return_value = True
        self.assertEqual(update_posts.main(), 0)

        mock_update.return_value = False
        self.assertEqual(update_posts.main(), 1)

        mock_update.side_effect = OSError("disk full")
        self.assertEqual(update_posts.main(), 1)


if __name__ == "__main__":
    unittest.main()
