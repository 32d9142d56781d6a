"""Unit tests for the file-backed feed and visibility filtering."""

import pytest

from tweetrater.services.feed import FeedExtractor, load_items
from tweetrater.services.filtering import is_visible


class TestLoadItems:
    """Test reading items from JSON lines."""

    def test_reads_items_in_order(self, tmp_path):
        """Test each line becomes an item; blank lines are skipped."""
        path = tmp_path / "feed.jsonl"
        path.write_text(
            '{"item_id": "1", "author_handle": "a", "text": "first"}\n'
            "\n"
            '{"item_id": "2", "author_handle": "b", "text": "second", "media_urls": ["https://img/1.jpg"]}\n'
        )

        items = load_items(path)

        assert [item.item_id for item in items] == ["1", "2"]
        assert items[1].media_urls == ["https://img/1.jpg"]

    def test_invalid_line_reports_position(self, tmp_path):
        """Test a bad line raises ValueError naming the line."""
        path = tmp_path / "feed.jsonl"
        path.write_text('{"item_id": "1"}\n{"text": "no id"}\n')

        with pytest.raises(ValueError) as exc_info:
            load_items(path)

        assert ":2:" in str(exc_info.value)


class TestFeedExtractor:
    """Test the structural signals of FeedExtractor."""

    def test_root_and_items(self, make_item):
        extractor = FeedExtractor()
        root = make_item("1", conversation_id="c", is_thread_root=True)
        extractor.reveal(root)

        assert extractor.root_item("c") == root
        assert extractor.get_item("1") == root
        assert extractor.root_item("other") is None

    def test_reply_ready_only_with_later_sibling(self, make_item):
        """Test a reply is handed out once a later reply is revealed, and only once."""
        extractor = FeedExtractor()
        extractor.reveal(make_item("r1", conversation_id="c"))

        assert extractor.find_next_unprocessed_sibling("c") is None

        extractor.reveal(make_item("r2", conversation_id="c"))

        assert extractor.find_next_unprocessed_sibling("c") == "r1"
        assert extractor.find_next_unprocessed_sibling("c") is None

    def test_released_reply_offered_again(self, make_item):
        """Test a released reply is handed out again."""
        extractor = FeedExtractor()
        extractor.reveal(make_item("r1", conversation_id="c"))
        extractor.reveal(make_item("r2", conversation_id="c"))
        assert extractor.find_next_unprocessed_sibling("c") == "r1"

        extractor.release_sibling("c", "r1")

        assert extractor.find_next_unprocessed_sibling("c") == "r1"


class TestIsVisible:
    """Test visibility decisions."""

    def test_pending_always_visible(self):
        assert is_visible(None, "pending", 10)

    def test_streaming_always_visible(self):
        """Test a partial or missing score during streaming never hides an item."""
        assert is_visible(None, "streaming", 5)
        assert is_visible(2, "streaming", 5)

    @pytest.mark.parametrize("score,status,threshold,expected", [
        (8, "rated", 5, True),
        (5, "rated", 5, True),
        (4, "rated", 5, False),
        (10, "blacklisted", 10, True),
        (5, "error", 6, False),
        (None, "rated", 1, True),
        (None, "error", 2, False),
    ])
    def test_threshold(self, score, status, threshold, expected):
        """Test scores below the threshold are hidden; no score counts as 1."""
        assert is_visible(score, status, threshold) is expected
