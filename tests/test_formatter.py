"""Tests for summary formatting."""

from thread_wrangler.server.apps.wrangler.client import HostError
from thread_wrangler.server.apps.wrangler.executor import OperationResult
from thread_wrangler.server.apps.wrangler.formatter import (
    SummaryFormatter,
    make_post_link,
    quote_block,
)
from thread_wrangler.server.apps.wrangler.models import Channel, Post
from thread_wrangler.server.apps.wrangler.policy import Destination

LINK = "http://chat.example.com/team-one/pl/newroot"


def _result(created=3, delete_failures=()):
    result = OperationResult(
        intended=3, destination=Destination(Channel(id="dst", team_id="t"))
    )
    for i in range(created):
        source = Post(id=f"old{i}", user_id="u", channel_id="src")
        new = Post(id=f"new{i}", user_id="u", channel_id="dst")
        result.created.append((source, new))
    for post_id in delete_failures:
        result.delete_failures.append((post_id, HostError("nope", 403)))
    return result


class TestHelpers:
    def test_post_link(self):
        assert make_post_link("http://chat.example.com/", "team-one", "abc") == (
            "http://chat.example.com/team-one/pl/abc"
        )

    def test_quote_block_single_line(self):
        assert quote_block("This is message 1") == "> This is message 1"

    def test_quote_block_multi_line(self):
        assert quote_block("line one\nline two") == "> line one\n> line two"


class TestFormatMove:
    def test_with_root_message(self):
        text = SummaryFormatter.format_move(
            _result(), LINK, root_message="This is message 1"
        )
        assert text == (
            f"A thread with 3 messages has been moved: {LINK}\n"
            "\n> This is message 1\n"
        )

    def test_without_root_message(self):
        text = SummaryFormatter.format_move(
            _result(), LINK, root_message="This is message 1", show_root_message=False
        )
        assert text == f"A thread with 3 messages has been moved: {LINK}\n"

    def test_silent(self):
        text = SummaryFormatter.format_move(
            _result(), LINK, root_message="This is message 1", silent=True
        )
        assert text == f"A thread with 3 message(s) has been silently moved: {LINK}\n"

    def test_count_reflects_created_posts(self):
        text = SummaryFormatter.format_move(_result(created=1), LINK)
        assert text.startswith("A thread with 1 messages has been moved")

    def test_delete_warnings_appended(self):
        text = SummaryFormatter.format_move(
            _result(delete_failures=["old1", "old2"]), LINK, show_root_message=False
        )
        assert text.startswith(f"A thread with 3 messages has been moved: {LINK}\n")
        assert "Warning: 2 original message(s) could not be deleted" in text
        assert "old1, old2" in text


class TestOtherFormats:
    def test_copy(self):
        text = SummaryFormatter.format_copy(_result(), LINK, root_message="hi")
        assert text == f"A thread with 3 messages has been copied: {LINK}\n\n> hi\n"

    def test_attach(self):
        text = SummaryFormatter.format_attach(_result(created=1), LINK)
        assert text == f"Message successfully attached to thread: {LINK}\n"

    def test_partial_failure(self):
        result = _result(created=2)
        result.failure = HostError("disk full", 500)
        text = SummaryFormatter.format_partial_failure(result, LINK)
        assert "2 of 3 messages were created" in text
        assert LINK in text
        assert "No original messages were deleted" in text
        assert "Reason: disk full" in text

    def test_help_lists_commands(self):
        text = SummaryFormatter.format_help()
        for command in ("move-thread", "copy-thread", "attach-message", "info"):
            assert command in text
        assert "--silent" in text
