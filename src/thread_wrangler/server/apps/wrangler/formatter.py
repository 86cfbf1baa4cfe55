"""Format command outcomes for the operator.

Turns an OperationResult into the reply text: a confirmation line with
the message count and a permalink to the new thread, optionally followed
by the quoted root message. Output depends only on the inputs.
"""

from __future__ import annotations

from thread_wrangler.conventions import PERMALINK_SEGMENT

from .executor import OperationResult


def make_post_link(site_url: str, team_name: str, post_id: str) -> str:
    """Permalink to a post: {site_url}/{team}/pl/{post_id}."""
    return f"{site_url.rstrip('/')}/{team_name}/{PERMALINK_SEGMENT}/{post_id}"


def quote_block(text: str) -> str:
    """Quote every line of *text* in markdown."""
    return "> " + text.replace("\n", "\n> ")


class SummaryFormatter:
    """Builds the reply text for wrangler commands."""

    @staticmethod
    def format_move(
        result: OperationResult,
        link: str,
        root_message: str = "",
        silent: bool = False,
        show_root_message: bool = True,
    ) -> str:
        """Summary of a completed move.

        Silent mode uses its own phrasing and never quotes the root.
        """
        count = len(result.created)
        if silent:
            text = f"A thread with {count} message(s) has been silently moved: {link}\n"
        else:
            text = f"A thread with {count} messages has been moved: {link}\n"
            if show_root_message and root_message:
                text += f"\n{quote_block(root_message)}\n"
        return text + SummaryFormatter.format_warnings(result)

    @staticmethod
    def format_copy(
        result: OperationResult,
        link: str,
        root_message: str = "",
        silent: bool = False,
        show_root_message: bool = True,
    ) -> str:
        count = len(result.created)
        if silent:
            return (
                f"A thread with {count} message(s) has been silently copied: {link}\n"
            )
        text = f"A thread with {count} messages has been copied: {link}\n"
        if show_root_message and root_message:
            text += f"\n{quote_block(root_message)}\n"
        return text

    @staticmethod
    def format_attach(result: OperationResult, link: str) -> str:
        text = f"Message successfully attached to thread: {link}\n"
        return text + SummaryFormatter.format_warnings(result)

    @staticmethod
    def format_warnings(result: OperationResult) -> str:
        """Warning lines for originals that could not be deleted."""
        if not result.delete_failures:
            return ""
        ids = ", ".join(post_id for post_id, _ in result.delete_failures)
        return (
            f"\nWarning: {len(result.delete_failures)} original message(s) "
            f"could not be deleted and must be removed manually: {ids}\n"
        )

    @staticmethod
    def format_partial_failure(result: OperationResult, link: str) -> str:
        """Explain how far a failed relocation got."""
        text = (
            f"Error: the operation stopped part way. "
            f"{len(result.created)} of {result.intended} messages were "
            f"created at the destination: {link}\n"
            "No original messages were deleted. Remove the partial copy or "
            "re-run the command once the problem is fixed.\n"
        )
        if result.failure is not None:
            text += f"Reason: {result.failure.message}\n"
        return text

    @staticmethod
    def format_help() -> str:
        return (
            "Wrangler commands:\n"
            "• `move-thread <post-or-thread-id> <channel-or-post-id> "
            "[--silent] [--show-root-message-in-summary=true|false]` - "
            "Move a thread to another channel or into another thread\n"
            "• `copy-thread <post-or-thread-id> <channel-or-post-id> "
            "[--silent] [--show-root-message-in-summary=true|false]` - "
            "Copy a thread, leaving the original in place\n"
            "• `attach-message <post-id-to-attach> <post-id-to-attach-to>` - "
            "Attach a message to a thread in the same channel\n"
            "• `info` - Show version\n"
            "• `help` - Show this help\n"
        )
