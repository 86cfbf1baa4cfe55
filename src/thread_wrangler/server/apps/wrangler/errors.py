"""Error taxonomy for wrangler commands.

Every refusal a command can produce is an exception carrying the exact
text shown to the operator:

- UsageError: malformed or missing arguments
- PolicyDecline: feature switched off by configuration (informational)
- ValidationError: wrong invocation location, bad cross references,
  thread too long, identifiers not found or not distinct
- PartialExecutionFailure: a host call failed after mutations committed
- HostFailure: an unexpected host error

``is_user_error`` decides how the dispatcher reports the refusal.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .executor import OperationResult


class WranglerError(Exception):
    """Base class. ``message`` is operator-facing text."""

    is_user_error = True
    default_message = "Error: unable to complete the command"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


# --- Usage ---


class UsageError(WranglerError):
    pass


class MissingArgumentsError(UsageError):
    default_message = "Error: missing arguments"


class UnknownFlagError(UsageError):
    def __init__(self, flag: str) -> None:
        self.flag = flag
        super().__init__(f"Error: unknown flag {flag}")


class InvalidFlagValueError(UsageError):
    def __init__(self, flag: str, value: str) -> None:
        self.flag = flag
        self.value = value
        super().__init__(
            f"Error: invalid value {value!r} for {flag}; expected true or false"
        )


# --- Policy declines (not user errors) ---


class PolicyDecline(WranglerError):
    is_user_error = False


class ChannelKindDisabled(PolicyDecline):
    def __init__(self, kind_label: str) -> None:
        self.kind_label = kind_label
        super().__init__(
            "Wrangler is currently configured to not allow moving posts "
            f"from {kind_label}"
        )


class CrossTeamMoveDisabled(PolicyDecline):
    default_message = (
        "Wrangler is currently configured to not allow moving messages "
        "to different teams"
    )


# --- Validation ---


class ValidationError(WranglerError):
    pass


class PermissionDeniedError(ValidationError):
    default_message = (
        "Permission denied. Please talk to your system administrator "
        "to get access."
    )


class CrossTeamDisabledError(ValidationError):
    """Direct/group source with a destination on another team."""

    default_message = (
        "Error: this command must be run from the channel containing the post"
    )


class WrongChannelError(ValidationError):
    default_message = (
        "Error: this command must be run from the channel containing the post"
    )


class InvokedFromInsideThreadError(ValidationError):
    default_message = (
        "Error: this command cannot be run from inside the thread; "
        "please run directly in the channel containing the thread"
    )


class ThreadTooLongError(ValidationError):
    def __init__(self, actual: int, limit: int) -> None:
        self.actual = actual
        self.limit = limit
        super().__init__(
            f"Error: the thread is {actual} posts long, but this command is "
            f"configured to only move threads of up to {limit} posts"
        )


class ThreadNotFoundError(ValidationError):
    def __init__(self, post_id: str) -> None:
        self.post_id = post_id
        super().__init__(
            f"Error: unable to get post with ID {post_id}; ensure this is correct"
        )


class DestinationInsideThreadError(ValidationError):
    default_message = "Error: a thread cannot be moved into itself"


class UnresolvableDestinationError(ValidationError):
    def __init__(self, channel_id: str) -> None:
        self.channel_id = channel_id
        super().__init__(
            f"Error: channel with ID {channel_id} doesn't exist "
            "or you are not a member"
        )


class SameIDError(ValidationError):
    default_message = "Error: the two provided message IDs should not be the same"


class UnresolvableIDError(ValidationError):
    def __init__(self, post_id: str) -> None:
        self.post_id = post_id
        super().__init__(
            f"Error: unable to get message with ID {post_id}; ensure this is correct"
        )


class AttachWrongChannelError(WrongChannelError):
    default_message = (
        "Error: the attach command must be run from the channel "
        "containing the messages"
    )


class AttachFromInsideThreadError(InvokedFromInsideThreadError):
    default_message = (
        "Error: the 'attach message' command cannot be run from inside the "
        "thread of the message being attached; please run directly in the "
        "channel containing the message you wish to attach"
    )


class DifferentChannelError(ValidationError):
    default_message = "Error: unable to attach message to a thread in another channel"


class AlreadyThreadedError(ValidationError):
    default_message = "Error: the message to be attached is already part of a thread"


# --- Execution ---


class EmptyThreadError(WranglerError):
    """Internal sentinel: the host returned a thread with no posts."""

    is_user_error = False


class PartialExecutionFailure(WranglerError):
    """Creation stopped part way; the destination holds a partial copy."""

    is_user_error = False

    def __init__(self, result: OperationResult, cause: BaseException) -> None:
        self.result = result
        self.cause = cause
        super().__init__(
            f"Error: the operation stopped after creating "
            f"{len(result.created)} of {result.intended} messages: {cause}"
        )


class HostFailure(WranglerError):
    is_user_error = False
    default_message = (
        "Error: the chat server failed to complete the request; "
        "check the server logs for details"
    )
