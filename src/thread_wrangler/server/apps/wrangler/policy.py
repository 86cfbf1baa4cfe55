"""Policy validation for wrangler commands.

Every check is a pure function of the configuration snapshot, channel
metadata, the thread snapshot and the invocation context. Checks run in
a fixed order and the first failure is raised; nothing here talks to
the host, so a refusal never leaves a partial mutation behind.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass

from thread_wrangler.schema import WranglerConfig

from .errors import (
    AlreadyThreadedError,
    AttachFromInsideThreadError,
    AttachWrongChannelError,
    ChannelKindDisabled,
    CrossTeamDisabledError,
    CrossTeamMoveDisabled,
    DestinationInsideThreadError,
    DifferentChannelError,
    InvokedFromInsideThreadError,
    MissingArgumentsError,
    PermissionDeniedError,
    SameIDError,
    ThreadTooLongError,
    UnresolvableDestinationError,
    WrongChannelError,
)
from .models import Channel, ChannelType, Post, User
from .snapshot import ThreadSnapshot


@dataclass(frozen=True)
class InvocationContext:
    """Where and by whom a command was run."""

    channel_id: str
    user_id: str = ""
    team_id: str = ""
    # Set when the command was typed inside a thread
    root_id: str = ""
    parent_id: str = ""

    def is_inside(self, post_id: str) -> bool:
        return bool(post_id) and post_id in (self.root_id, self.parent_id)


@dataclass(frozen=True)
class Destination:
    """Where a thread is going.

    ``root_id`` is set when the destination is an existing thread; the
    relocated posts then become replies to it.
    """

    channel: Channel
    root_id: str = ""

    @property
    def channel_id(self) -> str:
        return self.channel.id

    @property
    def team_id(self) -> str:
        return self.channel.team_id


@dataclass(frozen=True)
class MoveRequest:
    source_channel: Channel  # the channel the command ran in
    snapshot: ThreadSnapshot
    destination_id: str
    # None when the id did not resolve or the invoker is not a member
    destination: Destination | None


@dataclass(frozen=True)
class AttachRequest:
    post_to_attach: Post
    post_to_attach_to: Post
    # Size of the thread rooted at post_to_attach (1 = no replies)
    attach_thread_size: int = 1


MoveCheck = Callable[[WranglerConfig, MoveRequest, InvocationContext], None]
AttachCheck = Callable[[AttachRequest, InvocationContext], None]

_KIND_LABELS = {
    ChannelType.PRIVATE: "private channels",
    ChannelType.DIRECT: "direct message channels",
    ChannelType.GROUP: "group message channels",
}


def check_argument_count(args: Sequence[str], minimum: int = 2) -> None:
    if len(args) < minimum:
        raise MissingArgumentsError()


def check_permission(config: WranglerConfig, user: User) -> None:
    """Only users from the allowed email domains may run commands."""
    domains = config.allowed_email_domains
    if domains and user.email_domain not in domains:
        raise PermissionDeniedError()


def _kind_enabled(config: WranglerConfig, kind: ChannelType | str) -> bool:
    if kind == ChannelType.PRIVATE:
        return config.move_thread_from_private_channel_enable
    if kind == ChannelType.DIRECT:
        return config.move_thread_from_direct_message_channel_enable
    if kind == ChannelType.GROUP:
        return config.move_thread_from_group_message_channel_enable
    return True


def _crosses_teams(request: MoveRequest) -> bool:
    if request.destination is None:
        return False
    return request.destination.team_id != request.source_channel.team_id


# --- Move thread ---


def check_source_channel_kind(
    config: WranglerConfig, request: MoveRequest, ctx: InvocationContext
) -> None:
    kind = request.source_channel.type
    if not _kind_enabled(config, kind):
        raise ChannelKindDisabled(_KIND_LABELS[ChannelType(kind)])


def check_direct_or_group_cross_team(
    config: WranglerConfig, request: MoveRequest, ctx: InvocationContext
) -> None:
    # Direct and group channels belong to no team, so any destination
    # that does lies on "another team".
    if not request.source_channel.is_direct_or_group:
        return
    if config.move_thread_to_another_team_enable:
        return
    if _crosses_teams(request):
        raise CrossTeamDisabledError()


def check_thread_length(
    config: WranglerConfig, request: MoveRequest, ctx: InvocationContext
) -> None:
    limit = config.max_thread_count
    if limit and len(request.snapshot) > limit:
        raise ThreadTooLongError(len(request.snapshot), limit)


def check_invoked_from_thread_channel(
    config: WranglerConfig, request: MoveRequest, ctx: InvocationContext
) -> None:
    if ctx.channel_id != request.snapshot.channel_id:
        raise WrongChannelError()


def check_not_inside_thread(
    config: WranglerConfig, request: MoveRequest, ctx: InvocationContext
) -> None:
    if ctx.is_inside(request.snapshot.root.id):
        raise InvokedFromInsideThreadError()


def check_destination(
    config: WranglerConfig, request: MoveRequest, ctx: InvocationContext
) -> None:
    if request.destination is None:
        raise UnresolvableDestinationError(request.destination_id)


def check_destination_outside_thread(
    config: WranglerConfig, request: MoveRequest, ctx: InvocationContext
) -> None:
    destination = request.destination
    if destination is not None and destination.root_id in request.snapshot.post_ids:
        raise DestinationInsideThreadError()


def check_cross_team(
    config: WranglerConfig, request: MoveRequest, ctx: InvocationContext
) -> None:
    if not config.move_thread_to_another_team_enable and _crosses_teams(request):
        raise CrossTeamMoveDisabled()


MOVE_THREAD_CHECKS: tuple[MoveCheck, ...] = (
    check_source_channel_kind,
    check_direct_or_group_cross_team,
    check_thread_length,
    check_invoked_from_thread_channel,
    check_not_inside_thread,
    check_destination,
    check_destination_outside_thread,
    check_cross_team,
)


def validate_move_thread(
    config: WranglerConfig, request: MoveRequest, ctx: InvocationContext
) -> None:
    """Raise the first failing check for a move (or copy) request."""
    for check in MOVE_THREAD_CHECKS:
        check(config, request, ctx)


# --- Attach message ---


def check_distinct_ids(post_id: str, target_id: str) -> None:
    if post_id == target_id:
        raise SameIDError()


def check_attach_invoked_from_channel(
    request: AttachRequest, ctx: InvocationContext
) -> None:
    if ctx.channel_id != request.post_to_attach.channel_id:
        raise AttachWrongChannelError()


def check_attach_not_inside_thread(
    request: AttachRequest, ctx: InvocationContext
) -> None:
    if ctx.is_inside(request.post_to_attach.id):
        raise AttachFromInsideThreadError()


def check_same_channel(request: AttachRequest, ctx: InvocationContext) -> None:
    if request.post_to_attach_to.channel_id != request.post_to_attach.channel_id:
        raise DifferentChannelError()


def check_not_threaded(request: AttachRequest, ctx: InvocationContext) -> None:
    if request.post_to_attach.is_reply or request.attach_thread_size > 1:
        raise AlreadyThreadedError()


ATTACH_MESSAGE_CHECKS: tuple[AttachCheck, ...] = (
    check_attach_invoked_from_channel,
    check_attach_not_inside_thread,
    check_same_channel,
    check_not_threaded,
)


def validate_attach_message(request: AttachRequest, ctx: InvocationContext) -> None:
    """Raise the first failing check for an attach request."""
    for check in ATTACH_MESSAGE_CHECKS:
        check(request, ctx)
