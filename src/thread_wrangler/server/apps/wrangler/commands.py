"""Command handlers for the wrangler.

Maps a raw argument list plus the invocation context onto the policy
validator and the relocation executor, and turns every outcome into a
CommandResult:

- text: what the operator sees
- is_user_error: the refusal came from operator input or validation
- error: set only for unexpected host failures

A policy decline (feature switched off) is reported with
is_user_error=False and no error; it is an administrative answer, not a
usage mistake.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import ClassVar, TypeVar

from thread_wrangler import __version__
from thread_wrangler.config import ConfigurationStore
from thread_wrangler.conventions import (
    COMMAND_ATTACH_MESSAGE,
    COMMAND_COPY_THREAD,
    COMMAND_MOVE_THREAD,
    FLAG_SHOW_ROOT_MESSAGE,
    FLAG_SILENT,
    PERMALINK_SEGMENT,
    TRIGGER,
)
from thread_wrangler.schema import WranglerSettings

from .client import HostClient, HostError
from .errors import (
    EmptyThreadError,
    HostFailure,
    InvalidFlagValueError,
    PartialExecutionFailure,
    PermissionDeniedError,
    ThreadNotFoundError,
    UnknownFlagError,
    UnresolvableIDError,
    WranglerError,
)
from .executor import RelocationExecutor
from .formatter import SummaryFormatter, make_post_link
from .models import Channel, Post
from .policy import (
    AttachRequest,
    Destination,
    InvocationContext,
    MoveRequest,
    check_argument_count,
    check_distinct_ids,
    check_permission,
    validate_attach_message,
    validate_move_thread,
)
from .snapshot import ThreadSnapshot, build_thread_snapshot

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Team segment that lets the host pick the team when resolving a permalink
_REDIRECT_TEAM = "_redirect"

_PERMALINK_ID = re.compile(rf"/{PERMALINK_SEGMENT}/([A-Za-z0-9_-]+)/?$")


@dataclass
class CommandResult:
    """Result of a command execution."""

    text: str = ""
    is_user_error: bool = False
    error: Exception | None = None


@dataclass(frozen=True)
class MoveOptions:
    silent: bool = False
    show_root_message: bool = True


def clean_input_id(raw: str) -> str:
    """Accept a bare id or a permalink ending in /pl/<id>."""
    value = raw.strip()
    match = _PERMALINK_ID.search(value)
    if match:
        return match.group(1)
    return value


def _parse_bool(flag: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("true", "1", "yes"):
        return True
    if lowered in ("false", "0", "no"):
        return False
    raise InvalidFlagValueError(flag, value)


def parse_flags(args: list[str]) -> tuple[list[str], MoveOptions]:
    """Split positional arguments from --flags.

    Examples:
        ["a", "b"] -> (["a", "b"], MoveOptions())
        ["a", "b", "--silent"] -> (["a", "b"], MoveOptions(silent=True))
        ["a", "--show-root-message-in-summary=false", "b"]
            -> (["a", "b"], MoveOptions(show_root_message=False))
    """
    positional: list[str] = []
    silent = False
    show_root_message = True

    for arg in args:
        if not arg.startswith("--"):
            positional.append(arg)
            continue
        name, sep, value = arg.partition("=")
        if name == FLAG_SILENT:
            silent = _parse_bool(name, value) if sep else True
        elif name == FLAG_SHOW_ROOT_MESSAGE:
            show_root_message = _parse_bool(name, value) if sep else True
        else:
            raise UnknownFlagError(name)

    return positional, MoveOptions(silent=silent, show_root_message=show_root_message)


class CommandHandler:
    """Handles wrangler slash commands.

    The configuration is read once per command; a change installed while
    a command runs does not affect it.
    """

    COMMANDS: ClassVar[dict[str, str]] = {
        COMMAND_MOVE_THREAD: "Move a thread to another channel or thread",
        COMMAND_COPY_THREAD: "Copy a thread to another channel or thread",
        COMMAND_ATTACH_MESSAGE: "Attach a message to a thread",
        "info": "Show version",
        "help": "Show help",
    }

    def __init__(
        self,
        client: HostClient,
        config_store: ConfigurationStore,
    ) -> None:
        self._client = client
        self._config_store = config_store

    def parse_command(self, text: str) -> tuple[str, list[str]]:
        """Parse a command from slash-command text.

        Examples:
            "/wrangler move-thread abc def" -> ("move-thread", ["abc", "def"])
            "move thread abc def" -> ("move-thread", ["abc", "def"])
            "" -> ("help", [])
        """
        parts = text.split()
        if parts and parts[0].lstrip("/").lower() == TRIGGER:
            parts = parts[1:]
        if not parts:
            return "help", []

        # Two-word forms: "move thread", "attach message"
        if len(parts) >= 2:
            joined = f"{parts[0]}-{parts[1]}".lower()
            if joined in self.COMMANDS:
                return joined, parts[2:]

        return parts[0].lower(), parts[1:]

    async def handle(
        self, command: str, args: list[str], ctx: InvocationContext
    ) -> CommandResult:
        """Route and execute a command."""
        handler = getattr(self, f"cmd_{command.replace('-', '_')}", None)
        if handler is None:
            return CommandResult(
                text=f"Unknown command: `{command}`. Try `help` for the command list.",
                is_user_error=True,
            )

        settings = self._config_store.get()
        try:
            await self._check_permission(settings, ctx)
            return await handler(args, ctx, settings)
        except HostFailure as e:
            logger.exception("Host failure in %s for user %s", command, ctx.user_id)
            return CommandResult(text=e.message, is_user_error=False, error=e)
        except WranglerError as e:
            return CommandResult(text=e.message, is_user_error=e.is_user_error)
        except HostError as e:
            logger.exception("Host error running %s for user %s", command, ctx.user_id)
            return CommandResult(
                text=HostFailure.default_message, is_user_error=False, error=e
            )

    async def _check_permission(
        self, settings: WranglerSettings, ctx: InvocationContext
    ) -> None:
        if not settings.wrangler.allowed_email_domains:
            return
        try:
            user = await self._client.get_user(ctx.user_id)
        except HostError as e:
            if e.status_code >= 500:
                raise
            raise PermissionDeniedError() from e
        check_permission(settings.wrangler, user)

    # --- Commands ---

    async def cmd_help(
        self, args: list[str], ctx: InvocationContext, settings: WranglerSettings
    ) -> CommandResult:
        """Show help."""
        return CommandResult(text=SummaryFormatter.format_help())

    async def cmd_info(
        self, args: list[str], ctx: InvocationContext, settings: WranglerSettings
    ) -> CommandResult:
        """Show version."""
        return CommandResult(text=f"Thread Wrangler version {__version__}")

    async def cmd_move_thread(
        self, args: list[str], ctx: InvocationContext, settings: WranglerSettings
    ) -> CommandResult:
        """Move a thread, deleting the originals."""
        return await self._relocate_thread(args, ctx, settings, delete_originals=True)

    async def cmd_copy_thread(
        self, args: list[str], ctx: InvocationContext, settings: WranglerSettings
    ) -> CommandResult:
        """Copy a thread, leaving the originals in place."""
        return await self._relocate_thread(args, ctx, settings, delete_originals=False)

    async def cmd_attach_message(
        self, args: list[str], ctx: InvocationContext, settings: WranglerSettings
    ) -> CommandResult:
        """Turn a standalone message into a reply of another thread."""
        check_argument_count(args)
        attach_id = clean_input_id(args[0])
        target_id = clean_input_id(args[1])
        check_distinct_ids(attach_id, target_id)

        post_to_attach = await self._get_message(attach_id)
        post_to_attach_to = await self._get_message(target_id)
        thread_size = 1
        if not post_to_attach.is_reply:
            thread_size = len(await self._client.get_post_thread(post_to_attach.id))

        validate_attach_message(
            AttachRequest(
                post_to_attach=post_to_attach,
                post_to_attach_to=post_to_attach_to,
                attach_thread_size=thread_size,
            ),
            ctx,
        )

        channel = await self._client.get_channel(post_to_attach.channel_id)
        destination = Destination(
            channel=channel,
            root_id=post_to_attach_to.root_id or post_to_attach_to.id,
        )
        snapshot = ThreadSnapshot.from_posts([post_to_attach])
        result = await RelocationExecutor(self._client).execute(snapshot, destination)

        new_post = result.created_posts[0]
        link = await self._post_link(destination, new_post.id, ctx)
        logger.info(
            "Attached message: user=%s original=%s new=%s thread=%s channel=%s",
            ctx.user_id,
            post_to_attach.id,
            new_post.id,
            destination.root_id,
            channel.id,
        )
        return CommandResult(text=SummaryFormatter.format_attach(result, link))

    # --- Helpers ---

    async def _relocate_thread(
        self,
        args: list[str],
        ctx: InvocationContext,
        settings: WranglerSettings,
        delete_originals: bool,
    ) -> CommandResult:
        positional, options = parse_flags(args)
        check_argument_count(positional)
        post_id = clean_input_id(positional[0])
        destination_id = clean_input_id(positional[1])

        try:
            snapshot = await build_thread_snapshot(self._client, post_id)
        except EmptyThreadError:
            raise ThreadNotFoundError(post_id) from None

        source_channel = await self._get_invoking_channel(ctx)
        destination = await self._resolve_destination(destination_id, ctx)

        request = MoveRequest(
            source_channel=source_channel,
            snapshot=snapshot,
            destination_id=destination_id,
            destination=destination,
        )
        validate_move_thread(settings.wrangler, request, ctx)
        assert destination is not None

        executor = RelocationExecutor(self._client)
        try:
            result = await executor.execute(
                snapshot, destination, delete_originals=delete_originals
            )
        except PartialExecutionFailure as e:
            link = await self._post_link(destination, e.result.new_root_id, ctx)
            logger.error(
                "Thread relocation incomplete: user=%s original_root=%s "
                "destination=%s created=%d intended=%d cause=%s",
                ctx.user_id,
                snapshot.root.id,
                destination.channel_id,
                len(e.result.created),
                e.result.intended,
                e.cause,
            )
            return CommandResult(
                text=SummaryFormatter.format_partial_failure(e.result, link),
                is_user_error=False,
                error=e,
            )

        link = await self._post_link(destination, result.new_root_id, ctx)
        logger.info(
            "Thread %s: user=%s original_root=%s new_root=%s from=%s to=%s "
            "posts=%d reactions=%d delete_failures=%d",
            "moved" if delete_originals else "copied",
            ctx.user_id,
            snapshot.root.id,
            result.new_root_id,
            snapshot.channel_id,
            destination.channel_id,
            len(result.created),
            len(result.reactions),
            len(result.delete_failures),
        )

        if delete_originals and not options.silent:
            await self._notify_thread_author(settings, snapshot, ctx, link)

        format_summary = (
            SummaryFormatter.format_move
            if delete_originals
            else SummaryFormatter.format_copy
        )
        return CommandResult(
            text=format_summary(
                result,
                link,
                root_message=snapshot.root.message,
                silent=options.silent,
                show_root_message=options.show_root_message,
            )
        )

    async def _get_message(self, post_id: str) -> Post:
        try:
            return await self._client.get_post(post_id)
        except HostError as e:
            if e.status_code >= 500:
                raise
            raise UnresolvableIDError(post_id) from e

    async def _get_invoking_channel(self, ctx: InvocationContext) -> Channel:
        """The channel the command ran in.

        A channel the host does not know cannot hold the thread, so it is
        treated as an untyped channel and the location check rejects it.
        """
        try:
            return await self._client.get_channel(ctx.channel_id)
        except HostError as e:
            if e.status_code >= 500:
                raise
            return Channel(id=ctx.channel_id, team_id=ctx.team_id, type="")

    async def _resolve_destination(
        self, destination_id: str, ctx: InvocationContext
    ) -> Destination | None:
        """Resolve a channel id, or a post id meaning "into that thread".

        Returns None when nothing resolves or the invoker is not a member
        of the destination channel.
        """
        root_id = ""
        channel = await self._lookup(self._client.get_channel, destination_id)
        if channel is None:
            post = await self._lookup(self._client.get_post, destination_id)
            if post is None:
                return None
            root_id = post.root_id or post.id
            channel = await self._lookup(self._client.get_channel, post.channel_id)
            if channel is None:
                return None

        member = await self._lookup(
            self._client.get_channel_member, channel.id, ctx.user_id
        )
        if member is None:
            return None
        return Destination(channel=channel, root_id=root_id)

    @staticmethod
    async def _lookup(fetch: Callable[..., Awaitable[T]], *args: str) -> T | None:
        """Call a host getter; None on 4xx, re-raise server failures."""
        try:
            return await fetch(*args)
        except HostError as e:
            if e.status_code >= 500:
                raise
            return None

    async def _post_link(
        self, destination: Destination, post_id: str, ctx: InvocationContext
    ) -> str:
        """Permalink to *post_id*; the host resolves the team if unknown.

        Runs after posts were created, so lookup failures degrade the link
        (relative URL, redirect team) rather than fail the command.
        """
        site_url = ""
        try:
            site_url = (await self._client.get_server_config()).site_url
        except HostError as e:
            logger.warning("Could not look up site URL for link: %s", e)
        team_name = _REDIRECT_TEAM
        team_id = destination.team_id or ctx.team_id
        if team_id:
            try:
                team_name = (await self._client.get_team(team_id)).name
            except HostError as e:
                logger.warning("Could not look up team %s for link: %s", team_id, e)
        return make_post_link(site_url, team_name, post_id)

    async def _notify_thread_author(
        self,
        settings: WranglerSettings,
        snapshot: ThreadSnapshot,
        ctx: InvocationContext,
        link: str,
    ) -> None:
        """DM the root author that their thread moved (opt-in)."""
        bot_user_id = settings.host.bot_user_id
        author_id = snapshot.root.user_id
        if not settings.wrangler.notify_thread_author_enable or not bot_user_id:
            return
        if author_id in (ctx.user_id, bot_user_id):
            return

        try:
            mover = await self._client.get_user(ctx.user_id)
            channel = await self._client.get_direct_channel(bot_user_id, author_id)
            await self._client.create_post(
                Post(
                    id="",
                    user_id=bot_user_id,
                    channel_id=channel.id,
                    message=(
                        f"A thread you started was moved by @{mover.username}: {link}"
                    ),
                )
            )
        except HostError as e:
            logger.warning("Could not notify %s about moved thread: %s", author_id, e)

