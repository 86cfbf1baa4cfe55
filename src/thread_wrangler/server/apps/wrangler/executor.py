"""Relocation executor - rebuilds a thread at its destination.

The host offers no move primitive, so a move is three passes over the
snapshot, strictly in order:

    VALIDATED -> CREATING -> REACTING -> DELETING -> COMPLETED

Creating is the only pass that can fail the operation. If post k cannot
be created the executor stops in PARTIALLY_FAILED with posts 1..k-1 left
at the destination; nothing is rolled back and nothing is deleted.
Reaction copies are best-effort. A failed deletion is recorded and the
move still completes, since the destination copy is authoritative once
it exists.

Posts are created one at a time; there is no locking of the source
thread, so two concurrent moves of the same thread can race.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import StrEnum

from thread_wrangler.conventions import ORIGINAL_POST_ID_PROP

from .client import HostClient, HostError
from .errors import HostFailure, PartialExecutionFailure
from .models import Post, Reaction
from .policy import Destination
from .snapshot import ThreadSnapshot

logger = logging.getLogger(__name__)


class ExecutorState(StrEnum):
    VALIDATED = "validated"
    CREATING = "creating"
    REACTING = "reacting"
    DELETING = "deleting"
    COMPLETED = "completed"
    PARTIALLY_FAILED = "partially_failed"


@dataclass
class OperationResult:
    """Progress of one relocation, accumulated in execution order."""

    intended: int
    destination: Destination
    state: ExecutorState = ExecutorState.VALIDATED
    # (source post, newly created post)
    created: list[tuple[Post, Post]] = field(default_factory=list)
    reactions: list[Reaction] = field(default_factory=list)
    reaction_failures: list[tuple[Reaction, HostError]] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    delete_failures: list[tuple[str, HostError]] = field(default_factory=list)
    failure: HostError | None = None

    @property
    def created_posts(self) -> list[Post]:
        return [new for _, new in self.created]

    @property
    def new_root_id(self) -> str:
        """Id of the thread root at the destination."""
        if self.destination.root_id:
            return self.destination.root_id
        if self.created:
            return self.created[0][1].id
        return ""

    @property
    def is_complete(self) -> bool:
        return self.state == ExecutorState.COMPLETED

    @property
    def has_warnings(self) -> bool:
        return bool(self.delete_failures)


def relocated_post(source: Post, channel_id: str, root_id: str) -> Post:
    """Build the destination copy of *source*.

    Authorship, text, timestamp and type carry over through the host's
    creation fields; ownership is never reassigned after the fact.
    """
    props = dict(source.props)
    props[ORIGINAL_POST_ID_PROP] = source.id
    return Post(
        id="",
        user_id=source.user_id,
        channel_id=channel_id,
        message=source.message,
        root_id=root_id,
        parent_id=root_id,
        create_at=source.create_at,
        type=source.type,
        props=props,
    )


class RelocationExecutor:
    """Runs the create/react/delete passes for one validated request."""

    def __init__(self, client: HostClient) -> None:
        self._client = client

    async def execute(
        self,
        snapshot: ThreadSnapshot,
        destination: Destination,
        *,
        delete_originals: bool = True,
    ) -> OperationResult:
        """Relocate *snapshot* to *destination*.

        Raises PartialExecutionFailure if creation stopped after at least
        one post was created, HostFailure if it stopped before any.
        """
        result = OperationResult(intended=len(snapshot), destination=destination)

        await self._create(snapshot, result)
        await self._react(result)
        if delete_originals:
            await self._delete(snapshot, result)

        result.state = ExecutorState.COMPLETED
        return result

    async def _create(self, snapshot: ThreadSnapshot, result: OperationResult) -> None:
        result.state = ExecutorState.CREATING
        root_id = result.destination.root_id

        for index, source in enumerate(snapshot, start=1):
            new_post = relocated_post(source, result.destination.channel_id, root_id)
            try:
                created = await self._client.create_post(new_post)
            except HostError as e:
                result.state = ExecutorState.PARTIALLY_FAILED
                result.failure = e
                logger.error(
                    "Creating post %d of %d (source %s) in channel %s failed: %s",
                    index,
                    result.intended,
                    source.id,
                    result.destination.channel_id,
                    e,
                )
                if not result.created:
                    raise HostFailure() from e
                raise PartialExecutionFailure(result, e) from e

            result.created.append((source, created))
            if not root_id:
                # First created post becomes the new root
                root_id = created.id

    async def _react(self, result: OperationResult) -> None:
        result.state = ExecutorState.REACTING

        for source, created in result.created:
            try:
                reactions = await self._client.get_reactions(source.id)
            except HostError as e:
                logger.warning("Could not read reactions of post %s: %s", source.id, e)
                continue

            for reaction in reactions:
                copy = Reaction(
                    user_id=reaction.user_id,
                    post_id=created.id,
                    emoji_name=reaction.emoji_name,
                )
                try:
                    await self._client.add_reaction(copy)
                except HostError as e:
                    logger.warning(
                        "Could not copy reaction :%s: by %s to post %s: %s",
                        reaction.emoji_name,
                        reaction.user_id,
                        created.id,
                        e,
                    )
                    result.reaction_failures.append((copy, e))
                    continue
                result.reactions.append(copy)

    async def _delete(self, snapshot: ThreadSnapshot, result: OperationResult) -> None:
        result.state = ExecutorState.DELETING

        # Root last so the thread stays resolvable while replies go away
        for post in (*snapshot.replies, snapshot.root):
            try:
                await self._client.delete_post(post.id)
            except HostError as e:
                logger.warning("Could not delete original post %s: %s", post.id, e)
                result.delete_failures.append((post.id, e))
                continue
            result.deleted.append(post.id)
