"""Thread snapshots - an ordered, immutable view of one thread.

The host returns a thread as an unordered bag of posts. A snapshot puts
the root first and the replies after it in creation order, breaking
timestamp ties by id so the order never depends on the host's response.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from .client import HostClient, HostError
from .errors import EmptyThreadError, ThreadNotFoundError
from .models import Post


def _sort_key(post: Post) -> tuple[int, str]:
    return (post.create_at, post.id)


@dataclass(frozen=True)
class ThreadSnapshot:
    """Root post followed by its replies, ascending by (create_at, id)."""

    posts: tuple[Post, ...]

    @classmethod
    def from_posts(cls, posts: Iterable[Post]) -> ThreadSnapshot:
        ordered = sorted(posts, key=_sort_key)
        if not ordered:
            raise EmptyThreadError("thread has no posts")

        # The root is the post without a root reference. Hosts always
        # create it first; fall back to the earliest post if the bag
        # came back without one.
        roots = [p for p in ordered if not p.root_id]
        root = roots[0] if roots else ordered[0]
        replies = [p for p in ordered if p.id != root.id]
        return cls(posts=(root, *replies))

    @property
    def root(self) -> Post:
        return self.posts[0]

    @property
    def replies(self) -> tuple[Post, ...]:
        return self.posts[1:]

    @property
    def channel_id(self) -> str:
        return self.root.channel_id

    @property
    def post_ids(self) -> list[str]:
        return [p.id for p in self.posts]

    def __len__(self) -> int:
        return len(self.posts)

    def __iter__(self) -> Iterator[Post]:
        return iter(self.posts)


async def build_thread_snapshot(client: HostClient, post_id: str) -> ThreadSnapshot:
    """Fetch the thread containing *post_id* and order it.

    Raises ThreadNotFoundError when the host rejects the id (4xx).
    Server-side failures propagate unchanged.
    """
    try:
        posts = await client.get_post_thread(post_id)
    except HostError as e:
        if e.status_code < 500:
            raise ThreadNotFoundError(post_id) from e
        raise
    return ThreadSnapshot.from_posts(posts)
