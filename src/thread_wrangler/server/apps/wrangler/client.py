"""Chat host API client abstraction.

Provides a Protocol for the host operations the wrangler needs and two
implementations:
- MemoryHostClient: In-memory, no network calls (testing/simulator)
- HttpHostClient: Real REST v4 calls (production)

The engine always works through the HostClient protocol, making it
fully testable without a live chat server. The host has no "move"
primitive; everything is built from single-post CRUD.
"""

from __future__ import annotations

import dataclasses
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

import httpx

from thread_wrangler.conventions import HOST_API_PREFIX

from .models import (
    Channel,
    ChannelMember,
    ChannelType,
    HostServerConfig,
    Post,
    Reaction,
    Team,
    User,
)


class HostError(Exception):
    """A host API call failed."""

    def __init__(self, message: str, status_code: int = 500, where: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.where = where

    def __str__(self) -> str:
        if self.where:
            return f"{self.where}: {self.message} (status {self.status_code})"
        return f"{self.message} (status {self.status_code})"


class HostUnavailableError(HostError):
    """The host could not be reached at all."""

    def __init__(self, message: str, where: str = "") -> None:
        super().__init__(message, status_code=503, where=where)


@runtime_checkable
class HostClient(Protocol):
    """Protocol for chat host operations."""

    async def get_post(self, post_id: str) -> Post:
        """Fetch one post. Raises HostError (404) if missing."""
        ...

    async def get_post_thread(self, post_id: str) -> list[Post]:
        """Fetch every post of the thread containing post_id, unordered."""
        ...

    async def get_channel(self, channel_id: str) -> Channel:
        ...

    async def get_channel_member(self, channel_id: str, user_id: str) -> ChannelMember:
        ...

    async def get_direct_channel(self, user_id: str, other_user_id: str) -> Channel:
        """Get (or create) the direct channel between two users."""
        ...

    async def get_team(self, team_id: str) -> Team:
        ...

    async def get_user(self, user_id: str) -> User:
        ...

    async def get_reactions(self, post_id: str) -> list[Reaction]:
        ...

    async def create_post(self, post: Post) -> Post:
        """Create a post. The returned post carries the host-assigned id."""
        ...

    async def add_reaction(self, reaction: Reaction) -> Reaction:
        ...

    async def delete_post(self, post_id: str) -> None:
        ...

    async def get_server_config(self) -> HostServerConfig:
        ...


def new_id() -> str:
    """Generate a 26-character host-style identifier."""
    return uuid.uuid4().hex[:26]


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class _InjectedFailure:
    method: str
    error: HostError
    match: Callable[..., bool] | None = None
    skip: int = 0  # let this many matching calls through first
    times: int | None = None  # None = fail forever


class MemoryHostClient:
    """In-memory host for testing and simulation.

    Records all operations for inspection. No network calls.
    Implements HostClient protocol. Failures can be injected per method
    with fail().
    """

    def __init__(self, site_url: str = "http://localhost:8065") -> None:
        self.site_url = site_url
        self.posts: dict[str, Post] = {}
        self.channels: dict[str, Channel] = {}
        self.teams: dict[str, Team] = {}
        self.users: dict[str, User] = {}
        self.members: set[tuple[str, str]] = set()
        self.reactions: dict[str, list[Reaction]] = {}
        self.created_posts: list[Post] = []
        self.deleted_post_ids: list[str] = []
        self.added_reactions: list[Reaction] = []
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self._failures: list[_InjectedFailure] = []

    # --- Test setup ---

    def seed_post(self, post: Post) -> Post:
        self.posts[post.id] = post
        return post

    def seed_thread(self, posts: list[Post]) -> list[Post]:
        for post in posts:
            self.seed_post(post)
        return posts

    def seed_channel(
        self, channel: Channel, members: list[str] | None = None
    ) -> Channel:
        self.channels[channel.id] = channel
        for user_id in members or []:
            self.members.add((channel.id, user_id))
        return channel

    def seed_team(self, team: Team) -> Team:
        self.teams[team.id] = team
        return team

    def seed_user(self, user: User) -> User:
        self.users[user.id] = user
        return user

    def seed_reaction(self, reaction: Reaction) -> Reaction:
        self.reactions.setdefault(reaction.post_id, []).append(reaction)
        return reaction

    def fail(
        self,
        method: str,
        error: HostError | None = None,
        *,
        match: Callable[..., bool] | None = None,
        skip: int = 0,
        times: int | None = None,
    ) -> None:
        """Make calls to *method* raise *error*.

        ``match`` receives the call arguments and selects which calls fail;
        ``skip`` lets that many matching calls succeed first.
        """
        self._failures.append(
            _InjectedFailure(
                method=method,
                error=error or HostError("injected failure", 500, method),
                match=match,
                skip=skip,
                times=times,
            )
        )

    def calls_to(self, method: str) -> list[tuple[Any, ...]]:
        return [args for name, args in self.calls if name == method]

    def _record(self, method: str, *args: Any) -> None:
        self.calls.append((method, args))
        for failure in self._failures:
            if failure.method != method:
                continue
            if failure.match is not None and not failure.match(*args):
                continue
            if failure.skip > 0:
                failure.skip -= 1
                continue
            if failure.times is not None:
                if failure.times <= 0:
                    continue
                failure.times -= 1
            raise failure.error

    @staticmethod
    def _not_found(kind: str, key: str) -> HostError:
        return HostError(f"{kind} {key} not found", 404, f"get_{kind}")

    # --- HostClient ---

    async def get_post(self, post_id: str) -> Post:
        self._record("get_post", post_id)
        post = self.posts.get(post_id)
        if post is None:
            raise self._not_found("post", post_id)
        return post

    async def get_post_thread(self, post_id: str) -> list[Post]:
        self._record("get_post_thread", post_id)
        post = self.posts.get(post_id)
        if post is None:
            raise self._not_found("post", post_id)
        root_id = post.root_id or post.id
        return [p for p in self.posts.values() if root_id in (p.id, p.root_id)]

    async def get_channel(self, channel_id: str) -> Channel:
        self._record("get_channel", channel_id)
        channel = self.channels.get(channel_id)
        if channel is None:
            raise self._not_found("channel", channel_id)
        return channel

    async def get_channel_member(self, channel_id: str, user_id: str) -> ChannelMember:
        self._record("get_channel_member", channel_id, user_id)
        if (channel_id, user_id) not in self.members:
            raise self._not_found("channel_member", f"{channel_id}/{user_id}")
        return ChannelMember(channel_id=channel_id, user_id=user_id)

    async def get_direct_channel(self, user_id: str, other_user_id: str) -> Channel:
        self._record("get_direct_channel", user_id, other_user_id)
        channel_id = "__".join(sorted((user_id, other_user_id)))
        channel = self.channels.get(channel_id)
        if channel is None:
            channel = self.seed_channel(
                Channel(id=channel_id, type=ChannelType.DIRECT, name=channel_id),
                members=[user_id, other_user_id],
            )
        return channel

    async def get_team(self, team_id: str) -> Team:
        self._record("get_team", team_id)
        team = self.teams.get(team_id)
        if team is None:
            raise self._not_found("team", team_id)
        return team

    async def get_user(self, user_id: str) -> User:
        self._record("get_user", user_id)
        user = self.users.get(user_id)
        if user is None:
            raise self._not_found("user", user_id)
        return user

    async def get_reactions(self, post_id: str) -> list[Reaction]:
        self._record("get_reactions", post_id)
        return list(self.reactions.get(post_id, []))

    async def create_post(self, post: Post) -> Post:
        self._record("create_post", post)
        created = dataclasses.replace(
            post,
            id=new_id(),
            create_at=post.create_at or _now_ms(),
        )
        self.posts[created.id] = created
        self.created_posts.append(created)
        return created

    async def add_reaction(self, reaction: Reaction) -> Reaction:
        self._record("add_reaction", reaction)
        if reaction.post_id not in self.posts:
            raise self._not_found("post", reaction.post_id)
        self.reactions.setdefault(reaction.post_id, []).append(reaction)
        self.added_reactions.append(reaction)
        return reaction

    async def delete_post(self, post_id: str) -> None:
        self._record("delete_post", post_id)
        if self.posts.pop(post_id, None) is None:
            raise self._not_found("post", post_id)
        self.reactions.pop(post_id, None)
        self.deleted_post_ids.append(post_id)

    async def get_server_config(self) -> HostServerConfig:
        self._record("get_server_config")
        return HostServerConfig(site_url=self.site_url)


# --- JSON mapping for the REST API ---


def post_from_json(data: dict[str, Any]) -> Post:
    return Post(
        id=data.get("id", ""),
        user_id=data.get("user_id", ""),
        channel_id=data.get("channel_id", ""),
        message=data.get("message", ""),
        root_id=data.get("root_id", "") or "",
        parent_id=data.get("parent_id", "") or "",
        create_at=int(data.get("create_at", 0) or 0),
        type=data.get("type", "") or "",
        props=dict(data.get("props") or {}),
    )


def post_to_json(post: Post) -> dict[str, Any]:
    data: dict[str, Any] = {
        "user_id": post.user_id,
        "channel_id": post.channel_id,
        "message": post.message,
        "root_id": post.root_id,
        "create_at": post.create_at,
        "type": post.type,
        "props": post.props,
    }
    if post.id:
        data["id"] = post.id
    return data


def _channel_from_json(data: dict[str, Any]) -> Channel:
    raw_type = data.get("type", "O")
    try:
        channel_type: ChannelType | str = ChannelType(raw_type)
    except ValueError:
        channel_type = raw_type
    return Channel(
        id=data["id"],
        team_id=data.get("team_id", "") or "",
        type=channel_type,
        name=data.get("name", ""),
        display_name=data.get("display_name", ""),
    )


def _reaction_from_json(data: dict[str, Any]) -> Reaction:
    return Reaction(
        user_id=data.get("user_id", ""),
        post_id=data.get("post_id", ""),
        emoji_name=data.get("emoji_name", ""),
    )


class HttpHostClient:
    """Real chat server REST API client.

    Uses HTTP requests against the host's v4 API. Requires a bot or
    personal access token with permission to create posts on behalf of
    other users (so authorship survives a move).
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 30.0,
    ) -> None:
        self._base_url = base_url.rstrip("/") + HOST_API_PREFIX
        self._token = token
        self._transport = transport
        self._timeout = timeout

    async def _api_call(
        self,
        method: str,
        path: str,
        json: Any = None,
        params: dict[str, str] | None = None,
    ) -> Any:
        """Make a host API call. Raises HostError on any failure."""
        where = f"{method} {path}"
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url,
                transport=self._transport,
                timeout=self._timeout,
            ) as client:
                response = await client.request(
                    method,
                    path,
                    headers={"Authorization": f"Bearer {self._token}"},
                    json=json,
                    params=params,
                )
        except httpx.TransportError as e:
            raise HostUnavailableError(str(e) or type(e).__name__, where) from e

        if response.status_code >= 400:
            detail = response.text
            try:
                body = response.json()
            except ValueError:
                body = None
            if isinstance(body, dict):
                detail = body.get("message", response.text)
            raise HostError(detail or "request failed", response.status_code, where)

        if not response.content:
            return None
        return response.json()

    async def get_post(self, post_id: str) -> Post:
        return post_from_json(await self._api_call("GET", f"/posts/{post_id}"))

    async def get_post_thread(self, post_id: str) -> list[Post]:
        data = await self._api_call("GET", f"/posts/{post_id}/thread")
        posts = data.get("posts", {})
        return [post_from_json(p) for p in posts.values()]

    async def get_channel(self, channel_id: str) -> Channel:
        data = await self._api_call("GET", f"/channels/{channel_id}")
        return _channel_from_json(data)

    async def get_channel_member(self, channel_id: str, user_id: str) -> ChannelMember:
        data = await self._api_call("GET", f"/channels/{channel_id}/members/{user_id}")
        return ChannelMember(channel_id=data["channel_id"], user_id=data["user_id"])

    async def get_direct_channel(self, user_id: str, other_user_id: str) -> Channel:
        data = await self._api_call(
            "POST", "/channels/direct", json=[user_id, other_user_id]
        )
        return _channel_from_json(data)

    async def get_team(self, team_id: str) -> Team:
        data = await self._api_call("GET", f"/teams/{team_id}")
        return Team(
            id=data["id"],
            name=data.get("name", ""),
            display_name=data.get("display_name", ""),
        )

    async def get_user(self, user_id: str) -> User:
        data = await self._api_call("GET", f"/users/{user_id}")
        return User(
            id=data["id"],
            username=data.get("username", ""),
            email=data.get("email", ""),
            nickname=data.get("nickname", ""),
        )

    async def get_reactions(self, post_id: str) -> list[Reaction]:
        data = await self._api_call("GET", f"/posts/{post_id}/reactions")
        return [_reaction_from_json(r) for r in data or []]

    async def create_post(self, post: Post) -> Post:
        data = await self._api_call("POST", "/posts", json=post_to_json(post))
        return post_from_json(data)

    async def add_reaction(self, reaction: Reaction) -> Reaction:
        data = await self._api_call(
            "POST",
            "/reactions",
            json={
                "user_id": reaction.user_id,
                "post_id": reaction.post_id,
                "emoji_name": reaction.emoji_name,
            },
        )
        return _reaction_from_json(data)

    async def delete_post(self, post_id: str) -> None:
        await self._api_call("DELETE", f"/posts/{post_id}")

    async def get_server_config(self) -> HostServerConfig:
        data = await self._api_call(
            "GET", "/config/client", params={"format": "old"}
        )
        return HostServerConfig(site_url=data.get("SiteURL", ""))
