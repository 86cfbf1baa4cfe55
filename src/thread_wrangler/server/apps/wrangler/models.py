"""Data models for the chat host.

Host-side records (posts, channels, teams, users, reactions) as the
wrangler sees them. Records fetched from the host are frozen; a relocated
post is always a new record, never an edited copy.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

class ChannelType(StrEnum):
    """Kind of channel, using the host's one-letter codes."""

    OPEN = "O"
    PRIVATE = "P"
    DIRECT = "D"
    GROUP = "G"


@dataclass(frozen=True)
class Post:
    """A single chat message."""

    id: str
    user_id: str
    channel_id: str
    message: str = ""
    root_id: str = ""  # "" = not a reply
    parent_id: str = ""
    create_at: int = 0  # milliseconds since epoch
    type: str = ""  # "" for normal posts
    props: dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def is_reply(self) -> bool:
        return bool(self.root_id)


@dataclass(frozen=True)
class Channel:
    """A channel; only the fields policy decisions need."""

    id: str
    team_id: str = ""  # "" for direct and group channels on some hosts
    type: ChannelType | str = ChannelType.OPEN
    name: str = ""
    display_name: str = ""

    @property
    def is_direct_or_group(self) -> bool:
        return self.type in (ChannelType.DIRECT, ChannelType.GROUP)


@dataclass(frozen=True)
class Team:
    id: str
    name: str
    display_name: str = ""


@dataclass(frozen=True)
class User:
    id: str
    username: str = ""
    email: str = ""
    nickname: str = ""

    @property
    def email_domain(self) -> str:
        return self.email.rpartition("@")[2].lower()


@dataclass(frozen=True)
class ChannelMember:
    channel_id: str
    user_id: str


@dataclass(frozen=True)
class Reaction:
    """A (user, emoji) pair attached to a post."""

    user_id: str
    post_id: str
    emoji_name: str


@dataclass(frozen=True)
class HostServerConfig:
    """The slice of the host's configuration the wrangler reads."""

    site_url: str = ""
