"""Shared test fixtures for thread-wrangler tests."""

from pathlib import Path

import pytest

from thread_wrangler.config import ConfigurationStore
from thread_wrangler.schema import WranglerConfig, WranglerSettings
from thread_wrangler.server.apps.wrangler.client import MemoryHostClient
from thread_wrangler.server.apps.wrangler.commands import CommandHandler
from thread_wrangler.server.apps.wrangler.models import (
    Channel,
    ChannelType,
    Post,
    Reaction,
    Team,
    User,
)
from thread_wrangler.server.apps.wrangler.policy import InvocationContext
from thread_wrangler.server.services import reset_services

SITE_URL = "http://chat.example.com"


@pytest.fixture
def project_root():
    """Return the project root directory."""
    return Path(__file__).parent.parent


def seed_thread(client, channel_id, prefix="post", count=3, start=1000):
    """Seed a thread of *count* posts; message i reads "This is message i"."""
    root_id = f"{prefix}_root"
    posts = [
        Post(
            id=root_id,
            user_id="user1",
            channel_id=channel_id,
            message="This is message 1",
            create_at=start,
        )
    ]
    for i in range(2, count + 1):
        posts.append(
            Post(
                id=f"{prefix}_reply{i - 1}",
                user_id="user2" if i % 2 == 0 else "user1",
                channel_id=channel_id,
                message=f"This is message {i}",
                root_id=root_id,
                parent_id=root_id,
                create_at=start + (i - 1) * 1000,
            )
        )
    return client.seed_thread(posts)


@pytest.fixture
def host():
    """A MemoryHostClient seeded with two teams, every channel kind,
    two users and a three-message thread in chan_open."""
    client = MemoryHostClient(site_url=SITE_URL)

    client.seed_team(Team(id="team1", name="team-one", display_name="Team One"))
    client.seed_team(Team(id="team2", name="team-two", display_name="Team Two"))

    client.seed_user(User(id="user1", username="alice", email="alice@example.com"))
    client.seed_user(User(id="user2", username="bob", email="bob@example.org"))
    client.seed_user(User(id="bot", username="wrangler-bot", email="bot@example.com"))

    everyone = ["user1", "user2"]
    client.seed_channel(
        Channel(id="chan_open", team_id="team1", type=ChannelType.OPEN), everyone
    )
    client.seed_channel(
        Channel(id="chan_target", team_id="team1", type=ChannelType.OPEN), everyone
    )
    client.seed_channel(
        Channel(id="chan_random", team_id="team1", type=ChannelType.OPEN), everyone
    )
    client.seed_channel(
        Channel(id="chan_private", team_id="team1", type=ChannelType.PRIVATE),
        everyone,
    )
    client.seed_channel(
        Channel(id="chan_direct", type=ChannelType.DIRECT), everyone
    )
    client.seed_channel(Channel(id="chan_group", type=ChannelType.GROUP), everyone)
    client.seed_channel(
        Channel(id="chan_other_team", team_id="team2", type=ChannelType.OPEN),
        everyone,
    )
    # Nobody is a member
    client.seed_channel(
        Channel(id="chan_secret", team_id="team1", type=ChannelType.PRIVATE)
    )

    seed_thread(client, "chan_open")
    client.seed_reaction(
        Reaction(user_id="user2", post_id="post_root", emoji_name="+1")
    )
    client.seed_reaction(
        Reaction(user_id="user1", post_id="post_reply1", emoji_name="tada")
    )
    return client


@pytest.fixture
def thread_in(host):
    """Seed another thread: thread_in("chan_private", "priv")."""

    def _thread_in(channel_id, prefix, count=3):
        return seed_thread(host, channel_id, prefix=prefix, count=count, start=5000)

    return _thread_in


@pytest.fixture
def config_store():
    """A ConfigurationStore holding the (restrictive) defaults."""
    return ConfigurationStore(WranglerSettings())


@pytest.fixture
def configure(config_store):
    """Install a settings snapshot with the given wrangler flags."""

    def _configure(**flags):
        settings = WranglerSettings(wrangler=WranglerConfig(**flags))
        config_store.set(settings)
        return settings

    return _configure


@pytest.fixture
def command_handler(host, config_store):
    return CommandHandler(host, config_store)


@pytest.fixture
def ctx():
    """Invocation from chan_open by user1, outside any thread."""
    return InvocationContext(channel_id="chan_open", user_id="user1", team_id="team1")


@pytest.fixture(autouse=True)
def _reset_server_state():
    """Shared services and app state are module globals."""
    from thread_wrangler.server.apps.wrangler import _state

    reset_services()
    _state.clear()
    yield
    reset_services()
    _state.clear()
