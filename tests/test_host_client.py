"""Tests for the host clients.

MemoryHostClient is covered through the command tests; here the
HttpHostClient request/response mapping is checked with an
httpx.MockTransport standing in for the chat server.
"""

import asyncio
import json

import httpx
import pytest

from thread_wrangler.server.apps.wrangler.client import (
    HostClient,
    HostError,
    HostUnavailableError,
    HttpHostClient,
    MemoryHostClient,
    post_from_json,
    post_to_json,
)
from thread_wrangler.server.apps.wrangler.models import ChannelType, Post, Reaction

BASE = "http://chat.example.com"


def _client(handler):
    return HttpHostClient(BASE, "tok-123", transport=httpx.MockTransport(handler))


def _json(data, status=200):
    return httpx.Response(status, json=data)


class TestProtocol:
    def test_both_clients_satisfy_protocol(self):
        assert isinstance(MemoryHostClient(), HostClient)
        assert isinstance(HttpHostClient(BASE, "tok"), HostClient)


class TestPostJson:
    def test_from_json_tolerates_nulls(self):
        post = post_from_json(
            {"id": "p1", "user_id": "u1", "channel_id": "c1", "root_id": None}
        )
        assert post.root_id == ""
        assert post.props == {}

    def test_to_json_omits_empty_id(self):
        data = post_to_json(Post(id="", user_id="u1", channel_id="c1", message="hi"))
        assert "id" not in data
        assert data["message"] == "hi"


class TestHttpHostClient:
    def test_sends_bearer_token_and_prefix(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["auth"] = request.headers["Authorization"]
            return _json({"id": "p1", "user_id": "u1", "channel_id": "c1"})

        post = asyncio.run(_client(handler).get_post("p1"))

        assert seen == {"path": "/api/v4/posts/p1", "auth": "Bearer tok-123"}
        assert post.id == "p1"

    def test_get_post_thread_reads_posts_map(self):
        def handler(request):
            assert request.url.path == "/api/v4/posts/root/thread"
            return _json(
                {
                    "order": ["root", "r1"],
                    "posts": {
                        "root": {"id": "root", "user_id": "u", "channel_id": "c"},
                        "r1": {
                            "id": "r1",
                            "user_id": "u",
                            "channel_id": "c",
                            "root_id": "root",
                        },
                    },
                }
            )

        posts = asyncio.run(_client(handler).get_post_thread("root"))

        assert {p.id for p in posts} == {"root", "r1"}

    def test_get_channel_maps_type(self):
        def handler(request):
            return _json({"id": "c1", "team_id": "t1", "type": "P", "name": "secret"})

        channel = asyncio.run(_client(handler).get_channel("c1"))

        assert channel.type == ChannelType.PRIVATE
        assert channel.team_id == "t1"

    def test_direct_channel_posts_user_pair(self):
        def handler(request):
            assert request.method == "POST"
            assert request.url.path == "/api/v4/channels/direct"
            assert json.loads(request.content) == ["bot", "u1"]
            return _json({"id": "bot__u1", "type": "D"}, status=201)

        channel = asyncio.run(_client(handler).get_direct_channel("bot", "u1"))

        assert channel.is_direct_or_group

    def test_create_post_sends_fields(self):
        def handler(request):
            body = json.loads(request.content)
            assert body["user_id"] == "u1"
            assert body["root_id"] == "root"
            assert body["create_at"] == 42
            return _json({**body, "id": "new1"}, status=201)

        created = asyncio.run(
            _client(handler).create_post(
                Post(
                    id="",
                    user_id="u1",
                    channel_id="c1",
                    root_id="root",
                    create_at=42,
                )
            )
        )

        assert created.id == "new1"
        assert created.root_id == "root"

    def test_add_reaction(self):
        def handler(request):
            assert request.url.path == "/api/v4/reactions"
            return _json(json.loads(request.content), status=201)

        reaction = asyncio.run(
            _client(handler).add_reaction(
                Reaction(user_id="u1", post_id="p1", emoji_name="+1")
            )
        )

        assert reaction.emoji_name == "+1"

    def test_get_reactions_empty_body(self):
        def handler(request):
            return _json(None)

        assert asyncio.run(_client(handler).get_reactions("p1")) == []

    def test_delete_post(self):
        calls = []

        def handler(request):
            calls.append((request.method, request.url.path))
            return _json({"status": "OK"})

        asyncio.run(_client(handler).delete_post("p1"))

        assert calls == [("DELETE", "/api/v4/posts/p1")]

    def test_server_config_site_url(self):
        def handler(request):
            assert request.url.params["format"] == "old"
            return _json({"SiteURL": "https://chat.example.com"})

        config = asyncio.run(_client(handler).get_server_config())

        assert config.site_url == "https://chat.example.com"

    def test_not_found_is_host_error(self):
        def handler(request):
            return _json({"message": "Unable to find the post."}, status=404)

        with pytest.raises(HostError) as exc_info:
            asyncio.run(_client(handler).get_post("nope"))

        assert exc_info.value.status_code == 404
        assert exc_info.value.message == "Unable to find the post."
        assert "GET /posts/nope" in str(exc_info.value)

    def test_non_json_error_body(self):
        def handler(request):
            return httpx.Response(502, text="Bad Gateway")

        with pytest.raises(HostError) as exc_info:
            asyncio.run(_client(handler).get_team("t1"))

        assert exc_info.value.status_code == 502

    def test_error_body_not_an_object(self):
        def handler(request):
            return _json(["unexpected"], status=400)

        with pytest.raises(HostError) as exc_info:
            asyncio.run(_client(handler).get_post("p1"))

        assert exc_info.value.status_code == 400
        assert exc_info.value.message == '["unexpected"]'

    def test_connection_failure_is_unavailable(self):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        with pytest.raises(HostUnavailableError) as exc_info:
            asyncio.run(_client(handler).get_user("u1"))

        assert exc_info.value.status_code == 503


class TestMemoryHostClientFailures:
    def test_fail_times(self):
        client = MemoryHostClient()
        client.seed_post(Post(id="p1", user_id="u", channel_id="c"))
        client.fail("get_post", times=1)

        with pytest.raises(HostError):
            asyncio.run(client.get_post("p1"))
        assert asyncio.run(client.get_post("p1")).id == "p1"

    def test_fail_match(self):
        client = MemoryHostClient()
        client.seed_post(Post(id="p1", user_id="u", channel_id="c"))
        client.seed_post(Post(id="p2", user_id="u", channel_id="c"))
        client.fail("delete_post", match=lambda post_id: post_id == "p2")

        asyncio.run(client.delete_post("p1"))
        with pytest.raises(HostError):
            asyncio.run(client.delete_post("p2"))
        assert client.deleted_post_ids == ["p1"]
