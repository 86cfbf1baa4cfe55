"""Tests for the HTTP surface: core routes and the wrangler app routes."""

import pytest
import yaml
from starlette.testclient import TestClient

from thread_wrangler.schema import ServerConfig, WranglerSettings


@pytest.fixture
def config_file(tmp_path):
    return tmp_path / "wrangler.yaml"


@pytest.fixture
def server_client(host, config_store, config_file):
    """TestClient for a server with the wrangler app and shared services."""
    from thread_wrangler.server.app import WranglerServer
    from thread_wrangler.server.apps.wrangler import initialize, manifest
    from thread_wrangler.server.services import init_services

    init_services(config_store=config_store, client=host)
    initialize()

    server = WranglerServer(config_file=config_file)
    server.register_app(manifest)
    return TestClient(server.app)


class TestCoreRoutes:
    def test_health(self, server_client):
        response = server_client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_apps(self, server_client):
        apps = server_client.get("/api/apps").json()
        assert apps["wrangler"]["mount_path"] == "/apps/wrangler"

    def test_get_config(self, server_client):
        data = server_client.get("/api/config").json()
        assert data["wrangler"]["move_thread_to_another_team_enable"] is False

    def test_get_config_redacts_api_key(self, server_client, config_store):
        config_store.set(WranglerSettings(server=ServerConfig(api_key="s3cret")))
        data = server_client.get("/api/config").json()
        assert data["server"]["api_key"] != "s3cret"

    def test_put_config_updates_store_and_file(
        self, server_client, config_store, config_file
    ):
        response = server_client.put(
            "/api/config",
            json={"wrangler": {"move_thread_max_count": "5"}},
        )

        assert response.status_code == 200
        assert config_store.get().wrangler.max_thread_count == 5
        # Untouched fields keep their values
        assert config_store.get().wrangler.move_thread_to_another_team_enable is False
        saved = yaml.safe_load(config_file.read_text())
        assert saved["wrangler"]["move_thread_max_count"] == "5"

    def test_put_config_invalid(self, server_client, config_store):
        response = server_client.put(
            "/api/config",
            json={"wrangler": {"move_thread_max_count": "many"}},
        )

        assert response.status_code == 400
        assert config_store.get() == WranglerSettings()

    def test_put_config_requires_api_key_when_set(self, server_client, config_store):
        config_store.set(WranglerSettings(server=ServerConfig(api_key="s3cret")))

        denied = server_client.put("/api/config", json={"wrangler": {}})
        allowed = server_client.put(
            "/api/config",
            json={"wrangler": {"move_thread_to_another_team_enable": True}},
            headers={"Authorization": "Bearer s3cret"},
        )

        assert denied.status_code == 401
        assert allowed.status_code == 200
        assert config_store.get().wrangler.move_thread_to_another_team_enable is True
        assert config_store.get().server.api_key == "s3cret"


class TestWranglerRoutes:
    def test_status(self, server_client):
        data = server_client.get("/apps/wrangler/status").json()
        assert data["status"] == "ok"
        assert data["mode"] == "simulator"
        assert "move-thread" in data["commands"]

    def test_move_thread_via_text(self, server_client, host):
        response = server_client.post(
            "/apps/wrangler/commands",
            json={
                "command": "/wrangler",
                "text": "move thread post_root chan_target",
                "channel_id": "chan_open",
                "user_id": "user1",
                "team_id": "team1",
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data["text"].startswith("A thread with 3 messages has been moved")
        assert data["is_user_error"] is False
        assert data["error"] is None
        assert len(host.deleted_post_ids) == 3

    def test_move_thread_via_args(self, server_client):
        response = server_client.post(
            "/apps/wrangler/commands",
            json={
                "command": "move-thread",
                "args": ["post_root", "chan_target", "--silent"],
                "channel_id": "chan_open",
                "user_id": "user1",
            },
        )

        assert "silently moved" in response.json()["text"]

    def test_user_error(self, server_client, host):
        response = server_client.post(
            "/apps/wrangler/commands",
            json={
                "command": "move-thread",
                "args": ["post_root"],
                "channel_id": "chan_open",
                "user_id": "user1",
            },
        )

        data = response.json()
        assert data["text"] == "Error: missing arguments"
        assert data["is_user_error"] is True
        assert host.calls_to("create_post") == []

    def test_config_change_applies_to_next_command(self, server_client, host):
        body = {
            "command": "move-thread",
            "args": ["post_root", "chan_other_team"],
            "channel_id": "chan_open",
            "user_id": "user1",
        }
        declined = server_client.post("/apps/wrangler/commands", json=body).json()
        server_client.put(
            "/api/config",
            json={"wrangler": {"move_thread_to_another_team_enable": True}},
        )
        moved = server_client.post("/apps/wrangler/commands", json=body).json()

        assert "to different teams" in declined["text"]
        assert moved["text"].startswith("A thread with 3 messages has been moved")

    def test_missing_command(self, server_client):
        response = server_client.post(
            "/apps/wrangler/commands", json={"channel_id": "chan_open"}
        )
        assert response.status_code == 400

    def test_commands_require_api_key_when_set(self, server_client, host, config_store):
        config_store.set(WranglerSettings(server=ServerConfig(api_key="s3cret")))
        body = {
            "command": "move-thread",
            "args": ["post_root", "chan_target"],
            "channel_id": "chan_open",
            "user_id": "user1",
        }

        denied = server_client.post("/apps/wrangler/commands", json=body)

        assert denied.status_code == 401
        assert host.calls_to("create_post") == []
        assert host.calls_to("delete_post") == []

        allowed = server_client.post(
            "/apps/wrangler/commands",
            json=body,
            headers={"Authorization": "Bearer s3cret"},
        )

        assert allowed.status_code == 200
        assert allowed.json()["text"].startswith("A thread with 3 messages")


class TestConfigReload:
    def test_reload_reads_file_into_store(
        self, server_client, config_store, config_file
    ):
        config_file.write_text("wrangler:\n  move_thread_max_count: 7\n")

        response = server_client.post("/api/config/reload")

        assert response.status_code == 200
        assert response.json()["wrangler"]["move_thread_max_count"] == "7"
        assert config_store.get().wrangler.max_thread_count == 7

    def test_reload_without_services(self, config_file):
        from thread_wrangler.server.app import WranglerServer

        client = TestClient(WranglerServer(config_file=config_file).app)

        assert client.post("/api/config/reload").status_code == 503


class TestLifespan:
    def test_app_hooks_run_on_startup_and_shutdown(self, host, config_store):
        from thread_wrangler.server.app import WranglerServer
        from thread_wrangler.server.apps import wrangler
        from thread_wrangler.server.services import init_services

        init_services(config_store=config_store, client=host)
        server = WranglerServer()
        server.register_app(wrangler.manifest)

        with TestClient(server.app) as client:
            assert wrangler._state["client"] is host
            assert client.get("/apps/wrangler/status").json()["status"] == "ok"

        assert wrangler._state == {}

    def test_discover_registers_wrangler(self):
        from pathlib import Path

        import thread_wrangler.server as server_pkg
        from thread_wrangler.server.app import WranglerServer

        server = WranglerServer()
        apps_dir = Path(server_pkg.__file__).parent / "apps"

        assert server.discover_apps(apps_dir) == ["wrangler"]
        assert "wrangler" in server.apps
