"""Wrangler Server - Core Application

The server uses FastAPI with a plugin system based on routers.
Apps register themselves and get mounted at their designated paths.

Architecture:
    WranglerServer
        /api/health          - Health check
        /api/config          - Wrangler configuration (GET, PUT)
        /api/config/reload   - Re-read wrangler.yaml (POST)
        /api/apps            - Registered apps
        /apps/<name>/...     - Mounted app routes

Apps are Python modules that expose:
    - manifest: AppManifest - name, router and lifecycle hooks

Shared services (configuration store, host client) are available to all
apps via `from thread_wrangler.server.services import get_services`.
"""

from __future__ import annotations

import importlib
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import ValidationError

from thread_wrangler import __version__
from thread_wrangler.config import load_settings, save_settings
from thread_wrangler.schema import WranglerSettings

logger = logging.getLogger(__name__)

# Optional bearer token scheme (auto_error=False so missing header
# doesn't raise before our logic runs).
_bearer_scheme = HTTPBearer(auto_error=False)

_REDACTED = "********"


def _current_settings() -> WranglerSettings:
    """Live snapshot from the shared store, or the file if there is none."""
    from thread_wrangler.server.services import get_services

    try:
        return get_services().config_store.get()
    except RuntimeError:
        return load_settings()


_bearer_dependency = Depends(_bearer_scheme)


async def verify_api_key(
    credentials: HTTPAuthorizationCredentials | None = _bearer_dependency,
) -> None:
    """FastAPI dependency that enforces bearer-token auth on mutation routes.

    - If no ``server.api_key`` is configured the request passes through
      (local-only use).
    - If a key IS configured the caller must supply an
      ``Authorization: Bearer <key>`` header that matches.
    """
    api_key = _current_settings().server.api_key
    if not api_key:
        return

    if credentials is None or credentials.credentials != api_key:
        raise HTTPException(status_code=401, detail="Invalid or missing API key")


def _public_config(settings: WranglerSettings) -> dict[str, Any]:
    data = settings.model_dump()
    if data["server"]["api_key"]:
        data["server"]["api_key"] = _REDACTED
    return data


def _merge(base: dict[str, Any], update: dict[str, Any]) -> dict[str, Any]:
    """Recursively overlay *update* onto *base*."""
    merged = dict(base)
    for key, value in update.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


@dataclass
class AppManifest:
    """Metadata for a registered app."""

    name: str
    description: str
    version: str = "0.1.0"
    mount_path: str = ""  # Computed as /apps/{name}
    enabled: bool = True
    # The actual router
    router: APIRouter | None = field(default=None, repr=False)
    # Lifecycle hooks
    on_startup: Any = field(default=None, repr=False)
    on_shutdown: Any = field(default=None, repr=False)


class WranglerServer:
    """The core wrangler server with app plugin system.

    Usage:
        server = WranglerServer()

        # Register apps
        server.register_app(wrangler_app.manifest)

        # Or auto-discover from directory
        server.discover_apps(Path("./apps"))

        # Get the FastAPI instance (for uvicorn)
        app = server.app
    """

    def __init__(
        self,
        title: str = "Thread Wrangler",
        version: str = __version__,
        config_file: Path | None = None,
    ) -> None:
        self._apps: dict[str, AppManifest] = {}
        self._config_file = config_file
        self._app = FastAPI(
            title=title,
            version=version,
            docs_url="/api/docs",
            openapi_url="/api/openapi.json",
            lifespan=self._lifespan,
        )
        self._core_router = APIRouter(prefix="/api", tags=["core"])
        self._setup_core_routes()
        self._app.include_router(self._core_router)

    @property
    def app(self) -> FastAPI:
        """Get the FastAPI application instance."""
        return self._app

    @property
    def apps(self) -> dict[str, AppManifest]:
        """Get registered apps."""
        return dict(self._apps)

    def register_app(self, manifest: AppManifest) -> None:
        """Register an app with the server.

        The app's router is mounted at /apps/{name}/.
        """
        if manifest.name in self._apps:
            raise ValueError(f"App already registered: {manifest.name}")

        manifest.mount_path = f"/apps/{manifest.name}"

        if manifest.router:
            self._app.include_router(
                manifest.router,
                prefix=manifest.mount_path,
                tags=[manifest.name],
            )

        self._apps[manifest.name] = manifest
        logger.info("Registered app: %s at %s", manifest.name, manifest.mount_path)

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI) -> AsyncIterator[None]:
        """Run registered apps' startup hooks, then their shutdown hooks."""
        manifests = list(self._apps.values())
        for manifest in manifests:
            if manifest.on_startup:
                await manifest.on_startup()
        try:
            yield
        finally:
            for manifest in reversed(manifests):
                if manifest.on_shutdown:
                    await manifest.on_shutdown()

    def discover_apps(self, apps_dir: Path) -> list[str]:
        """Auto-discover and register apps from a directory.

        Each app is a Python package with an __init__.py that exposes:
        - manifest: AppManifest (required)

        Returns:
            List of registered app names
        """
        registered: list[str] = []
        if not apps_dir.exists():
            logger.warning("Apps directory not found: %s", apps_dir)
            return registered

        for app_path in sorted(apps_dir.iterdir()):
            if not app_path.is_dir():
                continue
            if not (app_path / "__init__.py").exists():
                continue

            try:
                module_name = f"thread_wrangler.server.apps.{app_path.name}"
                module = importlib.import_module(module_name)

                if hasattr(module, "manifest"):
                    self.register_app(module.manifest)
                    registered.append(module.manifest.name)
                else:
                    logger.warning("App %s missing 'manifest'", app_path.name)

            except (ImportError, AttributeError):
                logger.exception("Failed to load app %s", app_path.name)

        return registered

    def _setup_core_routes(self) -> None:
        """Set up the built-in core routes."""

        @self._core_router.get("/health")
        async def health() -> dict[str, str]:
            """Health check endpoint."""
            return {"status": "ok", "version": self._app.version}

        @self._core_router.get("/config")
        async def config() -> dict[str, Any]:
            """Get the active configuration (api_key redacted)."""
            return _public_config(_current_settings())

        @self._core_router.get("/apps")
        async def list_apps() -> dict[str, dict[str, Any]]:
            """List registered apps."""
            return {
                name: {
                    "description": m.description,
                    "version": m.version,
                    "mount_path": m.mount_path,
                    "enabled": m.enabled,
                }
                for name, m in self._apps.items()
            }

        @self._core_router.put("/config", dependencies=[Depends(verify_api_key)])
        async def update_config(request: Request) -> JSONResponse:
            """Update wrangler.yaml with partial config values.

            Accepts a JSON body shaped like wrangler.yaml. Only provided
            fields are updated; others are preserved. The new snapshot is
            written to disk and installed for the next command.
            """
            from thread_wrangler.server.services import get_services

            body = await request.json()
            if not isinstance(body, dict):
                return JSONResponse(
                    status_code=400,
                    content={"error": "body must be a JSON object"},
                )
            # A body echoed back from GET carries the redacted key
            server_body = body.get("server")
            if (
                isinstance(server_body, dict)
                and server_body.get("api_key") == _REDACTED
            ):
                server_body.pop("api_key")
            try:
                current = _current_settings()
                updated = WranglerSettings(**_merge(current.model_dump(), body))
            except (ValidationError, ValueError, TypeError) as e:
                logger.info("Config update rejected: %s", e)
                return JSONResponse(
                    status_code=400,
                    content={"error": str(e), "type": type(e).__name__},
                )

            try:
                save_settings(updated, self._config_file)
            except OSError as e:
                logger.warning("Config update failed: %s", e, exc_info=True)
                return JSONResponse(
                    status_code=500,
                    content={"error": str(e), "type": type(e).__name__},
                )

            try:
                get_services().config_store.set(updated)
            except RuntimeError:
                logger.debug("No shared config store; change applies on restart")
            logger.info("Configuration updated via API")
            return JSONResponse(content=_public_config(updated))

        @self._core_router.post(
            "/config/reload", dependencies=[Depends(verify_api_key)]
        )
        async def reload_config() -> dict[str, Any]:
            """Re-read wrangler.yaml into the shared store."""
            from thread_wrangler.server.services import get_services

            try:
                store = get_services().config_store
            except RuntimeError:
                raise HTTPException(
                    status_code=503, detail="Services not initialized"
                ) from None
            return _public_config(store.reload(self._config_file))


def create_server(**kwargs: Any) -> WranglerServer:
    """Factory function to create and configure the server.

    Usage:
        server = create_server()
        server.discover_apps(Path(__file__).parent / "apps")

        import uvicorn
        uvicorn.run(server.app, host="127.0.0.1", port=8410)
    """
    return WranglerServer(**kwargs)
