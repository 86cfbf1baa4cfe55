"""Wrangler App - relocates threads between channels.

This is the app plugin entry point for the wrangler server. It registers
FastAPI routes for:
- App status (/status)
- Slash command execution (/commands)

Architecture:
    POST /commands
        -> CommandHandler (parse flags, resolve identifiers)
        -> policy checks (first failure wins, no host mutation)
        -> RelocationExecutor (create, react, delete)
        -> SummaryFormatter -> reply text

Configuration:
    Policy flags live in wrangler.yaml under the wrangler: section and
    are read from the shared ConfigurationStore once per command. The
    host token comes from WRANGLER_HOST_TOKEN or keys.yaml.
"""

from __future__ import annotations

import logging
import threading
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from thread_wrangler.config import ConfigurationStore
from thread_wrangler.server.app import AppManifest, verify_api_key

from .client import HostClient, MemoryHostClient
from .commands import CommandHandler
from .policy import InvocationContext

logger = logging.getLogger(__name__)

router = APIRouter()

# --- Global app state (initialized on startup) ---

_state: dict[str, Any] = {}
_state_lock = threading.Lock()


def _get_state() -> dict[str, Any]:
    """Get the initialized app state."""
    with _state_lock:
        if not _state:
            raise RuntimeError("Wrangler not initialized. Call on_startup() first.")
        return _state


def initialize(
    config_store: ConfigurationStore | None = None,
    client: HostClient | None = None,
) -> dict[str, Any]:
    """Initialize the wrangler components.

    This is separated from on_startup() so it can be called directly
    in tests with injected dependencies.

    Resolution order for each dependency:
    1. Explicit parameter (tests)
    2. Shared server services (production)
    3. Fallback: own defaults with the in-memory host (standalone)
    """
    if config_store is None or client is None:
        try:
            from thread_wrangler.server.services import get_services

            services = get_services()
            config_store = config_store or services.config_store
            client = client or services.client
            logger.info("Wrangler using shared server services")
        except RuntimeError:
            # Services not initialized (standalone mode or tests)
            config_store = config_store or ConfigurationStore()
            client = client or MemoryHostClient()
            logger.info("Wrangler using own services (standalone mode)")

    command_handler = CommandHandler(client, config_store)

    state = {
        "config_store": config_store,
        "client": client,
        "command_handler": command_handler,
    }
    with _state_lock:
        _state.update(state)

    return state


async def on_startup() -> None:
    """Initialize the wrangler on server startup."""
    state = initialize()
    mode = "simulator" if isinstance(state["client"], MemoryHostClient) else "live"
    logger.info("Wrangler initialized (mode: %s)", mode)


async def on_shutdown() -> None:
    """Drop the wrangler state on server shutdown."""
    with _state_lock:
        _state.clear()
    logger.info("Wrangler shut down")


class CommandRequest(BaseModel):
    """A slash command as the host delivers it."""

    command: str = ""
    text: str = ""
    args: list[str] | None = None
    user_id: str = ""
    channel_id: str
    team_id: str = ""
    root_id: str = ""
    parent_id: str = ""


# --- App API ---


@router.get("/status")
async def wrangler_status() -> dict[str, Any]:
    """App health and the active policy."""
    state = _get_state()
    config_store: ConfigurationStore = state["config_store"]
    client = state["client"]
    settings = config_store.get()

    return {
        "status": "ok",
        "mode": "simulator" if isinstance(client, MemoryHostClient) else "live",
        "commands": sorted(CommandHandler.COMMANDS),
        "policy": settings.wrangler.model_dump(),
    }


@router.post("/commands", dependencies=[Depends(verify_api_key)])
async def run_command(request: CommandRequest) -> dict[str, Any]:
    """Execute one wrangler command.

    Requires the bearer API key when ``server.api_key`` is set, since the
    caller vouches for ``user_id``.

    Either ``command`` plus ``args``, or the raw slash-command ``text``
    ("/wrangler move thread <id> <channel>") is accepted.
    """
    state = _get_state()
    handler: CommandHandler = state["command_handler"]

    if request.args is not None and request.command:
        command, args = request.command.lower(), request.args
    elif request.text or request.command:
        command, args = handler.parse_command(f"{request.command} {request.text}")
    else:
        raise HTTPException(status_code=400, detail="command or text is required")

    ctx = InvocationContext(
        channel_id=request.channel_id,
        user_id=request.user_id,
        team_id=request.team_id,
        root_id=request.root_id,
        parent_id=request.parent_id,
    )
    logger.debug("Running %s %s for user %s", command, args, ctx.user_id)
    result = await handler.handle(command, args, ctx)

    return {
        "text": result.text,
        "is_user_error": result.is_user_error,
        "error": str(result.error) if result.error is not None else None,
    }


# --- Manifest ---


manifest = AppManifest(
    name="wrangler",
    description="Thread wrangler - moves, copies and attaches chat threads",
    version="0.3.0",
    router=router,
    on_startup=on_startup,
    on_shutdown=on_shutdown,
)
