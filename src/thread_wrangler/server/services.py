"""Server-level shared services.

The server creates ONE set of services at startup and shares them
with all apps: the live configuration store and the host client.

Usage:
    # At server startup (in cli.py):
    from thread_wrangler.server.services import init_services
    services = init_services(simulator_mode=True)

    # In app route handlers:
    from thread_wrangler.server.services import get_services
    settings = get_services().config_store.get()

    # In tests:
    services = init_services(client=MemoryHostClient())
    # ... run tests ...
    reset_services()
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

from thread_wrangler.config import ConfigurationStore, load_host_token, load_settings
from thread_wrangler.server.apps.wrangler.client import (
    HostClient,
    HttpHostClient,
    MemoryHostClient,
)

logger = logging.getLogger(__name__)

# Module-level singleton
_instance: ServerServices | None = None
_instance_lock = threading.Lock()


@dataclass
class ServerServices:
    """Shared services available to all server apps.

    Attributes:
        config_store: Current configuration snapshot, swapped on change
        client: Host client (MemoryHostClient or HttpHostClient)
        simulator_mode: Whether the server talks to an in-memory host
    """

    config_store: ConfigurationStore
    client: HostClient
    simulator_mode: bool = False


def create_host_client(config_store: ConfigurationStore) -> tuple[HostClient, bool]:
    """Pick a host client for the current settings.

    Returns the client and whether it is the in-memory simulator.
    """
    settings = config_store.get()
    token = load_host_token()
    if settings.server.simulator_mode or not settings.host.url or not token:
        logger.info("Host client: using MemoryHostClient (simulator mode)")
        return MemoryHostClient(), True
    logger.info("Host client: using HttpHostClient for %s", settings.host.url)
    return HttpHostClient(settings.host.url, token), False


def init_services(
    *,
    config_store: ConfigurationStore | None = None,
    client: HostClient | None = None,
    simulator_mode: bool = False,
) -> ServerServices:
    """Initialize server services. Called once at server startup.

    Args:
        config_store: Override the configuration store (for testing).
        client: Override the host client (for testing).
        simulator_mode: Force the in-memory host.
    """
    global _instance

    if config_store is None:
        config_store = ConfigurationStore(load_settings())

    if client is None:
        if simulator_mode:
            client = MemoryHostClient()
            logger.info("Host client: using MemoryHostClient (simulator mode)")
        else:
            client, simulator_mode = create_host_client(config_store)

    with _instance_lock:
        _instance = ServerServices(
            config_store=config_store,
            client=client,
            simulator_mode=simulator_mode,
        )
        return _instance


def get_services() -> ServerServices:
    """Get the shared services instance.

    Raises RuntimeError if services haven't been initialized.
    """
    with _instance_lock:
        if _instance is None:
            raise RuntimeError(
                "Server services not initialized. Call init_services() first."
            )
        return _instance


def reset_services() -> None:
    """Reset services (for testing). Not for production use."""
    global _instance
    with _instance_lock:
        _instance = None
