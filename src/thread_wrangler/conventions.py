"""Thread Wrangler Conventions - IMMUTABLE

This file defines the canonical names, paths, and conventions that every
part of the wrangler agrees on. These values are NOT configurable.

Things that CAN be configured (via wrangler.yaml):
- which channel kinds threads may be moved out of
- whether threads may cross team boundaries
- the maximum thread length
- the host server URL

Things that CANNOT be configured (defined HERE):
- filenames and directory layout within ~/.wrangler/
- command names and flag names
- permalink shape
"""

# --- The Root ---
# Everything lives under this directory. wrangler.yaml lives here.
WRANGLER_HOME = "~/.wrangler"

# --- Configuration ---
CONFIG_FILENAME = "wrangler.yaml"
KEYS_FILENAME = "keys.yaml"
# Full paths: ~/.wrangler/wrangler.yaml, ~/.wrangler/keys.yaml

# --- Server ---
SERVER_DIR = "server"  # relative to WRANGLER_HOME
SERVER_LOG_FILE = "server.log"
SERVER_DEFAULT_PORT = 8410

# --- Commands ---
TRIGGER = "wrangler"
COMMAND_MOVE_THREAD = "move-thread"
COMMAND_COPY_THREAD = "copy-thread"
COMMAND_ATTACH_MESSAGE = "attach-message"
FLAG_SILENT = "--silent"
FLAG_SHOW_ROOT_MESSAGE = "--show-root-message-in-summary"

# --- Host ---
HOST_API_PREFIX = "/api/v4"
PERMALINK_SEGMENT = "pl"  # {site_url}/{team}/pl/{post_id}

# Post prop recording where a relocated post came from
ORIGINAL_POST_ID_PROP = "wrangler_original_post_id"

PYPI_PACKAGE_NAME = "thread-wrangler"
