import os
from pathlib import Path

"""Global constants and filesystem layout for the repository updater.

This module defines the state and configuration paths (adhering to XDG
standards where applicable), the build descriptor file names searched for by
the version gate, and the timing defaults used when relaunching applications.
"""

# --- Identity ---
APP_NAME = "repo-updater"
"""str: The human-readable application name."""

# --- Paths ---
_XDG_STATE = os.environ.get("XDG_STATE_HOME")
_BASE_STATE = Path(_XDG_STATE) if _XDG_STATE else Path.home() / ".local/state"

STATE_DIR = _BASE_STATE / "repo-updater"
"""Path: The directory for runtime state data (logs)."""

# Ensure state directory exists immediately upon module import.
STATE_DIR.mkdir(parents=True, exist_ok=True)

LOG_FILE = STATE_DIR / "updater.log"
"""Path: The file path for the run logs."""

# --- Configuration Paths ---
CONFIG_DIR: Path = Path.home() / ".config/repo-updater"
"""Path: The directory for user configuration files."""

CONFIG_FILE: Path = CONFIG_DIR / "config.toml"
"""Path: The tool settings file path."""

BUNDLED_REPOSITORIES = "repos.json"
"""str: Name of the repository list shipped inside the package resources."""

DEFAULT_OUTPUT_DIR = "~/sbm-bin"
"""str: Default directory exported to build commands for deployed binaries."""

OUTPUT_DIR_ENV = "REPO_UPDATER_OUTPUT_DIR"
"""str: Environment variable carrying the output directory into builds."""

# --- Build Descriptors ---
RELEASE_DESCRIPTOR = "build-object.toml"
"""str: File declaring the release version of a repository."""

COMPILED_RECORD = "compiled.toml"
"""str: File recording the version that was last built locally."""

RELEASE_SEARCH_DEPTH = 3
"""int: Ancestor levels searched for the release descriptor."""

COMPILED_SEARCH_DEPTH = 6
"""int: Ancestor levels searched for the compiled record."""

# --- Relaunch ---
INFER_TARGET = "infer"
"""str: Relaunch target sentinel meaning '<directory name>.app'."""

APP_SUFFIX = ".app"

TERMINATE_GRACE_MS = 200
"""int: Milliseconds to wait after a graceful terminate before forcing."""
