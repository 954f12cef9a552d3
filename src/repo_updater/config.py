import logging
import re
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from .constants import (
    APP_NAME,
    COMPILED_SEARCH_DEPTH,
    CONFIG_FILE,
    DEFAULT_OUTPUT_DIR,
    RELEASE_SEARCH_DEPTH,
    TERMINATE_GRACE_MS,
)

logger = logging.getLogger(APP_NAME)

DIVERGED_POLICIES = ("reset", "bail")


def parse_size(value: int | str) -> int:
    """Converts human-readable size strings (e.g., '100MB') to bytes."""
    if isinstance(value, int):
        return value
    match = re.match(r"^(\d+(?:\.\d+)?)\s*([kmg]b?)$", str(value).strip().lower())
    if not match:
        raise ValueError(f"Invalid size format '{value}'")
    num, unit = float(match.group(1)), match.group(2)
    multiplier = {
        "k": 1024,
        "kb": 1024,
        "m": 1024**2,
        "mb": 1024**2,
        "g": 1024**3,
        "gb": 1024**3,
    }
    return int(num * multiplier[unit])


def parse_time(value: int | str) -> int:
    """Converts human-readable time strings (e.g., '1hr', '30m') to seconds."""
    if isinstance(value, int):
        return value
    match = re.match(
        r"^(\d+(?:\.\d+)?)\s*(s|sec|m|min|h|hr)s?$", str(value).strip().lower()
    )
    if not match:
        raise ValueError(f"Invalid time format '{value}'")
    num, unit = float(match.group(1)), match.group(2)
    multiplier = {"s": 1, "sec": 1, "m": 60, "min": 60, "h": 3600, "hr": 3600}
    return int(num * multiplier[unit])


def parse_policy(value: str) -> str:
    """Validates the policy applied to diverged branches outside safe mode."""
    policy = str(value).strip().lower()
    if policy not in DIVERGED_POLICIES:
        raise ValueError(
            f"Invalid policy '{value}' (expected one of {', '.join(DIVERGED_POLICIES)})"
        )
    return policy


@dataclass
class CoreConfig:
    """Core application settings.

    Attributes:
        output_dir (str): Directory exported to build commands for deployed
            binaries. Created on demand.
        repositories (str | None): Repository list used when `--config` is not
            given. Falls back to the bundled list.
        notify (bool): Send a desktop notification when an entry fails.
    """

    output_dir: str = DEFAULT_OUTPUT_DIR
    repositories: str | None = None
    notify: bool = True

    @property
    def output_path(self) -> Path:
        return Path(self.output_dir).expanduser()


@dataclass
class LimitsConfig:
    """Resource limitation settings.

    Attributes:
        max_log_size (int): Max bytes for log files before rotation.
        compile_timeout (int | None): Seconds a build may run before it is
            abandoned. None waits indefinitely.
    """

    max_log_size: int = 5 * 1024 * 1024
    compile_timeout: int | None = None


@dataclass
class SearchConfig:
    """Build descriptor discovery settings.

    Attributes:
        release_depth (int): Ancestor levels searched for the release descriptor.
        compiled_depth (int): Ancestor levels searched for the compiled record.
    """

    release_depth: int = RELEASE_SEARCH_DEPTH
    compiled_depth: int = COMPILED_SEARCH_DEPTH


@dataclass
class RelaunchConfig:
    """Application relaunch settings.

    Attributes:
        grace_period (int): Milliseconds between a graceful terminate request
            and forced termination of survivors.
    """

    grace_period: int = TERMINATE_GRACE_MS


@dataclass
class SyncConfig:
    """Git synchronization settings.

    Attributes:
        diverged_policy (str): 'reset' discards local commits when a branch is
            both ahead and behind outside safe mode; 'bail' stops and asks for
            a manual rebase instead.
    """

    diverged_policy: str = "reset"


@dataclass
class Config:
    """Global configuration aggregator.

    Attributes:
        core (CoreConfig): Core settings.
        limits (LimitsConfig): Resource limits.
        search (SearchConfig): Descriptor search depths.
        relaunch (RelaunchConfig): Relaunch timing.
        sync (SyncConfig): Git policy settings.
    """

    core: CoreConfig = field(default_factory=CoreConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    relaunch: RelaunchConfig = field(default_factory=RelaunchConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Loads configuration from defaults merged with the settings file.

        Args:
            path (Path | None): Settings file to read. Defaults to CONFIG_FILE.

        Returns:
            Config: The fully merged configuration object.
        """
        instance = cls()
        source = path or CONFIG_FILE
        if source.exists():
            instance._merge_from_file(source)
        return instance

    def _merge_from_file(self, path: Path) -> None:
        """Parses a TOML file and merges it into the current instance.

        Args:
            path (Path): Path to the TOML file.
        """
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)

            if not data:
                return

            unknown = set(data.keys()) - set(self.__dataclass_fields__.keys())
            if unknown:
                logger.warning(
                    f"Unknown config sections in {path.name}: {', '.join(sorted(unknown))}. Ignoring."
                )

            for section in self.__dataclass_fields__:
                if section in data:
                    setattr(
                        self,
                        section,
                        self._update_dataclass(
                            section, getattr(self, section), data[section]
                        ),
                    )

        except tomllib.TOMLDecodeError as e:
            logger.error(f"Config syntax error in {path}: {e}")
        except Exception as e:
            logger.warning(f"Failed to load config from {path}: {e}")

    @staticmethod
    def _update_dataclass(section_name: str, instance: Any, updates: dict) -> Any:
        """Updates a dataclass, warning on invalid keys and parsing human-readable formats."""
        valid_keys = instance.__dataclass_fields__.keys()
        filtered_updates = {}

        # 1. Catch and warn about typos / unknown keys
        invalid_keys = set(updates.keys()) - set(valid_keys)
        if invalid_keys:
            logger.warning(
                f"Unknown config keys in [{section_name}]: {', '.join(sorted(invalid_keys))}. Ignoring."
            )

        # 2. Process valid keys
        for k, v in updates.items():
            if k not in valid_keys:
                continue

            try:
                if k == "max_log_size":
                    filtered_updates[k] = parse_size(v)
                elif k == "compile_timeout":
                    filtered_updates[k] = parse_time(v)
                elif k == "diverged_policy":
                    filtered_updates[k] = parse_policy(v)
                elif k in ["release_depth", "compiled_depth", "grace_period"]:
                    if not isinstance(v, int) or v < 0:
                        raise ValueError(f"Expected a non-negative integer, got '{v}'")
                    filtered_updates[k] = v
                else:
                    filtered_updates[k] = v
            except ValueError as e:
                logger.warning(
                    f"Config error in [{section_name}].{k}: {e}. Falling back to default."
                )

        return replace(instance, **filtered_updates)
