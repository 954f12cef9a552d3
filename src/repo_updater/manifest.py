"""Repository list model.

The repository list is a JSON array with one object per managed working copy::

    [
      {
        "path": "~/code/Responder",
        "type": "application",
        "compile": {"process": "swift", "arguments": ["build", "-c", "release"]},
        "relaunch": {"enable": true, "target": "infer"}
      }
    ]

Only ``path`` is required. Entries are read-only for the duration of one run.
"""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from importlib import resources
from pathlib import Path
from typing import Any

from .constants import APP_NAME, BUNDLED_REPOSITORIES
from .errors import ManifestError, RepositoryMissing

logger = logging.getLogger(APP_NAME)

_ENTRY_KEYS = {"path", "type", "compile", "relaunch"}


class RepoType(str, Enum):
    """Informational classification of a repository."""

    SCRIPT = "script"
    APPLICATION = "application"
    RESOURCE = "resource"


@dataclass(frozen=True)
class CompileSpec:
    """A build command run inside the repository.

    Attributes:
        process (str): Executable name, resolved through PATH.
        arguments (list[str]): Ordered arguments passed to the executable.
    """

    process: str
    arguments: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "CompileSpec":
        if not isinstance(data, dict):
            raise ManifestError(f"'compile' must be an object, got {type(data).__name__}")
        process = data.get("process")
        if not isinstance(process, str) or not process.strip():
            raise ManifestError("'compile.process' must be a non-empty string")
        arguments = data.get("arguments", [])
        if not isinstance(arguments, list) or not all(
            isinstance(a, str) for a in arguments
        ):
            raise ManifestError("'compile.arguments' must be a list of strings")
        return cls(process=process, arguments=list(arguments))


@dataclass(frozen=True)
class RelaunchSpec:
    """Relaunch policy for an entry.

    Attributes:
        enable (bool): Whether to restart the application after the update.
        target (str | None): Bundle name, or 'infer' to use the directory name.
    """

    enable: bool = False
    target: str | None = None

    @classmethod
    def from_dict(cls, data: Any) -> "RelaunchSpec":
        if not isinstance(data, dict):
            raise ManifestError(f"'relaunch' must be an object, got {type(data).__name__}")
        enable = data.get("enable", False)
        target = data.get("target")
        if not isinstance(enable, bool):
            raise ManifestError("'relaunch.enable' must be a boolean")
        if target is not None and (not isinstance(target, str) or not target.strip()):
            raise ManifestError("'relaunch.target' must be a non-empty string")
        return cls(enable=enable, target=target)


@dataclass(frozen=True)
class RepositoryEntry:
    """One managed working copy.

    Attributes:
        path (str): Filesystem path as written in the list (may use ~).
        type (RepoType | None): Informational repository type.
        compile (CompileSpec | None): Build command, if the repository is built.
        relaunch (RelaunchSpec | None): Relaunch policy, if any.
    """

    path: str
    type: RepoType | None = None
    compile: CompileSpec | None = None
    relaunch: RelaunchSpec | None = None

    @property
    def directory(self) -> Path:
        """The expanded, resolved repository directory.

        Raises:
            RepositoryMissing: If the path is not an existing directory.
        """
        resolved = Path(self.path).expanduser().resolve()
        if not resolved.is_dir():
            raise RepositoryMissing(resolved)
        return resolved

    @classmethod
    def from_dict(cls, data: Any) -> "RepositoryEntry":
        if not isinstance(data, dict):
            raise ManifestError(f"Entry must be an object, got {type(data).__name__}")

        path = data.get("path")
        if not isinstance(path, str) or not path.strip():
            raise ManifestError("'path' must be a non-empty string")

        unknown = set(data.keys()) - _ENTRY_KEYS
        if unknown:
            logger.warning(
                f"Unknown keys in entry {path}: {', '.join(sorted(unknown))}. Ignoring."
            )

        repo_type = None
        if data.get("type") is not None:
            try:
                repo_type = RepoType(data["type"])
            except ValueError as e:
                raise ManifestError(
                    f"Unknown repository type '{data['type']}' for {path}"
                ) from e

        compile_spec = None
        if data.get("compile") is not None:
            compile_spec = CompileSpec.from_dict(data["compile"])

        relaunch = None
        if data.get("relaunch") is not None:
            relaunch = RelaunchSpec.from_dict(data["relaunch"])

        return cls(path=path, type=repo_type, compile=compile_spec, relaunch=relaunch)


def parse_entries(text: str, source: str = "<string>") -> list[RepositoryEntry]:
    """Parses a JSON repository list.

    Args:
        text (str): The JSON document.
        source (str): Name used in error messages.

    Returns:
        list[RepositoryEntry]: Entries in declaration order.

    Raises:
        ManifestError: If the document is not a JSON array of valid entries.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ManifestError(f"Invalid JSON in {source}: {e}") from e

    if not isinstance(data, list):
        raise ManifestError(f"{source} must contain a JSON array of repositories")

    entries = []
    for index, item in enumerate(data):
        try:
            entries.append(RepositoryEntry.from_dict(item))
        except ManifestError as e:
            raise ManifestError(f"{source}, entry {index}: {e}") from e
    return entries


def load_entries(path: Path) -> list[RepositoryEntry]:
    """Reads the repository list at `path`, resolving symlinks first."""
    resolved = path.expanduser().resolve()
    try:
        text = resolved.read_text(encoding="utf-8")
    except OSError as e:
        raise ManifestError(f"Could not read repository list {resolved}: {e}") from e
    return parse_entries(text, source=str(resolved))


def load_bundled_entries() -> list[RepositoryEntry]:
    """Reads the repository list shipped with the package."""
    resource = resources.files("repo_updater.resources").joinpath(BUNDLED_REPOSITORIES)
    return parse_entries(resource.read_text(encoding="utf-8"), source=BUNDLED_REPOSITORIES)
