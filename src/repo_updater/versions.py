import logging
import re
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .constants import (
    APP_NAME,
    COMPILED_RECORD,
    COMPILED_SEARCH_DEPTH,
    RELEASE_DESCRIPTOR,
    RELEASE_SEARCH_DEPTH,
)
from .errors import DescriptorInvalid, ReleaseDescriptorMissing

logger = logging.getLogger(APP_NAME)

_SEMVER_RE = re.compile(r"^v?(\d+)\.(\d+)\.(\d+)$")


@dataclass(frozen=True, order=True)
class SemVer:
    """A three-part release version, ordered on (major, minor, patch)."""

    major: int
    minor: int
    patch: int

    def __post_init__(self) -> None:
        for part in (self.major, self.minor, self.patch):
            if isinstance(part, bool) or not isinstance(part, int) or part < 0:
                raise ValueError(f"Version parts must be non-negative integers: {self!r}")

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"

    @classmethod
    def parse(cls, text: str) -> "SemVer":
        """Parses 'MAJOR.MINOR.PATCH', with an optional leading 'v'."""
        match = _SEMVER_RE.match(text.strip())
        if not match:
            raise ValueError(f"Invalid version '{text}'")
        return cls(*(int(g) for g in match.groups()))

    @classmethod
    def from_value(cls, value: Any) -> "SemVer":
        """Builds a version from a string or a {major, minor, patch} table."""
        if isinstance(value, str):
            return cls.parse(value)
        if isinstance(value, dict):
            try:
                return cls(value["major"], value["minor"], value["patch"])
            except KeyError as e:
                raise ValueError(f"Version table is missing {e}") from e
        raise ValueError(f"Unsupported version value: {value!r}")


@dataclass(frozen=True)
class BuildDecision:
    """Whether a repository needs rebuilding.

    Attributes:
        rebuild (bool): True if the build command should run.
        release (SemVer): Version declared by the release descriptor.
        compiled (SemVer | None): Version last built, None if never built.
    """

    rebuild: bool
    release: SemVer
    compiled: SemVer | None

    @property
    def reason(self) -> str:
        if self.compiled is None:
            return f"No {COMPILED_RECORD} detected; compiling {self.release}."
        if self.rebuild:
            return f"Built version {self.compiled} is behind release {self.release}."
        return f"Built version {self.compiled} is up to date (release {self.release})."


def find_descriptor(start_dir: Path, filename: str, max_depth: int) -> Path | None:
    """Looks for `filename` in `start_dir` and then in its ancestors.

    Args:
        start_dir (Path): The directory to start from.
        filename (str): The file name to look for.
        max_depth (int): Number of ancestor levels to climb; 0 checks only
            `start_dir`.

    Returns:
        Path | None: The first matching file, or None.
    """
    candidates = [start_dir, *start_dir.parents][: max_depth + 1]
    for directory in candidates:
        candidate = directory / filename
        if candidate.is_file():
            return candidate
    return None


def _read_toml(path: Path) -> dict:
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise DescriptorInvalid(f"Syntax error in {path}: {e}") from e
    except OSError as e:
        raise DescriptorInvalid(f"Could not read {path}: {e}") from e


def load_release_version(path: Path) -> SemVer:
    """Reads `versions.release` from a release descriptor.

    Both `release = "1.2.3"` and a `[versions.release]` table with
    major/minor/patch keys are accepted.
    """
    data = _read_toml(path)
    try:
        return SemVer.from_value(data["versions"]["release"])
    except (KeyError, TypeError) as e:
        raise DescriptorInvalid(f"{path} does not declare versions.release") from e
    except ValueError as e:
        raise DescriptorInvalid(f"{path}: {e}") from e


def load_compiled_version(path: Path) -> SemVer:
    """Reads `version` from a compiled record."""
    data = _read_toml(path)
    if "version" not in data:
        raise DescriptorInvalid(f"{path} does not declare a version")
    try:
        return SemVer.from_value(data["version"])
    except ValueError as e:
        raise DescriptorInvalid(f"{path}: {e}") from e


def needs_rebuild(release: SemVer, compiled: SemVer | None) -> bool:
    """A rebuild is due if nothing was built or the build is older than the release."""
    return compiled is None or compiled < release


def evaluate_build(
    directory: Path,
    release_depth: int = RELEASE_SEARCH_DEPTH,
    compiled_depth: int = COMPILED_SEARCH_DEPTH,
) -> BuildDecision:
    """Compares the release version with the last compiled version.

    Args:
        directory (Path): The repository root.
        release_depth (int, optional): Ancestor levels searched for the
            release descriptor.
        compiled_depth (int, optional): Ancestor levels searched for the
            compiled record.

    Returns:
        BuildDecision: The rebuild decision and the versions it was based on.

    Raises:
        ReleaseDescriptorMissing: If no release descriptor is found.
        DescriptorInvalid: If a descriptor exists but cannot be read.
    """
    release_path = find_descriptor(directory, RELEASE_DESCRIPTOR, release_depth)
    if release_path is None:
        raise ReleaseDescriptorMissing(directory, RELEASE_DESCRIPTOR)
    release = load_release_version(release_path)

    compiled = None
    compiled_path = find_descriptor(directory, COMPILED_RECORD, compiled_depth)
    if compiled_path is not None:
        compiled = load_compiled_version(compiled_path)

    logger.debug(
        f"{directory.name}: release {release} ({release_path}), "
        f"compiled {compiled or 'none'} ({compiled_path or '-'})"
    )
    return BuildDecision(
        rebuild=needs_rebuild(release, compiled), release=release, compiled=compiled
    )
