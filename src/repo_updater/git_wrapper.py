import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path

from .constants import APP_NAME
from .errors import CommandLaunchFailed, GitCommandFailed, NoUpstreamConfigured

logger = logging.getLogger(APP_NAME)


@dataclass(frozen=True)
class Divergence:
    """Commit counts separating the local head from its upstream.

    Attributes:
        ahead (int): Commits reachable only from the local head.
        behind (int): Commits reachable only from the upstream head.
    """

    ahead: int = 0
    behind: int = 0

    @property
    def is_up_to_date(self) -> bool:
        return self.ahead == 0 and self.behind == 0


@dataclass(frozen=True)
class Outdated:
    """A successful comparison of the local and upstream heads."""

    value: bool

    @property
    def is_outdated(self) -> bool:
        return self.value


@dataclass(frozen=True)
class ProbeFailed:
    """The upstream could not be fetched or resolved.

    A failed probe counts as "not outdated" so that an unreachable remote does
    not block version checks, builds, or relaunches.
    """

    reason: str

    @property
    def is_outdated(self) -> bool:
        return False


OutdatedProbe = Outdated | ProbeFailed


class GitRepo:
    """A wrapper around the Git command-line interface for a specific repository.

    Probing methods (fetching excepted) never change the working copy; the
    only mutation offered is `reset_hard`, used by the sync policy engine.

    Attributes:
        path (Path): The file system path to the repository root.
    """

    def __init__(self, path: Path):
        """Initializes the GitRepo instance.

        Args:
            path (Path): The path to the repository root directory.

        Raises:
            ValueError: If the specified path does not contain a .git entry.
        """
        self.path = path
        if not (self.path / ".git").exists():
            raise ValueError(f"Not a git repository: {self.path}")

    def _run(self, args: list[str], capture: bool = True) -> str:
        """Executes a Git command within the repository context.

        Args:
            args (list[str]): A list of arguments to pass to the git command.
            capture (bool, optional): Whether to capture and return stdout.
                Defaults to True.

        Returns:
            str: The stripped stdout of the command if capture is True,
                otherwise an empty string.

        Raises:
            GitCommandFailed: If the git command returns a non-zero exit code.
            CommandLaunchFailed: If git itself cannot be executed.
        """
        cmd = ["git", *args]
        logger.debug(f"{self.path.name}: {' '.join(cmd)}")
        try:
            res = subprocess.run(
                cmd,
                cwd=self.path,
                capture_output=capture,
                stdin=subprocess.DEVNULL,
                text=True,
                check=True,
            )
            return res.stdout.strip() if capture else ""
        except subprocess.CalledProcessError as e:
            output = (e.stderr or e.stdout or "").strip()
            raise GitCommandFailed(cmd, e.returncode, output) from e
        except FileNotFoundError as e:
            raise CommandLaunchFailed("git", str(e)) from e

    def upstream(self) -> tuple[str, str]:
        """Determines the remote and branch tracked by the current branch.

        Returns:
            tuple[str, str]: (remote, branch), e.g. ('origin', 'master').

        Raises:
            NoUpstreamConfigured: If the current branch tracks nothing.
        """
        try:
            ref = self._run(
                ["rev-parse", "--abbrev-ref", "--symbolic-full-name", "@{u}"]
            )
        except GitCommandFailed as e:
            raise NoUpstreamConfigured(self.path, e.output) from e

        remote, sep, branch = ref.partition("/")
        if not sep or not remote or not branch:
            raise NoUpstreamConfigured(self.path, f"Unexpected upstream ref '{ref}'")
        return remote, branch

    def fetch_upstream(self, prune: bool = True) -> None:
        """Fetches from the remote tracked by the current branch.

        Args:
            prune (bool, optional): Remove stale remote-tracking refs.
                Defaults to True.
        """
        remote, _ = self.upstream()
        cmd = ["fetch", remote]
        if prune:
            cmd.append("--prune")
        self._run(cmd)

    def head_local(self) -> str:
        return self._run(["rev-parse", "HEAD"])

    def head_remote(self) -> str:
        return self._run(["rev-parse", "@{u}"])

    def outdated(self) -> OutdatedProbe:
        """Fetches and compares the local head with the upstream head.

        Returns:
            OutdatedProbe: `Outdated(True)` when the heads differ,
                `Outdated(False)` when they match, and `ProbeFailed` when the
                remote could not be fetched or either head could not be
                resolved.
        """
        try:
            self.fetch_upstream(prune=True)
            local = self.head_local()
            remote = self.head_remote()
        except (GitCommandFailed, NoUpstreamConfigured, CommandLaunchFailed) as e:
            logger.debug(f"Outdated probe failed for {self.path.name}: {e}")
            return ProbeFailed(e.summary)
        return Outdated(local != remote)

    def divergence(self, fetch: bool = True) -> Divergence:
        """Counts commits unique to the local head and to its upstream.

        Args:
            fetch (bool, optional): Fetch from the upstream first. Defaults to True.

        Returns:
            Divergence: The ahead/behind counts. Unparseable output yields (0, 0).
        """
        if fetch:
            self.fetch_upstream(prune=True)
        output = self._run(["rev-list", "--left-right", "--count", "HEAD...@{u}"])

        # Format: "<ahead>\t<behind>"
        parts = output.split()
        try:
            ahead, behind = (int(p) for p in parts)
        except ValueError:
            logger.warning(f"Unexpected rev-list output for {self.path.name}: '{output}'")
            return Divergence()
        return Divergence(ahead=ahead, behind=behind)

    def status_porcelain(self) -> list[str]:
        """Returns the porcelain (machine-readable) status of the repository.

        Returns:
            list[str]: A list of status lines returned by `git status --porcelain`.
        """
        output = self._run(["status", "--porcelain"])
        return output.splitlines() if output else []

    def is_dirty(self) -> bool:
        """Whether the working tree has staged, unstaged, or untracked changes."""
        return bool(self.status_porcelain())

    def reset_hard(self, target: str = "@{u}") -> None:
        """Resets the index and working tree to exactly match `target`.

        Untracked files are left in place.

        Args:
            target (str, optional): The commit to reset to. Defaults to the
                upstream tracking ref.
        """
        self._run(["reset", "--hard", target])
