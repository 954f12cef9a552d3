"""Decides and applies the git action for one repository.

The decision is a pure function of the probe results so that every branch of
the policy can be exercised without a repository:

1. A dirty tree in safe mode aborts before anything else.
2. When the heads differ (or either side has unique commits), safe mode with
   local commits aborts; everything else resets to the upstream.
3. Otherwise the repository is up to date.

Only `RESET_TO_UPSTREAM` and `UP_TO_DATE` let the entry continue to the build
and relaunch steps.
"""

import logging
from dataclasses import dataclass
from enum import Enum

from .constants import APP_NAME
from .git_wrapper import Divergence, GitRepo, OutdatedProbe, ProbeFailed

logger = logging.getLogger(APP_NAME)


class SyncAction(str, Enum):
    ABORT_DIRTY = "abort-dirty"
    ABORT_DIVERGED = "abort-diverged"
    RESET_TO_UPSTREAM = "reset-to-upstream"
    UP_TO_DATE = "up-to-date"


@dataclass(frozen=True)
class SyncDecision:
    """The outcome of the sync policy for one entry.

    Attributes:
        action (SyncAction): The terminal state reached.
        divergence (Divergence): Ahead/behind counts used for the decision.
        dirty (bool): Whether the working tree had changes.
        probe (OutdatedProbe): Result of the outdated probe.
        remote (str): Upstream remote name, when known.
        branch (str): Upstream branch name, when known.
    """

    action: SyncAction
    divergence: Divergence
    dirty: bool
    probe: OutdatedProbe
    remote: str = ""
    branch: str = ""

    @property
    def proceeds(self) -> bool:
        """Whether compile and relaunch may run after this decision."""
        return self.action in (SyncAction.RESET_TO_UPSTREAM, SyncAction.UP_TO_DATE)

    @property
    def upstream(self) -> str:
        return f"{self.remote}/{self.branch}"


def decide(
    probe: OutdatedProbe,
    divergence: Divergence,
    dirty: bool,
    safe: bool,
    diverged_policy: str = "reset",
) -> SyncAction:
    """Maps probe results to a sync action.

    Args:
        probe (OutdatedProbe): Result of comparing heads after a fetch. A
            `ProbeFailed` counts as not outdated.
        divergence (Divergence): Ahead/behind counts against the upstream.
        dirty (bool): Whether the working tree has changes.
        safe (bool): Forbid discarding uncommitted changes or local commits.
        diverged_policy (str, optional): 'reset' or 'bail' for a branch that is
            both ahead and behind outside safe mode. Defaults to 'reset'.

    Returns:
        SyncAction: The action to take.
    """
    if dirty and safe:
        return SyncAction.ABORT_DIRTY

    if probe.is_outdated or divergence.ahead > 0 or divergence.behind > 0:
        if divergence.ahead > 0 and safe:
            return SyncAction.ABORT_DIVERGED
        if (
            diverged_policy == "bail"
            and divergence.ahead > 0
            and divergence.behind > 0
        ):
            return SyncAction.ABORT_DIVERGED
        return SyncAction.RESET_TO_UPSTREAM

    return SyncAction.UP_TO_DATE


def synchronize(
    repo: GitRepo, safe: bool, diverged_policy: str = "reset"
) -> SyncDecision:
    """Probes the repository, decides the sync action, and applies it.

    Args:
        repo (GitRepo): The repository to synchronize.
        safe (bool): Whether safe mode is enabled for this run.
        diverged_policy (str, optional): See `decide`.

    Returns:
        SyncDecision: The decision taken, including probe details.

    Raises:
        NoUpstreamConfigured: If the current branch tracks nothing.
        GitCommandFailed: If any git command fails.
    """
    name = repo.path.name

    probe = repo.outdated()
    if isinstance(probe, ProbeFailed):
        logger.warning(
            f"{name}: Could not reach upstream ({probe.reason}). "
            "Treating as not outdated."
        )
    elif not probe.is_outdated:
        logger.info(f"{name}: No upstream changes; continuing to version check.")

    remote, branch = repo.upstream()
    # The outdated probe already fetched (or could not); compare against the
    # tracking ref as it stands.
    divergence = repo.divergence(fetch=False)
    logger.info(
        f"{name}: Upstream {remote}/{branch} "
        f"(ahead={divergence.ahead}, behind={divergence.behind})"
    )

    dirty = repo.is_dirty()
    action = decide(probe, divergence, dirty, safe, diverged_policy)
    decision = SyncDecision(
        action=action,
        divergence=divergence,
        dirty=dirty,
        probe=probe,
        remote=remote,
        branch=branch,
    )

    if dirty and not safe:
        logger.warning(
            f"{name}: Working tree is dirty. Continuing because safe mode is off; "
            "tracked changes will be discarded if a reset is required."
        )

    if action is SyncAction.ABORT_DIRTY:
        logger.error(f"{name}: Working tree is dirty. Aborting to avoid losing changes.")
        logger.info(
            f"{name}: Hint: commit/stash or run: "
            f"git reset --hard && git pull --ff-only {remote} {branch}"
        )
    elif action is SyncAction.ABORT_DIVERGED:
        logger.error(
            f"{name}: Branch has local commits (ahead {divergence.ahead}, "
            f"behind {divergence.behind}). Leaving history untouched."
        )
        logger.info(
            f"{name}: Resolve manually: git pull --rebase {remote} {branch}, then re-run."
        )
    elif action is SyncAction.RESET_TO_UPSTREAM:
        logger.info(f"{name}: Resetting to {remote}/{branch}...")
        repo.reset_hard("@{u}")
        logger.info(f"{name}: Now at {repo.head_local()[:10]}.")
    else:
        logger.info(f"{name}: Already up to date with {remote}/{branch}.")

    return decision
