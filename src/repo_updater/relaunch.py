"""Stops a running application bundle and starts it again after a rebuild.

An application that was not running is left alone. Running instances are
looked up by three strategies, in order, and the first one that finds
something is the one used to stop the application:

1. bundle identifier (graceful terminate, then force after a grace period),
2. exact executable name,
3. command line containing the full bundle path.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

import psutil

from .constants import APP_NAME, APP_SUFFIX, INFER_TARGET, TERMINATE_GRACE_MS
from .system import SystemStrategy, get_system, read_bundle_info

logger = logging.getLogger(APP_NAME)


class RelaunchOutcome(str, Enum):
    BUNDLE_MISSING = "bundle-missing"
    METADATA_UNREADABLE = "metadata-unreadable"
    NOT_RUNNING = "not-running"
    RELAUNCHED = "relaunched"


@dataclass(frozen=True)
class BundleIdentity:
    """Resolved application bundle.

    Attributes:
        path (Path): The `.app` directory.
        executable (str): CFBundleExecutable from Info.plist.
        identifier (str | None): CFBundleIdentifier, if declared.
    """

    path: Path
    executable: str
    identifier: str | None = None

    @classmethod
    def read(cls, bundle_path: Path) -> "BundleIdentity | None":
        """Reads identity from the bundle's Info.plist; None if unusable."""
        info = read_bundle_info(bundle_path)
        if info is None:
            return None
        executable = info.get("CFBundleExecutable")
        if not isinstance(executable, str) or not executable:
            return None
        identifier = info.get("CFBundleIdentifier")
        if not isinstance(identifier, str) or not identifier:
            identifier = None
        return cls(path=bundle_path, executable=executable, identifier=identifier)


@dataclass
class RunningMatch:
    """Running instances found by one stop strategy."""

    description: str
    processes: list[psutil.Process] = field(default_factory=list)


class StopStrategy:
    """Finds running instances of a bundle and stops them."""

    label = "base"

    def find(
        self, identity: BundleIdentity, system: SystemStrategy
    ) -> RunningMatch | None:
        raise NotImplementedError

    def stop(
        self, identity: BundleIdentity, match: RunningMatch, system: SystemStrategy
    ) -> None:
        raise NotImplementedError


class BundleIdentifierStrategy(StopStrategy):
    label = "bundle-id"

    def __init__(self, grace_period_ms: int = TERMINATE_GRACE_MS):
        self.grace_period_ms = grace_period_ms

    def find(
        self, identity: BundleIdentity, system: SystemStrategy
    ) -> RunningMatch | None:
        if identity.identifier is None:
            logger.info("[INFO] No bundle identifier; falling back to pgrep/killall.")
            return None
        running = system.running_instances(identity.identifier)
        if not running:
            logger.info(f"[NOT RUNNING] {identity.identifier}")
            return None
        pids = ",".join(str(p.pid) for p in running)
        return RunningMatch(f"{identity.identifier} → {pids}", running)

    def stop(
        self, identity: BundleIdentity, match: RunningMatch, system: SystemStrategy
    ) -> None:
        for proc in match.processes:
            system.terminate(proc)
        alive = system.wait_for_exit(match.processes, self.grace_period_ms / 1000)
        for proc in alive:
            logger.info(f"[FORCE] pid {proc.pid} ignored terminate; killing.")
            system.terminate(proc, force=True)


class ExactNameStrategy(StopStrategy):
    label = "pgrep -x"

    def find(
        self, identity: BundleIdentity, system: SystemStrategy
    ) -> RunningMatch | None:
        pids = system.find_by_exact_name(identity.executable)
        if pids is None:
            logger.info(f"[CHECK pgrep -x] no exact name match for {identity.executable}")
            return None
        return RunningMatch(f"{identity.executable} {' '.join(pids.split())}")

    def stop(
        self, identity: BundleIdentity, match: RunningMatch, system: SystemStrategy
    ) -> None:
        system.signal_by_name(identity.executable)


class BundlePathStrategy(StopStrategy):
    label = "pgrep -f"

    def find(
        self, identity: BundleIdentity, system: SystemStrategy
    ) -> RunningMatch | None:
        pids = system.find_by_command_line(str(identity.path))
        if pids is None:
            logger.info(f"[NOT RUNNING] {identity.executable}")
            return None
        return RunningMatch(" ".join(pids.split()))

    def stop(
        self, identity: BundleIdentity, match: RunningMatch, system: SystemStrategy
    ) -> None:
        # killall addresses processes by executable name, not by path.
        system.signal_by_name(identity.executable)


def default_strategies(grace_period_ms: int = TERMINATE_GRACE_MS) -> list[StopStrategy]:
    return [
        BundleIdentifierStrategy(grace_period_ms),
        ExactNameStrategy(),
        BundlePathStrategy(),
    ]


def resolve_bundle_name(directory: Path, target: str | None = None) -> str:
    """Works out the `.app` name to relaunch for a repository.

    Args:
        directory (Path): The repository directory.
        target (str | None, optional): A literal bundle name, or 'infer' /
            None for '<directory name>.app'.

    Returns:
        str: The bundle directory name, always ending in '.app'.
    """
    name = directory.name if target is None or target == INFER_TARGET else target
    return name if name.endswith(APP_SUFFIX) else name + APP_SUFFIX


def stop_running(
    identity: BundleIdentity,
    system: SystemStrategy,
    strategies: list[StopStrategy],
) -> StopStrategy | None:
    """Stops the application using the first strategy that finds it running.

    Returns:
        StopStrategy | None: The strategy that stopped the application, or
        None if no strategy found it running.
    """
    for strategy in strategies:
        match = strategy.find(identity, system)
        if match is None:
            continue
        logger.info(f"[RUNNING] ({strategy.label}) {match.description}")
        strategy.stop(identity, match, system)
        logger.info(f"[STOPPED] {identity.identifier or identity.executable}")
        return strategy
    return None


def relaunch_application(
    directory: Path,
    target: str | None = None,
    system: SystemStrategy | None = None,
    grace_period_ms: int = TERMINATE_GRACE_MS,
    strategies: list[StopStrategy] | None = None,
) -> RelaunchOutcome:
    """Restarts the repository's application bundle if it is running.

    Args:
        directory (Path): The repository directory containing the bundle.
        target (str | None, optional): Bundle name or 'infer'.
        system (SystemStrategy | None, optional): Process directory. Defaults
            to the platform strategy.
        grace_period_ms (int, optional): Wait between graceful and forced
            termination.
        strategies (list[StopStrategy] | None, optional): Stop strategies in
            priority order. Defaults to `default_strategies`.

    Returns:
        RelaunchOutcome: What happened. Only `RELAUNCHED` launches anything.

    Raises:
        CommandLaunchFailed: If the bundle could not be opened after stopping.
    """
    system = system or get_system()
    strategies = strategies if strategies is not None else default_strategies(grace_period_ms)

    bundle_name = resolve_bundle_name(directory, target)
    bundle_path = directory / bundle_name

    if not bundle_path.exists():
        logger.info(f"No {bundle_name} found at {bundle_path}; skipping launch.")
        return RelaunchOutcome.BUNDLE_MISSING

    identity = BundleIdentity.read(bundle_path)
    if identity is None:
        logger.info(f"Could not read CFBundleExecutable from {bundle_path}; skipping.")
        return RelaunchOutcome.METADATA_UNREADABLE

    if stop_running(identity, system, strategies) is None:
        return RelaunchOutcome.NOT_RUNNING

    system.launch(bundle_path)
    logger.info(f"[RE-LAUNCHED] {bundle_name}")
    return RelaunchOutcome.RELAUNCHED
