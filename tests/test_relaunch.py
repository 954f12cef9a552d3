"""Tests for the application relaunch state machine."""

import plistlib
from pathlib import Path
from unittest.mock import MagicMock, call

import pytest

from repo_updater.relaunch import (
    BundleIdentity,
    RelaunchOutcome,
    relaunch_application,
    resolve_bundle_name,
)
from repo_updater.system import SystemStrategy


def _make_bundle(
    directory: Path,
    name: str = "Responder.app",
    executable: str | None = "Responder",
    identifier: str | None = "com.example.responder",
) -> Path:
    bundle = directory / name
    contents = bundle / "Contents"
    contents.mkdir(parents=True)
    info: dict[str, str] = {}
    if executable:
        info["CFBundleExecutable"] = executable
    if identifier:
        info["CFBundleIdentifier"] = identifier
    with open(contents / "Info.plist", "wb") as f:
        plistlib.dump(info, f)
    return bundle


@pytest.fixture
def repo_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "Responder"
    directory.mkdir()
    return directory


@pytest.fixture
def system() -> MagicMock:
    """A process directory where nothing is running."""
    mock = MagicMock(spec=SystemStrategy)
    mock.running_instances.return_value = []
    mock.wait_for_exit.return_value = []
    mock.find_by_exact_name.return_value = None
    mock.find_by_command_line.return_value = None
    return mock


@pytest.mark.parametrize(
    ("target", "expected"),
    [
        ("infer", "Responder.app"),
        (None, "Responder.app"),
        ("Dashboard", "Dashboard.app"),
        ("Dashboard.app", "Dashboard.app"),
    ],
)
def test_resolve_bundle_name(repo_dir: Path, target: str | None, expected: str) -> None:
    """Verifies inference from the directory name and the .app suffix rule."""
    assert resolve_bundle_name(repo_dir, target) == expected


def test_bundle_identity_reads_info_plist(repo_dir: Path) -> None:
    bundle = _make_bundle(repo_dir)

    identity = BundleIdentity.read(bundle)

    assert identity == BundleIdentity(bundle, "Responder", "com.example.responder")


def test_missing_bundle_is_noop(repo_dir: Path, system: MagicMock) -> None:
    """Verifies that no process is touched when the bundle is absent."""
    outcome = relaunch_application(repo_dir, "infer", system=system)

    assert outcome is RelaunchOutcome.BUNDLE_MISSING
    system.running_instances.assert_not_called()
    system.terminate.assert_not_called()
    system.launch.assert_not_called()


def test_unreadable_metadata_is_noop(repo_dir: Path, system: MagicMock) -> None:
    """Verifies that a bundle without CFBundleExecutable is skipped."""
    _make_bundle(repo_dir, executable=None)

    outcome = relaunch_application(repo_dir, "infer", system=system)

    assert outcome is RelaunchOutcome.METADATA_UNREADABLE
    system.launch.assert_not_called()


def test_stop_by_bundle_identifier_escalates_and_relaunches(
    repo_dir: Path, system: MagicMock
) -> None:
    """Verifies graceful terminate for all instances, force for survivors, one launch.

    Args:
        repo_dir (Path): Repository directory fixture.
        system (MagicMock): Mocked process directory.
    """
    bundle = _make_bundle(repo_dir, identifier="com.example.foo")
    first, second = MagicMock(pid=101), MagicMock(pid=102)
    system.running_instances.return_value = [first, second]
    system.wait_for_exit.return_value = [second]

    outcome = relaunch_application(
        repo_dir, "infer", system=system, grace_period_ms=200
    )

    assert outcome is RelaunchOutcome.RELAUNCHED
    system.running_instances.assert_called_once_with("com.example.foo")
    assert system.terminate.call_args_list == [
        call(first),
        call(second),
        call(second, force=True),
    ]
    system.wait_for_exit.assert_called_once_with([first, second], 0.2)
    system.launch.assert_called_once_with(bundle)
    system.find_by_exact_name.assert_not_called()


def test_stop_by_exact_name_without_identifier(
    repo_dir: Path, system: MagicMock
) -> None:
    """Verifies the pgrep -x fallback when the bundle declares no identifier."""
    bundle = _make_bundle(repo_dir, identifier=None)
    system.find_by_exact_name.return_value = "4242"

    outcome = relaunch_application(repo_dir, "infer", system=system)

    assert outcome is RelaunchOutcome.RELAUNCHED
    system.running_instances.assert_not_called()
    system.find_by_exact_name.assert_called_once_with("Responder")
    system.signal_by_name.assert_called_once_with("Responder")
    system.find_by_command_line.assert_not_called()
    system.launch.assert_called_once_with(bundle)


def test_identifier_not_running_falls_through_to_name(
    repo_dir: Path, system: MagicMock
) -> None:
    """Verifies that an identifier with no instances still tries the name search."""
    _make_bundle(repo_dir)
    system.find_by_exact_name.return_value = "77"

    outcome = relaunch_application(repo_dir, "infer", system=system)

    assert outcome is RelaunchOutcome.RELAUNCHED
    system.running_instances.assert_called_once()
    system.signal_by_name.assert_called_once_with("Responder")


def test_stop_by_bundle_path(repo_dir: Path, system: MagicMock) -> None:
    """Verifies the pgrep -f fallback signals by executable name."""
    bundle = _make_bundle(repo_dir, name="Helper.app", executable="helperd")
    system.find_by_command_line.return_value = "900\n901"

    outcome = relaunch_application(repo_dir, "Helper", system=system)

    assert outcome is RelaunchOutcome.RELAUNCHED
    system.find_by_command_line.assert_called_once_with(str(bundle))
    system.signal_by_name.assert_called_once_with("helperd")
    system.launch.assert_called_once_with(bundle)


def test_not_running_does_not_relaunch(repo_dir: Path, system: MagicMock) -> None:
    """Verifies that an application nobody was running is not started."""
    _make_bundle(repo_dir)

    outcome = relaunch_application(repo_dir, "infer", system=system)

    assert outcome is RelaunchOutcome.NOT_RUNNING
    system.terminate.assert_not_called()
    system.signal_by_name.assert_not_called()
    system.launch.assert_not_called()
