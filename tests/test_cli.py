"""Tests for the Command Line Interface (CLI) module."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest
from rich.console import Console

from repo_updater import cli
from repo_updater.config import Config
from repo_updater.updater import EntryReport, RunSummary


@pytest.fixture
def repos_file(tmp_path: Path) -> Path:
    directory = tmp_path / "Responder"
    directory.mkdir()
    path = tmp_path / "repos.json"
    path.write_text(
        "["
        f'{{"path": "{directory}", "type": "application",'
        ' "compile": {"process": "swift", "arguments": ["build"]},'
        ' "relaunch": {"enable": true, "target": "infer"}},'
        f'{{"path": "{tmp_path / "missing"}"}}'
        "]"
    )
    return path


@pytest.fixture(autouse=True)
def isolated(mocker: MagicMock) -> MagicMock:
    """Keeps tests away from the user's settings and log handlers."""
    mocker.patch("repo_updater.cli.Config.load", return_value=Config())
    return mocker.patch("repo_updater.cli.updater.setup_logging")


def test_list_shows_configured_repositories(
    repos_file: Path, capsys: pytest.CaptureFixture, mocker: MagicMock
) -> None:
    """Verifies that --list renders entries without running the pipeline.

    Args:
        repos_file (Path): A repository list with one present and one missing path.
        capsys (pytest.CaptureFixture): Pytest fixture for capturing stdout.
        mocker (MagicMock): Pytest fixture for mocking.
    """
    mock_run = mocker.patch("repo_updater.cli.updater.run")
    mocker.patch("repo_updater.cli.console", Console(width=300))

    cli.main(["--config", str(repos_file), "--list"])

    out = capsys.readouterr().out
    assert "application" in out
    assert "swift build" in out
    assert "missing" in out
    mock_run.assert_not_called()


def test_main_runs_with_safe_flag(repos_file: Path, mocker: MagicMock) -> None:
    """Verifies that --safe and the chosen list reach the run loop."""
    mock_run = mocker.patch(
        "repo_updater.cli.updater.run", return_value=RunSummary([EntryReport("x")])
    )

    cli.main(["-c", str(repos_file), "--safe"])

    entries, config = mock_run.call_args.args
    assert len(entries) == 2
    assert isinstance(config, Config)
    assert mock_run.call_args.kwargs["safe"] is True


def test_main_defaults_to_unsafe(repos_file: Path, mocker: MagicMock) -> None:
    mock_run = mocker.patch("repo_updater.cli.updater.run", return_value=RunSummary())

    cli.main(["--config", str(repos_file)])

    assert mock_run.call_args.kwargs["safe"] is False


def test_main_exits_nonzero_on_failures(repos_file: Path, mocker: MagicMock) -> None:
    """Verifies the exit status when any entry failed."""
    mocker.patch(
        "repo_updater.cli.updater.run",
        return_value=RunSummary([EntryReport("a", error=RuntimeError("x"))]),
    )

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--config", str(repos_file)])

    assert excinfo.value.code == 1


def test_main_invalid_list_is_fatal(
    tmp_path: Path, capsys: pytest.CaptureFixture, mocker: MagicMock
) -> None:
    """Verifies that an unreadable repository list stops before processing."""
    bad = tmp_path / "repos.json"
    bad.write_text('{"path": "/x"}')
    mock_run = mocker.patch("repo_updater.cli.updater.run")

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--config", str(bad)])

    assert excinfo.value.code == 1
    assert "FATAL" in capsys.readouterr().err
    mock_run.assert_not_called()


def test_no_notify_disables_notifications(repos_file: Path, mocker: MagicMock) -> None:
    mock_run = mocker.patch("repo_updater.cli.updater.run", return_value=RunSummary())

    cli.main(["--config", str(repos_file), "--no-notify"])

    config = mock_run.call_args.args[1]
    assert config.core.notify is False


def test_resolve_entries_precedence(repos_file: Path, mocker: MagicMock) -> None:
    """Verifies flag, then settings, then the bundled list."""
    conf = Config()
    bundled = mocker.patch("repo_updater.cli.load_bundled_entries", return_value=[])

    assert len(cli.resolve_entries(str(repos_file), conf)) == 2
    bundled.assert_not_called()

    conf.core.repositories = str(repos_file)
    assert len(cli.resolve_entries(None, conf)) == 2
    bundled.assert_not_called()

    conf.core.repositories = None
    assert cli.resolve_entries(None, conf) == []
    bundled.assert_called_once()
