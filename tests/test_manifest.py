"""Tests for the repository list model."""

import json
from pathlib import Path

import pytest

from repo_updater.errors import ManifestError, RepositoryMissing
from repo_updater.manifest import (
    CompileSpec,
    RelaunchSpec,
    RepositoryEntry,
    RepoType,
    load_bundled_entries,
    load_entries,
    parse_entries,
)


def test_parse_full_entry() -> None:
    """Verifies that every documented key is read."""
    entries = parse_entries(
        json.dumps(
            [
                {
                    "path": "~/code/Responder",
                    "type": "application",
                    "compile": {"process": "sbm", "arguments": ["--local"]},
                    "relaunch": {"enable": True, "target": "infer"},
                },
                {"path": "/srv/scripts"},
            ]
        )
    )

    assert entries == [
        RepositoryEntry(
            path="~/code/Responder",
            type=RepoType.APPLICATION,
            compile=CompileSpec("sbm", ["--local"]),
            relaunch=RelaunchSpec(enable=True, target="infer"),
        ),
        RepositoryEntry(path="/srv/scripts"),
    ]


def test_compile_arguments_default_empty() -> None:
    (entry,) = parse_entries('[{"path": "/x", "compile": {"process": "make"}}]')
    assert entry.compile == CompileSpec("make", [])


@pytest.mark.parametrize(
    ("document", "message"),
    [
        ("{}", "JSON array"),
        ("[not json", "Invalid JSON"),
        ('[{"type": "script"}]', "'path'"),
        ('[{"path": "/x", "compile": {"process": ""}}]', "compile.process"),
        ('[{"path": "/x", "compile": {"process": "make", "arguments": "all"}}]', "arguments"),
        ('[{"path": "/x", "relaunch": {"enable": "yes"}}]', "relaunch.enable"),
        ('[{"path": "/x", "type": "library"}]', "Unknown repository type"),
    ],
)
def test_parse_entries_rejects_invalid(document: str, message: str) -> None:
    """Verifies that validation errors name the offending field."""
    with pytest.raises(ManifestError, match=message):
        parse_entries(document)


def test_entry_directory_expands_and_validates(tmp_path: Path) -> None:
    """Verifies that the path must exist as a directory at evaluation time."""
    entry = RepositoryEntry(path=str(tmp_path))
    assert entry.directory == tmp_path.resolve()

    missing = RepositoryEntry(path=str(tmp_path / "gone"))
    with pytest.raises(RepositoryMissing):
        missing.directory


def test_load_entries_reads_file(tmp_path: Path) -> None:
    path = tmp_path / "repos.json"
    path.write_text('[{"path": "/a"}, {"path": "/b"}]')

    assert [e.path for e in load_entries(path)] == ["/a", "/b"]


def test_load_entries_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ManifestError, match="Could not read"):
        load_entries(tmp_path / "nope.json")


def test_bundled_entries_are_valid() -> None:
    """Verifies that the shipped repository list parses."""
    entries = load_bundled_entries()
    assert entries
    assert all(isinstance(e, RepositoryEntry) for e in entries)
