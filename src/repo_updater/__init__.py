"""Repo Updater: keep local working copies in step with their upstream.

This package provides the command-line interface, the per-repository sync
policy, the build version gate, and the application relaunch logic used to
refresh a list of local git repositories in one pass.
"""

from . import (
    cli,
    compiler,
    config,
    constants,
    errors,
    git_wrapper,
    manifest,
    relaunch,
    sync,
    system,
    updater,
    versions,
)

__all__ = [
    "cli",
    "compiler",
    "config",
    "constants",
    "errors",
    "git_wrapper",
    "manifest",
    "relaunch",
    "sync",
    "system",
    "updater",
    "versions",
]
