"""Exception hierarchy for the repository updater.

Every error raised while processing one repository entry derives from
:class:`UpdaterError`, which is what the run loop catches at the entry
boundary. Policy-driven early stops (dirty tree, diverged history) and
relaunch no-ops are not errors and are reported as outcome values instead.
"""

from pathlib import Path


class UpdaterError(Exception):
    """Base class for all failures scoped to a single repository entry."""

    @property
    def summary(self) -> str:
        """A one-line, human-readable description of the failure."""
        return str(self).splitlines()[0] if str(self) else type(self).__name__

    @property
    def detail(self) -> str:
        """The full diagnostic text, including captured command output."""
        return str(self)


class ManifestError(UpdaterError):
    """The repository list could not be read or failed validation."""


class RepositoryMissing(UpdaterError):
    """A configured path does not resolve to an existing directory."""

    def __init__(self, path: Path):
        self.path = path
        super().__init__(f"Repository path does not exist: {path}")


class NoUpstreamConfigured(UpdaterError):
    """The current branch has no remote tracking branch."""

    def __init__(self, path: Path, reason: str = ""):
        self.path = path
        self.reason = reason
        message = f"No upstream configured for current branch in {path}"
        if reason:
            message += f"\n{reason}"
        super().__init__(message)


class GitCommandFailed(UpdaterError):
    """A git invocation exited unsuccessfully.

    Attributes:
        command (list[str]): The full git command line.
        exit_code (int): The process exit status.
        output (str): Captured stderr (or stdout when stderr was empty).
    """

    def __init__(self, command: list[str], exit_code: int, output: str):
        self.command = command
        self.exit_code = exit_code
        self.output = output
        super().__init__(
            f"Git error: '{' '.join(command)}' exited with {exit_code}\n{output}".rstrip()
        )

    @property
    def summary(self) -> str:
        return f"'{' '.join(self.command)}' exited with {self.exit_code}"


class ReleaseDescriptorMissing(UpdaterError):
    """A compile spec is declared but no release descriptor was found."""

    def __init__(self, directory: Path, filename: str):
        self.directory = directory
        self.filename = filename
        super().__init__(f"No {filename} found at or above {directory}")


class DescriptorInvalid(UpdaterError):
    """A build descriptor exists but does not declare a usable version."""


class CompileFailed(UpdaterError):
    """The configured build command returned a non-zero or missing exit code.

    Attributes:
        process (str): The executable that was run.
        exit_code (int | None): Exit status, None when the build never finished.
        output (str): Combined stdout and stderr of the build.
    """

    def __init__(self, process: str, exit_code: int | None, output: str = ""):
        self.process = process
        self.exit_code = exit_code
        self.output = output
        status = "no exit code" if exit_code is None else f"exit code {exit_code}"
        super().__init__(
            f"Compile process {process} failed with {status}\n{output}".rstrip()
        )

    @property
    def summary(self) -> str:
        status = "no exit code" if self.exit_code is None else self.exit_code
        return f"Compile process {self.process} exited with {status}"


class CommandLaunchFailed(UpdaterError):
    """An external program could not be started at all."""

    def __init__(self, program: str, reason: str):
        self.program = program
        self.reason = reason
        super().__init__(f"Could not launch '{program}': {reason}")
