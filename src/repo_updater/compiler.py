import logging
import os
import shlex
import shutil
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path

from .constants import APP_NAME, OUTPUT_DIR_ENV
from .errors import CommandLaunchFailed, CompileFailed
from .manifest import CompileSpec

logger = logging.getLogger(APP_NAME)


@dataclass(frozen=True)
class CompileResult:
    """A successful build.

    Attributes:
        process (str): The executable that was run.
        exit_code (int): Always 0.
        output (str): Combined stdout and stderr.
        duration (float): Wall-clock seconds the build took.
    """

    process: str
    exit_code: int
    output: str
    duration: float

    @property
    def short_summary(self) -> str:
        lines = self.output.strip().splitlines()
        tail = lines[-1] if lines else "no output"
        return f"({self.duration:.1f}s) {tail}"


def command_line(spec: CompileSpec) -> str:
    """Renders the build command as a copy-pasteable shell line."""
    return shlex.join(["/usr/bin/env", spec.process, *spec.arguments])


def resolve_executable(process: str, directory: Path, path: str | None) -> str | None:
    """Locates the build executable the way env would from `directory`.

    Args:
        process (str): A bare program name or a path, relative to `directory`.
        directory (Path): The working directory of the build.
        path (str | None): The PATH searched for bare names.

    Returns:
        str | None: The executable's path, or None if it cannot be run.
    """
    if os.sep in process:
        candidate = directory / process
        if candidate.is_file() and os.access(candidate, os.X_OK):
            return str(candidate)
        return None
    return shutil.which(process, path=path)


def execute_compile_spec(
    spec: CompileSpec,
    directory: Path,
    output_dir: Path | None = None,
    timeout: int | None = None,
) -> CompileResult:
    """Runs the configured build command inside the repository.

    Args:
        spec (CompileSpec): The build command.
        directory (Path): The working directory for the build.
        output_dir (Path | None, optional): Deploy directory exported to the
            build as REPO_UPDATER_OUTPUT_DIR. Created if missing.
        timeout (int | None, optional): Seconds before the build is abandoned.

    Returns:
        CompileResult: The captured output of the successful build.

    Raises:
        CompileFailed: If the build exits non-zero or never finishes.
        CommandLaunchFailed: If the executable cannot be found or started.
    """
    logger.info(f"{directory.name}: → {command_line(spec)}")

    env = os.environ.copy()
    if output_dir is not None:
        output_dir.mkdir(parents=True, exist_ok=True)
        env[OUTPUT_DIR_ENV] = str(output_dir)

    if resolve_executable(spec.process, directory, env.get("PATH")) is None:
        raise CommandLaunchFailed(spec.process, "executable not found")

    start = time.monotonic()
    try:
        res = subprocess.run(
            ["/usr/bin/env", spec.process, *spec.arguments],
            cwd=directory,
            env=env,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as e:
        output = e.output or ""
        if isinstance(output, bytes):
            output = output.decode(errors="replace")
        raise CompileFailed(spec.process, None, output) from e
    except OSError as e:
        raise CommandLaunchFailed(spec.process, str(e)) from e
    duration = time.monotonic() - start

    if res.returncode != 0:
        raise CompileFailed(spec.process, res.returncode, res.stdout or "")

    result = CompileResult(
        process=spec.process,
        exit_code=res.returncode,
        output=res.stdout or "",
        duration=duration,
    )
    logger.info(f"{directory.name}: Compile OK {result.short_summary}")
    return result
