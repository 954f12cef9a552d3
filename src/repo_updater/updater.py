import logging
import sys
from dataclasses import dataclass, field
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.console import Console

from .compiler import CompileResult, execute_compile_spec
from .config import Config
from .constants import APP_NAME, LOG_FILE
from .errors import UpdaterError
from .git_wrapper import GitRepo
from .manifest import RepositoryEntry
from .relaunch import RelaunchOutcome, relaunch_application
from .sync import SyncAction, SyncDecision, synchronize
from .system import SystemStrategy, get_system
from .versions import BuildDecision, evaluate_build

logger = logging.getLogger(APP_NAME)
logger.setLevel(logging.INFO)

console = Console()
err_console = Console(stderr=True)


@dataclass
class EntryReport:
    """What happened to one repository during a run.

    Attributes:
        path (str): The entry path as configured.
        sync (SyncDecision | None): The git decision, if probing completed.
        build (BuildDecision | None): The version gate result, if evaluated.
        compiled (CompileResult | None): The build result, if a build ran.
        relaunch (RelaunchOutcome | None): The relaunch result, if attempted.
        error (UpdaterError | Exception | None): The failure that ended the entry.
    """

    path: str
    sync: SyncDecision | None = None
    build: BuildDecision | None = None
    compiled: CompileResult | None = None
    relaunch: RelaunchOutcome | None = None
    error: Exception | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass
class RunSummary:
    reports: list[EntryReport] = field(default_factory=list)

    @property
    def failures(self) -> int:
        return sum(1 for r in self.reports if r.failed)


def setup_logging(verbose: bool = False, max_log_size: int = 5 * 1024 * 1024) -> None:
    """Configures the logging subsystem.

    Args:
        verbose (bool): Also emit debug messages (git commands, descriptor paths).
        max_log_size (int): Bytes before the log file is rotated.
    """
    formatter = logging.Formatter(
        "[%(asctime)s] %(levelname)s: %(message)s", "%Y-%m-%d %H:%M:%S"
    )

    logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    try:
        file_handler = RotatingFileHandler(
            LOG_FILE,
            maxBytes=max_log_size,
            backupCount=5,
        )
    except OSError as e:
        logger.warning(f"Could not open log file {LOG_FILE}: {e}")
        return
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)


def update_entry(
    entry: RepositoryEntry,
    config: Config,
    safe: bool = False,
    system: SystemStrategy | None = None,
) -> EntryReport:
    """Runs the sync, build, and relaunch pipeline for one repository.

    Steps run strictly in order, each gated on the previous one:
    1. Probe and synchronize with the upstream.
    2. If a compile spec is declared, compare release and compiled versions
       and build when the compiled version is behind.
    3. If relaunch is enabled, restart the application if it is running.

    Args:
        entry (RepositoryEntry): The repository to process.
        config (Config): Tool settings.
        safe (bool, optional): Abort instead of discarding local work.
        system (SystemStrategy | None, optional): Process directory used for
            relaunching.

    Returns:
        EntryReport: The outcome of each step that ran.

    Raises:
        UpdaterError: Any failure that ends processing of this entry.
    """
    report = EntryReport(path=entry.path)
    directory = entry.directory
    repo = GitRepo(directory)

    with console.status(f"[bold blue]Fetching {directory.name}...[/bold blue]", spinner="dots"):
        report.sync = synchronize(repo, safe, config.sync.diverged_policy)

    if report.sync.action is SyncAction.ABORT_DIRTY:
        console.print(
            f"[bold red]ABORTED {directory.name}:[/bold red] working tree is dirty "
            "(safe mode)."
        )
        return report
    if report.sync.action is SyncAction.ABORT_DIVERGED:
        console.print(
            f"[bold red]ABORTED {directory.name}:[/bold red] local commits not on "
            f"{report.sync.upstream}. Run: git pull --rebase "
            f"{report.sync.remote} {report.sync.branch}"
        )
        return report
    if report.sync.action is SyncAction.RESET_TO_UPSTREAM:
        console.print(
            f"[bold green]UPDATED {directory.name}:[/bold green] reset to "
            f"{report.sync.upstream}."
        )

    if entry.compile is not None:
        report.build = evaluate_build(
            directory,
            release_depth=config.search.release_depth,
            compiled_depth=config.search.compiled_depth,
        )
        logger.info(f"{directory.name}: {report.build.reason}")
        if report.build.rebuild:
            with console.status(
                f"[bold blue]Compiling {directory.name}...[/bold blue]", spinner="dots"
            ):
                report.compiled = execute_compile_spec(
                    entry.compile,
                    directory,
                    output_dir=config.core.output_path,
                    timeout=config.limits.compile_timeout,
                )
            console.print(
                f"[bold green]COMPILED {directory.name}:[/bold green] "
                f"{report.compiled.short_summary}"
            )

    if entry.relaunch is not None and entry.relaunch.enable:
        report.relaunch = relaunch_application(
            directory,
            target=entry.relaunch.target,
            system=system,
            grace_period_ms=config.relaunch.grace_period,
        )
        if report.relaunch is RelaunchOutcome.RELAUNCHED:
            console.print(f"[bold green]RE-LAUNCHED {directory.name}.[/bold green]")

    return report


def run(
    entries: list[RepositoryEntry],
    config: Config,
    safe: bool = False,
    system: SystemStrategy | None = None,
) -> RunSummary:
    """Processes every entry in order, isolating per-entry failures.

    Args:
        entries (list[RepositoryEntry]): Repositories in configuration order.
        config (Config): Tool settings.
        safe (bool, optional): Whether safe mode is enabled.
        system (SystemStrategy | None, optional): Platform strategy.

    Returns:
        RunSummary: One report per entry.
    """
    system = system or get_system()
    summary = RunSummary()

    if safe:
        logger.info("Safe mode enabled: dirty or ahead repositories will not be reset.")

    for entry in entries:
        console.print(f"\n[bold]Checking {Path(entry.path).expanduser()}…[/bold]")
        try:
            report = update_entry(entry, config, safe=safe, system=system)
        except UpdaterError as e:
            report = EntryReport(path=entry.path, error=e)
            logger.error(f"Failed updating {entry.path}: {e.summary}")
            logger.debug(e.detail)
            err_console.print(
                f"[bold red]FAILED {entry.path}:[/bold red] {e.summary}\n{e.detail}"
            )
        except Exception as e:
            report = EntryReport(path=entry.path, error=e)
            logger.exception(f"Failed updating {entry.path}")
            err_console.print(f"[bold red]FAILED {entry.path}:[/bold red] {e}")
        summary.reports.append(report)

        if report.failed and config.core.notify:
            system.notify("Repo Updater", f"Failed updating {Path(entry.path).name}")

    return summary
