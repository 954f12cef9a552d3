import argparse
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.table import Table

from . import updater
from .config import Config
from .constants import APP_NAME, BUNDLED_REPOSITORIES
from .errors import ManifestError
from .manifest import RepositoryEntry, load_bundled_entries, load_entries

logger = logging.getLogger(APP_NAME)
console = Console()
err_console = Console(stderr=True)


def resolve_entries(config_path: str | None, config: Config) -> list[RepositoryEntry]:
    """Loads the repository list from the flag, the settings, or the bundle.

    Args:
        config_path (str | None): Value of `--config`, if given.
        config (Config): Tool settings (`core.repositories`).

    Returns:
        list[RepositoryEntry]: The entries to process, in order.

    Raises:
        ManifestError: If the chosen list cannot be read or is invalid.
    """
    if config_path:
        return load_entries(Path(config_path))
    if config.core.repositories:
        return load_entries(Path(config.core.repositories))
    return load_bundled_entries()


def list_repositories(entries: list[RepositoryEntry]) -> None:
    """Prints the configured repositories without touching them."""
    if not entries:
        console.print("[yellow]Repository list is empty.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Repository", style="cyan")
    table.add_column("Type")
    table.add_column("Compile")
    table.add_column("Relaunch")

    for entry in entries:
        path = Path(entry.path).expanduser()
        display = entry.path if path.is_dir() else f"{entry.path} [red](missing)[/red]"
        compile_cmd = (
            " ".join([entry.compile.process, *entry.compile.arguments])
            if entry.compile
            else "-"
        )
        if entry.relaunch is not None and entry.relaunch.enable:
            relaunch = entry.relaunch.target or "infer"
        else:
            relaunch = "-"
        table.add_row(
            display, entry.type.value if entry.type else "-", compile_cmd, relaunch
        )

    console.print(table)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description=(
            "Synchronize local repositories with their upstream, rebuild them "
            "when the release version advances, and relaunch their applications."
        ),
    )
    parser.add_argument(
        "-c",
        "--config",
        metavar="PATH",
        help=f"Path to your JSON repository list (default: bundled {BUNDLED_REPOSITORIES})",
    )
    parser.add_argument(
        "--safe",
        action="store_true",
        help="Abort instead of resetting dirty or locally-ahead repositories",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Log git commands and lookups"
    )
    parser.add_argument(
        "--no-notify",
        action="store_true",
        help="Do not send desktop notifications for failed repositories",
    )
    parser.add_argument(
        "--list",
        action="store_true",
        help="List configured repositories and exit",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the repo-updater CLI."""
    args = build_parser().parse_args(argv)

    config = Config.load()
    if args.no_notify:
        config.core.notify = False

    try:
        entries = resolve_entries(args.config, config)
    except ManifestError as e:
        err_console.print(f"[bold red]FATAL:[/bold red] {e}")
        sys.exit(1)

    if args.list:
        list_repositories(entries)
        return

    updater.setup_logging(args.verbose, config.limits.max_log_size)

    summary = updater.run(entries, config, safe=args.safe)

    if summary.failures:
        console.print(
            f"\n[bold red]{summary.failures} of {len(summary.reports)} "
            "repositories failed.[/bold red]"
        )
        sys.exit(1)
    console.print(f"\n[bold green]✔ {len(summary.reports)} repositories processed.[/bold green]")


if __name__ == "__main__":
    main()
