import logging
import plistlib
import re
import subprocess
import sys
from pathlib import Path

import psutil

from .constants import APP_NAME, APP_SUFFIX
from .errors import CommandLaunchFailed

logger = logging.getLogger(APP_NAME)


def read_bundle_info(bundle_path: Path) -> dict | None:
    """Reads the Info.plist of an application bundle.

    Args:
        bundle_path (Path): Path to the `.app` directory.

    Returns:
        dict | None: The parsed property list, or None if it is missing or
        malformed.
    """
    info = bundle_path / "Contents" / "Info.plist"
    try:
        with open(info, "rb") as f:
            data = plistlib.load(f)
    except (OSError, plistlib.InvalidFileException, ValueError) as e:
        logger.debug(f"Could not read {info}: {e}")
        return None
    return data if isinstance(data, dict) else None


def enclosing_bundle(executable: str) -> Path | None:
    """Returns the outermost `.app` directory containing `executable`."""
    bundle = None
    for parent in Path(executable).parents:
        if parent.suffix == APP_SUFFIX:
            bundle = parent
    return bundle


class SystemStrategy:
    """Base class defining the interface for process and desktop interactions."""

    def running_instances(self, bundle_id: str) -> list[psutil.Process]:
        """Lists running processes launched from a bundle with `bundle_id`.

        Args:
            bundle_id (str): The CFBundleIdentifier to match.

        Returns:
            list[psutil.Process]: Matching processes, possibly empty.
        """
        identifiers: dict[Path, str | None] = {}
        matches = []
        for proc in psutil.process_iter(["exe"]):
            exe = proc.info.get("exe")
            if not exe:
                continue
            bundle = enclosing_bundle(exe)
            if bundle is None:
                continue
            if bundle not in identifiers:
                info = read_bundle_info(bundle) or {}
                identifiers[bundle] = info.get("CFBundleIdentifier")
            if identifiers[bundle] == bundle_id:
                matches.append(proc)
        return matches

    def terminate(self, proc: psutil.Process, force: bool = False) -> None:
        """Asks a process to quit (SIGTERM), or kills it (SIGKILL) if `force`."""
        try:
            if force:
                proc.kill()
            else:
                proc.terminate()
        except psutil.NoSuchProcess:
            pass
        except psutil.AccessDenied as e:
            logger.warning(f"Not permitted to signal pid {proc.pid}: {e}")

    def wait_for_exit(
        self, procs: list[psutil.Process], timeout: float
    ) -> list[psutil.Process]:
        """Waits up to `timeout` seconds and returns the processes still alive."""
        _, alive = psutil.wait_procs(procs, timeout=timeout)
        return alive

    def _pgrep(self, *args: str) -> str | None:
        try:
            res = subprocess.run(
                ["pgrep", *args], capture_output=True, text=True, check=False
            )
        except FileNotFoundError:
            logger.debug("pgrep is not available")
            return None
        pids = res.stdout.strip()
        return pids if res.returncode == 0 and pids else None

    def find_by_exact_name(self, name: str) -> str | None:
        """Returns the pids (newline separated) of processes named exactly `name`."""
        return self._pgrep("-x", name)

    def find_by_command_line(self, text: str) -> str | None:
        """Returns the pids of processes whose command line contains `text`.

        pgrep matches an extended regular expression, so `text` is escaped to
        match literally.
        """
        return self._pgrep("-f", re.sub(r"([.^$*+?()\[\]{}|\\])", r"\\\1", text))

    def signal_by_name(self, name: str) -> None:
        """Sends SIGTERM to every process named `name`."""
        try:
            res = subprocess.run(
                ["killall", "-TERM", name], capture_output=True, text=True, check=False
            )
            if res.returncode != 0:
                logger.warning(f"killall {name}: {res.stderr.strip() or res.returncode}")
        except FileNotFoundError:
            logger.warning("killall is not available; could not stop processes.")

    def launch_command(self) -> str:
        return "xdg-open"

    def launch(self, path: Path) -> None:
        """Opens `path` with the desktop's default handler.

        Raises:
            CommandLaunchFailed: If the opener is missing or reports failure.
        """
        opener = self.launch_command()
        try:
            res = subprocess.run(
                [opener, str(path)],
                cwd=path.parent,
                capture_output=True,
                text=True,
                check=False,
            )
        except FileNotFoundError as e:
            raise CommandLaunchFailed(opener, str(e)) from e
        if res.returncode != 0:
            raise CommandLaunchFailed(
                opener, res.stderr.strip() or f"exit code {res.returncode}"
            )

    def notify(self, title: str, message: str) -> None:
        """Sends a desktop notification.

        Args:
            title (str): The notification title.
            message (str): The notification body text.
        """
        pass


class MacOSStrategy(SystemStrategy):
    """System strategy implementation for macOS."""

    def launch_command(self) -> str:
        return "open"

    def notify(self, title: str, message: str) -> None:
        """Sends a notification using AppleScript."""
        # Sanitize quotes to prevent AppleScript syntax errors.
        clean_msg = message.replace('"', "'")
        script = f'display notification "{clean_msg}" with title "{title}"'
        try:
            subprocess.run(["osascript", "-e", script], stderr=subprocess.DEVNULL)
        except OSError as e:
            logger.debug(f"Notification failed: {e}")


class LinuxStrategy(SystemStrategy):
    """System strategy implementation for Linux."""

    def notify(self, title: str, message: str) -> None:
        """Sends a notification using `notify-send`."""
        try:
            subprocess.run(["notify-send", title, message], stderr=subprocess.DEVNULL)
        except FileNotFoundError:
            pass


def get_system() -> SystemStrategy:
    """Factory function to retrieve the platform-specific system strategy.

    Returns:
        SystemStrategy: An instance of MacOSStrategy, LinuxStrategy, or the base
        SystemStrategy depending on the operating system.
    """
    if sys.platform == "darwin":
        return MacOSStrategy()
    elif sys.platform.startswith("linux"):
        return LinuxStrategy()
    else:
        return SystemStrategy()
