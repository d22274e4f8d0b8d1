"""Launching and closing desktop browsers.

The scheduler only depends on the BrowserLauncher interface
(open / close_by_url / close_all). One implementation per platform is
picked at startup by create_browser_launcher().
"""

import asyncio
import logging
import os
import shutil
import sys
from abc import ABC, abstractmethod
from pathlib import Path

from do_in_time.errors import BrowserActionError, BrowserNotFoundError
from do_in_time.models.task import BrowserType
from do_in_time.validation import escape_applescript_string, validate_browser_profile

logger = logging.getLogger(__name__)

CHROMIUM_FAMILY = (BrowserType.CHROME, BrowserType.EDGE, BrowserType.BRAVE)


def profile_args(browser: BrowserType, profile: str | None) -> list[str]:
    """Command-line arguments selecting a browser profile."""
    if not profile or not profile.strip():
        return []
    validate_browser_profile(profile)
    if browser in CHROMIUM_FAMILY:
        return [f"--profile-directory={profile}"]
    if browser == BrowserType.FIREFOX:
        return ["-P", profile]
    return []


class BrowserLauncher(ABC):
    """Capability interface for opening and closing browsers."""

    # Substring -> browser, matched in order against the lowercased output
    # of the platform's default-browser query
    DEFAULT_BROWSER_MARKERS: tuple[tuple[str, BrowserType], ...] = ()

    def __init__(self) -> None:
        self._children: set[asyncio.Task[int]] = set()

    @abstractmethod
    async def open(
        self,
        browser: BrowserType,
        url: str | None = None,
        profile: str | None = None,
    ) -> None:
        """Open the browser, optionally at a URL and with a profile."""

    @abstractmethod
    async def close_by_url(self, browser: BrowserType, url: str) -> None:
        """Close the tabs showing url, or degrade to close_all on this platform."""

    @abstractmethod
    async def close_all(self, browser: BrowserType) -> None:
        """Close every instance of the browser."""

    @abstractmethod
    def installed_browsers(self) -> list[BrowserType]:
        """Browsers that can be launched on this machine."""

    @abstractmethod
    def _default_browser_command(self) -> list[str]:
        """Command printing the default browser setting."""

    async def default_browser(self) -> BrowserType | None:
        """The system default browser, or None if it cannot be determined."""
        argv = self._default_browser_command()
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            logger.debug(f"Cannot query default browser with {argv[0]}: {e}")
            return None

        stdout, _ = await process.communicate()
        if process.returncode != 0:
            return None

        output = stdout.decode(errors="replace").lower()
        for marker, browser in self.DEFAULT_BROWSER_MARKERS:
            if marker in output:
                return browser
        return None

    async def _spawn(self, argv: list[str], browser: BrowserType) -> None:
        """Start a long-running process without waiting for it to exit."""
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
                start_new_session=os.name == "posix",
            )
        except OSError as e:
            raise BrowserActionError(f"Failed to launch {browser.value}: {e}") from e

        # Reap the child in the background so it never lingers as a zombie
        reaper = asyncio.create_task(process.wait())
        self._children.add(reaper)
        reaper.add_done_callback(self._children.discard)

    async def _run(self, argv: list[str]) -> tuple[int, str]:
        """Run a short-lived helper command and return (exit code, stderr)."""
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise BrowserActionError(f"Failed to run {argv[0]}: {e}") from e

        _, stderr = await process.communicate()
        return process.returncode or 0, stderr.decode(errors="replace").strip()


class LinuxBrowserLauncher(BrowserLauncher):
    """Linux: spawn executables from PATH, close with pkill.

    There is no generic tab-level control, so closing by URL closes every
    instance of the browser.
    """

    EXECUTABLES: dict[BrowserType, tuple[str, ...]] = {
        BrowserType.CHROME: (
            "google-chrome",
            "google-chrome-stable",
            "chromium",
            "chromium-browser",
        ),
        BrowserType.FIREFOX: ("firefox",),
        BrowserType.EDGE: ("microsoft-edge", "microsoft-edge-stable"),
        BrowserType.BRAVE: ("brave-browser", "brave"),
        BrowserType.OPERA: ("opera",),
    }

    PROCESS_NAMES: dict[BrowserType, str] = {
        BrowserType.CHROME: "chrome",
        BrowserType.FIREFOX: "firefox",
        BrowserType.EDGE: "msedge",
        BrowserType.BRAVE: "brave",
        BrowserType.OPERA: "opera",
    }

    DEFAULT_BROWSER_MARKERS = (
        ("chrom", BrowserType.CHROME),
        ("firefox", BrowserType.FIREFOX),
        ("microsoft-edge", BrowserType.EDGE),
        ("brave", BrowserType.BRAVE),
        ("opera", BrowserType.OPERA),
    )

    def _find_executable(self, browser: BrowserType) -> str | None:
        for name in self.EXECUTABLES.get(browser, ()):
            path = shutil.which(name)
            if path:
                return path
        return None

    async def open(
        self,
        browser: BrowserType,
        url: str | None = None,
        profile: str | None = None,
    ) -> None:
        if browser == BrowserType.SAFARI:
            raise BrowserNotFoundError("Safari is only available on macOS")

        executable = self._find_executable(browser)
        if executable is None:
            raise BrowserNotFoundError(f"{browser.value} executable not found")

        argv = [executable, *profile_args(browser, profile)]
        if url:
            argv.append(url)

        await self._spawn(argv, browser)
        logger.info(f"Opened {browser.value}" + (f" with URL: {url}" if url else ""))

    async def close_by_url(self, browser: BrowserType, url: str) -> None:
        logger.info(
            f"URL-based closing is not supported on Linux, closing all {browser.value} instances"
        )
        await self.close_all(browser)

    async def close_all(self, browser: BrowserType) -> None:
        if browser == BrowserType.SAFARI:
            raise BrowserNotFoundError("Safari is only available on macOS")

        returncode, stderr = await self._run(["pkill", self.PROCESS_NAMES[browser]])
        # pkill exits with 1 when no process matched
        if returncode not in (0, 1):
            raise BrowserActionError(f"Failed to close {browser.value}: {stderr}")
        logger.info(f"Closed all {browser.value} instances")

    def installed_browsers(self) -> list[BrowserType]:
        return [b for b in self.EXECUTABLES if self._find_executable(b)]

    def _default_browser_command(self) -> list[str]:
        return ["xdg-settings", "get", "default-web-browser"]


class MacOSBrowserLauncher(BrowserLauncher):
    """macOS: launch with `open -a`, close tabs by URL with AppleScript."""

    APP_NAMES: dict[BrowserType, str] = {
        BrowserType.CHROME: "Google Chrome",
        BrowserType.FIREFOX: "Firefox",
        BrowserType.EDGE: "Microsoft Edge",
        BrowserType.SAFARI: "Safari",
        BrowserType.BRAVE: "Brave Browser",
        BrowserType.OPERA: "Opera",
    }

    DEFAULT_BROWSER_MARKERS = (
        ("chrome", BrowserType.CHROME),
        ("firefox", BrowserType.FIREFOX),
        ("safari", BrowserType.SAFARI),
        ("brave", BrowserType.BRAVE),
        ("opera", BrowserType.OPERA),
    )

    async def open(
        self,
        browser: BrowserType,
        url: str | None = None,
        profile: str | None = None,
    ) -> None:
        argv = ["/usr/bin/open", "-a", self.APP_NAMES[browser]]
        if url:
            argv.append(url)
        extra = profile_args(browser, profile)
        if extra:
            argv.extend(["--args", *extra])

        returncode, stderr = await self._run(argv)
        if returncode != 0:
            if "Unable to find application" in stderr:
                raise BrowserNotFoundError(f"{self.APP_NAMES[browser]} is not installed")
            raise BrowserActionError(f"Failed to launch {browser.value}: {stderr}")
        logger.info(f"Opened {browser.value}" + (f" with URL: {url}" if url else ""))

    async def close_by_url(self, browser: BrowserType, url: str) -> None:
        script = (
            f'tell application "{self.APP_NAMES[browser]}"\n'
            f'    close (every tab of every window whose URL contains "{escape_applescript_string(url)}")\n'
            "end tell"
        )
        returncode, stderr = await self._run(["/usr/bin/osascript", "-e", script])
        if returncode != 0:
            raise BrowserActionError(f"AppleScript error: {stderr}")
        logger.info(f"Closed {browser.value} tab(s) with URL: {url}")

    async def close_all(self, browser: BrowserType) -> None:
        returncode, stderr = await self._run(
            ["/usr/bin/pkill", "-x", self.APP_NAMES[browser]]
        )
        if returncode not in (0, 1):
            raise BrowserActionError(f"Failed to close {browser.value}: {stderr}")
        logger.info(f"Closed all {browser.value} instances")

    def installed_browsers(self) -> list[BrowserType]:
        roots = (Path("/Applications"), Path.home() / "Applications")
        return [
            browser
            for browser, app in self.APP_NAMES.items()
            if any((root / f"{app}.app").exists() for root in roots)
        ]

    def _default_browser_command(self) -> list[str]:
        return [
            "/usr/bin/defaults",
            "read",
            "com.apple.LaunchServices/com.apple.launchservices.secure",
            "LSHandlers",
        ]


class WindowsBrowserLauncher(BrowserLauncher):
    """Windows: launch from known install paths, close with taskkill.

    Windows has no native way to close a single tab. Closing by URL only
    logs a notice unless close_by_url_fallback is enabled, in which case it
    closes every instance of the browser.
    """

    INSTALL_PATHS: dict[BrowserType, tuple[str, ...]] = {
        BrowserType.CHROME: (
            r"C:\Program Files\Google\Chrome\Application\chrome.exe",
            r"C:\Program Files (x86)\Google\Chrome\Application\chrome.exe",
        ),
        BrowserType.FIREFOX: (
            r"C:\Program Files\Mozilla Firefox\firefox.exe",
            r"C:\Program Files (x86)\Mozilla Firefox\firefox.exe",
        ),
        BrowserType.EDGE: (
            r"C:\Program Files (x86)\Microsoft\Edge\Application\msedge.exe",
            r"C:\Program Files\Microsoft\Edge\Application\msedge.exe",
        ),
        BrowserType.BRAVE: (
            r"C:\Program Files\BraveSoftware\Brave-Browser\Application\brave.exe",
            r"C:\Program Files (x86)\BraveSoftware\Brave-Browser\Application\brave.exe",
        ),
        BrowserType.OPERA: (
            r"C:\Program Files\Opera\launcher.exe",
            r"C:\Program Files (x86)\Opera\launcher.exe",
        ),
    }

    PROCESS_NAMES: dict[BrowserType, str] = {
        BrowserType.CHROME: "chrome.exe",
        BrowserType.FIREFOX: "firefox.exe",
        BrowserType.EDGE: "msedge.exe",
        BrowserType.BRAVE: "brave.exe",
        BrowserType.OPERA: "opera.exe",
    }

    # ProgId values of the http URL association
    DEFAULT_BROWSER_MARKERS = (
        ("chromehtml", BrowserType.CHROME),
        ("msedgehtm", BrowserType.EDGE),
        ("firefoxurl", BrowserType.FIREFOX),
        ("bravehtml", BrowserType.BRAVE),
        ("operastable", BrowserType.OPERA),
    )

    def __init__(self, close_by_url_fallback: bool = False) -> None:
        super().__init__()
        self._close_by_url_fallback = close_by_url_fallback

    def _find_executable(self, browser: BrowserType) -> str | None:
        for path in self.INSTALL_PATHS.get(browser, ()):
            if Path(path).exists():
                return path
        process_name = self.PROCESS_NAMES.get(browser)
        return shutil.which(process_name) if process_name else None

    @staticmethod
    def _system32_exe(name: str) -> str:
        windows_dir = os.environ.get("SystemRoot") or os.environ.get("WINDIR") or r"C:\Windows"
        return str(Path(windows_dir) / "System32" / name)

    async def open(
        self,
        browser: BrowserType,
        url: str | None = None,
        profile: str | None = None,
    ) -> None:
        if browser == BrowserType.SAFARI:
            raise BrowserNotFoundError("Safari is only available on macOS")

        executable = self._find_executable(browser)
        if executable is None:
            raise BrowserNotFoundError(f"{browser.value} executable not found")

        argv = [executable, *profile_args(browser, profile)]
        if url:
            argv.append(url)

        await self._spawn(argv, browser)
        logger.info(f"Opened {browser.value}" + (f" with URL: {url}" if url else ""))

    async def close_by_url(self, browser: BrowserType, url: str) -> None:
        if self._close_by_url_fallback:
            logger.info(
                f"URL-based closing is not supported on Windows, closing all {browser.value} instances"
            )
            await self.close_all(browser)
            return

        logger.warning(
            f"Windows: please close the {browser.value} tab with URL {url} manually; "
            "automatic tab closing is not available"
        )

    async def close_all(self, browser: BrowserType) -> None:
        if browser == BrowserType.SAFARI:
            raise BrowserNotFoundError("Safari is only available on macOS")

        returncode, stderr = await self._run(
            [self._system32_exe("taskkill.exe"), "/F", "/IM", self.PROCESS_NAMES[browser]]
        )
        # taskkill exits with 128 when no process matched
        if returncode not in (0, 128):
            raise BrowserActionError(f"Failed to close {browser.value}: {stderr}")
        logger.info(f"Closed all {browser.value} instances")

    def installed_browsers(self) -> list[BrowserType]:
        return [b for b in self.INSTALL_PATHS if self._find_executable(b)]

    def _default_browser_command(self) -> list[str]:
        return [
            self._system32_exe("reg.exe"),
            "query",
            r"HKEY_CURRENT_USER\Software\Microsoft\Windows\Shell\Associations\UrlAssociations\http\UserChoice",
            "/v",
            "ProgId",
        ]


def create_browser_launcher(
    platform: str | None = None,
    close_by_url_fallback: bool = False,
) -> BrowserLauncher:
    """Pick the launcher implementation for the running platform."""
    platform = platform or sys.platform
    if platform == "darwin":
        return MacOSBrowserLauncher()
    if platform == "win32":
        return WindowsBrowserLauncher(close_by_url_fallback=close_by_url_fallback)
    return LinuxBrowserLauncher()
