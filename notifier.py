"""Desktop notifications for due reminders.

The notifier is a best-effort side-effect sink: it launches the host's
notification and sound commands as detached subprocesses and never waits for
them. Nothing here raises to the caller; failures are logged.

Strategies (picked from platform.system()):
- Linux/BSD: notify-send with urgency=critical, plus paplay/pw-play/ffplay/aplay
- macOS: osascript "display notification" with a built-in sound
- Windows: PowerShell NotifyIcon balloon tip plus winsound beep
"""

import platform
import shutil
import subprocess
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from errors import NotifyFailed
from logger_config import setup_logger
from schemas import EventOut, parse_local_datetime

logger = setup_logger(__name__, 'notifier.log')

APP_LABEL = "Daily Reminder"

# Freedesktop sound theme files, most fitting first
SYSTEM_SOUNDS = (
    "/usr/share/sounds/freedesktop/stereo/alarm-clock-elapsed.oga",
    "/usr/share/sounds/freedesktop/stereo/complete.oga",
    "/usr/share/sounds/freedesktop/stereo/bell.oga",
    "/usr/share/sounds/alsa/Front_Center.wav",
)

# (command, extra arguments placed before the sound file)
SOUND_PLAYERS = (
    ("paplay", ()),
    ("pw-play", ()),
    ("ffplay", ("-nodisp", "-autoexit", "-loglevel", "quiet")),
    ("aplay", ("-q",)),
)

MACOS_SOUND = "Glass"


def notification_text(event: EventOut) -> tuple:
    """Build (title, body) for an event's notification."""
    try:
        starts = parse_local_datetime(event.start_date).strftime("%Y-%m-%d %H:%M")
    except ValueError:
        starts = event.start_date

    body = f"{event.category} - starts {starts}"
    if event.description:
        body = f"{body}\n{event.description}"
    return event.title, body


class Notifier:
    """Interface for anything that can present a reminder."""

    def show(self, event: EventOut) -> None:
        raise NotImplementedError


class LogNotifier(Notifier):
    """Notifier that only writes the reminder to the log (headless hosts, tests)."""

    def show(self, event: EventOut) -> None:
        title, body = notification_text(event)
        logger.info(f"🔔 Reminder for event {event.id}: {title} | {body}")


class DesktopNotifier(Notifier):
    """Fire-and-forget desktop notification through host commands.

    Args:
        system: Host name as returned by platform.system() (default: detected)
        timeout_ms: How long the notification stays visible
        sound_file: Sound to play instead of the system sound (Linux/BSD)
        launcher: Callable used to spawn processes (subprocess.Popen)
        which: Callable used to locate commands (shutil.which)
    """

    def __init__(
        self,
        system: Optional[str] = None,
        timeout_ms: int = 10000,
        sound_file: Optional[Path] = None,
        launcher: Callable = subprocess.Popen,
        which: Callable[[str], Optional[str]] = shutil.which,
    ):
        self.system = system or platform.system()
        self.timeout_ms = timeout_ms
        self.sound_file = Path(sound_file) if sound_file else None
        self._launcher = launcher
        self._which = which
        self._children: List = []

    def show(self, event: EventOut) -> None:
        """Present the notification and play the alert sound.

        Never raises; launch failures are logged.
        """
        self._reap()
        title, body = notification_text(event)
        logger.info(f"🔔 Showing reminder for event {event.id}: '{title}'")

        try:
            if self.system == "Darwin":
                self._show_macos(title, body)
            elif self.system == "Windows":
                self._show_windows(title, body)
            else:
                self._show_unix(title, body)
        except NotifyFailed as e:
            logger.warning(f"Notification for event {event.id} not shown: {e.message}")
        except Exception as e:
            logger.error(f"Unexpected notifier error for event {event.id}: {str(e)}", exc_info=True)

    # --- Linux / BSD ---

    def _show_unix(self, title: str, body: str) -> None:
        notify_send = self._which("notify-send")
        failure = None
        if notify_send:
            try:
                self._spawn([
                    notify_send,
                    "-u", "critical",
                    "-t", str(self.timeout_ms),
                    "-a", APP_LABEL,
                    title,
                    body,
                ])
            except NotifyFailed as e:
                failure = e
        else:
            failure = NotifyFailed("notify-send not found")

        try:
            self._play_sound_unix()
        except NotifyFailed as e:
            logger.debug(f"No alert sound: {e.message}")

        if failure is not None:
            raise failure

    def _play_sound_unix(self) -> None:
        sound = self._find_sound()
        if sound is None:
            raise NotifyFailed("no sound file available")

        for command, extra_args in SOUND_PLAYERS:
            player = self._which(command)
            if player:
                self._spawn([player, *extra_args, str(sound)])
                return
        raise NotifyFailed("no audio player found")

    def _find_sound(self) -> Optional[Path]:
        candidates = [self.sound_file] if self.sound_file else []
        candidates.extend(Path(p) for p in SYSTEM_SOUNDS)
        for candidate in candidates:
            if candidate.is_file():
                return candidate
        return None

    # --- macOS ---

    def _show_macos(self, title: str, body: str) -> None:
        osascript = self._which("osascript")
        if not osascript:
            raise NotifyFailed("osascript not found")

        script = (
            f'display notification "{_applescript_quote(body)}" '
            f'with title "{_applescript_quote(title)}" '
            f'subtitle "{APP_LABEL}" sound name "{MACOS_SOUND}"'
        )
        self._spawn([osascript, "-e", script])

    # --- Windows ---

    def _show_windows(self, title: str, body: str) -> None:
        powershell = self._which("powershell") or self._which("pwsh")
        if not powershell:
            raise NotifyFailed("PowerShell not found")

        script = "; ".join([
            "Add-Type -AssemblyName System.Windows.Forms",
            "Add-Type -AssemblyName System.Drawing",
            "$n = New-Object System.Windows.Forms.NotifyIcon",
            "$n.Icon = [System.Drawing.SystemIcons]::Information",
            "$n.BalloonTipIcon = 'Info'",
            f"$n.BalloonTipTitle = '{_powershell_quote(title)}'",
            f"$n.BalloonTipText = '{_powershell_quote(body)}'",
            "$n.Visible = $true",
            f"$n.ShowBalloonTip({self.timeout_ms})",
            f"Start-Sleep -Milliseconds {self.timeout_ms}",
            "$n.Dispose()",
        ])
        self._spawn([
            powershell, "-NoProfile", "-NonInteractive",
            "-WindowStyle", "Hidden", "-Command", script,
        ])

        try:
            import winsound
            winsound.MessageBeep(winsound.MB_ICONEXCLAMATION)
        except (ImportError, RuntimeError) as e:
            logger.debug(f"No alert beep: {str(e)}")

    # --- process handling ---

    def _spawn(self, args: Sequence[str]) -> None:
        try:
            child = self._launcher(
                list(args),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as e:
            raise NotifyFailed(f"could not launch {args[0]}: {e}") from e
        self._children.append(child)

    def _reap(self) -> None:
        """Forget children that have exited."""
        self._children = [child for child in self._children if child.poll() is None]


def _applescript_quote(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')


def _powershell_quote(text: str) -> str:
    return text.replace("'", "''")


def build_notifier(settings) -> Notifier:
    """Create the notifier for this host from settings."""
    if not settings.NOTIFICATIONS_ENABLED:
        logger.info("Desktop notifications disabled; reminders will only be logged")
        return LogNotifier()

    notifier = DesktopNotifier(
        timeout_ms=settings.NOTIFICATION_TIMEOUT_MS,
        sound_file=settings.SOUND_FILE,
    )
    logger.info(f"Desktop notifier ready for {notifier.system}")
    return notifier
