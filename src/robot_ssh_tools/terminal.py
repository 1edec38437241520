"""Interactive terminal launcher for SSH sessions.

One ``TerminalLauncher`` contract with a strategy per desktop:

* Windows: Windows Terminal (``wt``) running ``cmd /k``
* macOS: Terminal.app driven through AppleScript (``osascript``)
* Linux: ``gnome-terminal`` running ``bash -c``

The launched process is detached; its output is never captured.
"""

from __future__ import annotations

import abc
import enum
import logging
import os
import platform
import subprocess
from typing import Dict, Optional

from typeguard import typechecked

from .exceptions import TerminalLaunchError, UnsupportedPlatformError
from .types import CommandLine

logger = logging.getLogger("robot_ssh_tools.terminal")


class WindowMode(enum.Enum):
    """Where a launched command should appear."""

    TAB = "tab"
    NEW_WINDOW = "window"


class TerminalLauncher(abc.ABC):
    """Base class: turn a shell command into a terminal-emulator invocation."""

    #: Human readable name used in log and error messages.
    name = "terminal"

    @abc.abstractmethod
    def build_command(self, shell_command: str, mode: WindowMode) -> CommandLine:
        """Return the argv that shows *shell_command* in a terminal."""

    def build_env(self) -> Optional[Dict[str, str]]:
        """Return the child environment, or ``None`` to inherit ours."""
        return None

    def _popen_kwargs(self) -> dict:
        return {"start_new_session": True}

    def launch(
        self,
        shell_command: str,
        mode: WindowMode,
        context: str,
    ) -> subprocess.Popen:
        """Spawn the terminal and return immediately.

        Args:
            shell_command: Command line the terminal should run
            mode: Open in a new tab or a new window
            context: Description of the purpose, embedded into error messages.

        Returns:
            subprocess.Popen object

        Raises:
            TerminalLaunchError: If the terminal emulator cannot be spawned
        """
        cmd = self.build_command(shell_command, mode)
        kwargs = self._popen_kwargs()
        env = self.build_env()
        if env is not None:
            kwargs["env"] = env

        logger.info("[LAUNCH] [%s] %s (%s): %r", context, self.name, mode.value, shell_command)
        try:
            return subprocess.Popen(cmd, **kwargs)  # type: ignore[call-overload]
        except (OSError, ValueError) as e:
            msg = f"[{context}] Failed to launch {self.name}: {e}"
            logger.error("[LAUNCH] %s", msg)
            raise TerminalLaunchError(msg) from e


@typechecked
class WindowsTerminalLauncher(TerminalLauncher):
    """Windows Terminal: ``-w 0`` reuses the current window, ``-w -1`` opens a new one."""

    name = "Windows Terminal"

    def build_command(self, shell_command: str, mode: WindowMode) -> CommandLine:
        window = "0" if mode is WindowMode.TAB else "-1"
        return ["wt", "-w", window, "new-tab", "cmd", "/k", shell_command]

    def _popen_kwargs(self) -> dict:
        return {}


@typechecked
class MacTerminalLauncher(TerminalLauncher):
    """Terminal.app via AppleScript.

    Terminal.app has no scripting verb for "new tab", so tab mode presses
    Cmd+T through System Events and then runs the command in the front window.
    """

    name = "Terminal.app"

    @staticmethod
    def _applescript_string(text: str) -> str:
        """Quote *text* as an AppleScript string literal."""
        return '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'

    def build_script(self, shell_command: str, mode: WindowMode) -> str:
        literal = self._applescript_string(shell_command)
        if mode is WindowMode.TAB:
            return (
                'tell application "Terminal" to activate\n'
                'tell application "System Events" to keystroke "t" using command down\n'
                "delay 0.2\n"
                f'tell application "Terminal" to do script {literal} in front window'
            )
        return f'tell application "Terminal" to do script {literal}'

    def build_command(self, shell_command: str, mode: WindowMode) -> CommandLine:
        return ["osascript", "-e", self.build_script(shell_command, mode)]


@typechecked
class GnomeTerminalLauncher(TerminalLauncher):
    """gnome-terminal, keeping the shell open once the command finishes."""

    name = "gnome-terminal"

    # Set by AppImage/PyInstaller bundles; they break the system terminal
    # and anything it runs if inherited.
    SCRUBBED_ENV_VARS = ("PYTHONHOME", "PYTHONPATH", "LD_LIBRARY_PATH", "GIO_MODULE_DIR")

    def build_command(self, shell_command: str, mode: WindowMode) -> CommandLine:
        flag = "--tab" if mode is WindowMode.TAB else "--window"
        return ["gnome-terminal", flag, "--", "bash", "-c", f"{shell_command}; exec bash"]

    def build_env(self) -> Optional[Dict[str, str]]:
        env = os.environ.copy()
        for var in self.SCRUBBED_ENV_VARS:
            env.pop(var, None)
        return env


_LAUNCHERS = {
    "Windows": WindowsTerminalLauncher,
    "Darwin": MacTerminalLauncher,
    "Linux": GnomeTerminalLauncher,
}


def get_terminal_launcher(system: Optional[str] = None) -> TerminalLauncher:
    """Return the launcher for *system* (default: the running OS).

    Raises:
        UnsupportedPlatformError: If the OS has no launcher
    """
    system = system or platform.system()
    launcher_cls = _LAUNCHERS.get(system)
    if launcher_cls is None:
        logger.error("[LAUNCH] No terminal launcher for platform %r", system)
        raise UnsupportedPlatformError()
    return launcher_cls()


def launch_terminal(
    shell_command: str,
    mode: WindowMode,
    context: str = "Launching terminal",
) -> subprocess.Popen:
    """Show *shell_command* in the platform's terminal emulator."""
    return get_terminal_launcher().launch(shell_command, mode, context)
