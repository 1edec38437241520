"""Operations exposed to the operator console front end.

Every function here is safe to call from a UI event handler: reachability
checks never raise, the terminal operations return as soon as the terminal
process is spawned, and errors surface as ``RobotSSHToolsError`` subclasses
whose message is meant to be shown to the operator as-is.
"""

from __future__ import annotations

import logging
import subprocess
from typing import Iterable, Optional

from . import COMMAND_TIMEOUT, SSH_CONFIG_PATH, SYSTEM_CHECK_COMMAND
from .commands import build_shutdown_command, build_ssh_shell_command, is_local_target
from .connection import SSHCommandExecutor, SSHConnectionManager
from .connectivity import check_batch, check_ping
from .exceptions import SSHConnectionError, SSHTimeoutError
from .report import SystemCheckReport, parse_check_output
from .terminal import WindowMode, launch_terminal
from .types import StatusMap

logger = logging.getLogger("robot_ssh_tools.api")


def check_connection_status(target: str) -> bool:
    """Return True if *target* answers a single ping."""
    return check_ping(target)


def check_batch_connections(targets: Iterable[str]) -> StatusMap:
    """Ping all *targets* in parallel; see ``connectivity.check_batch``."""
    return check_batch(targets)


def open_ssh_terminal(
    hostname: str,
    ip: str,
    run_remote_script: bool,
    remote_command: str,
) -> subprocess.Popen:
    """Open a terminal tab with an SSH session to *hostname*.

    For this machine (loopback IP or ``localhost``) no SSH hop is made. With
    *run_remote_script* the session starts by running *remote_command* in an
    interactive bash.

    Raises:
        TerminalLaunchError: If the terminal cannot be launched
    """
    shell_command = build_ssh_shell_command(
        hostname,
        is_local_target(hostname, ip),
        run_remote_script,
        remote_command,
    )
    return launch_terminal(
        shell_command, WindowMode.TAB, context=f"Opening terminal to {hostname}",
    )


def exec_shutdown_command(hostname: str) -> subprocess.Popen:
    """Shut *hostname* down from a new terminal window.

    A window, not a tab, so the sudo prompt is not lost among sessions.

    Raises:
        TerminalLaunchError: If the terminal cannot be launched
    """
    return launch_terminal(
        build_shutdown_command(hostname),
        WindowMode.NEW_WINDOW,
        context=f"Shutting down {hostname}",
    )


def run_system_check(
    hostname: str,
    *,
    command: str = SYSTEM_CHECK_COMMAND,
    username: Optional[str] = None,
    password: Optional[str] = None,
    port: Optional[int] = None,
    timeout: int = COMMAND_TIMEOUT,
    ssh_config_path: Optional[str] = SSH_CONFIG_PATH,
) -> SystemCheckReport:
    """Run the system check on *hostname* and parse its output.

    Blocks until the remote launch exits. Output is only parsed when the
    command succeeds.

    Returns:
        SystemCheckReport

    Raises:
        SSHConnectionError: If the host cannot be reached or the exec fails
        SSHCommandError: If the check exits non-zero ("Exit code: ...")
    """
    ctx = f"System check on {hostname}"
    manager = SSHConnectionManager(
        hostname,
        username=username,
        password=password,
        port=port,
        ssh_config_path=ssh_config_path,
    )

    try:
        try:
            manager.connect(context=ctx)
            _, stdout, _ = SSHCommandExecutor(manager).execute_command(
                command, context=ctx, timeout=timeout,
            )
        finally:
            manager.disconnect()
    except SSHTimeoutError as e:
        raise SSHTimeoutError(f"SSH execution failed: {e}") from e
    except SSHConnectionError as e:
        raise SSHConnectionError(f"SSH execution failed: {e}") from e

    logger.debug("[CHECK] --- Remote output from %s ---\n%s", hostname, stdout)

    report = parse_check_output(stdout)
    logger.info(
        "[CHECK] %s: %d checks, %d failed",
        hostname, len(report.summary), len(report.failures),
    )
    return report
