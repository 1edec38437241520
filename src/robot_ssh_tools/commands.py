"""Shell command strings for SSH sessions and remote shutdown.

Pure string formatting. Hostnames and remote commands are passed through
verbatim; callers are trusted operators picking from a fixed device list.
"""

from . import LOOPBACK_IP, LOCAL_HOSTNAME

LOCAL_GREETING = "echo 'Starting Local Terminal'"
SHUTDOWN_COMMAND = "sudo shutdown -h now"


def is_local_target(hostname: str, ip: str) -> bool:
    """True when the target is this machine, so no SSH hop is needed."""
    return ip == LOOPBACK_IP or hostname == LOCAL_HOSTNAME


def build_ssh_shell_command(
    hostname: str,
    is_local: bool,
    run_remote_script: bool,
    remote_command: str,
) -> str:
    """Build the command line a terminal should run for *hostname*.

    ``bash -i`` makes the remote shell read ``~/.bashrc``, where helpers such
    as ``ros2_start`` are defined.
    """
    if is_local:
        if run_remote_script:
            return f"bash -i -c '{remote_command}'"
        return LOCAL_GREETING
    if run_remote_script:
        return f"ssh -t {hostname} \"bash -i -c '{remote_command}'\""
    return f"ssh {hostname}"


def build_shutdown_command(hostname: str) -> str:
    # -t so sudo can prompt for a password in the terminal.
    return f'ssh -t {hostname} "{SHUTDOWN_COMMAND}"'
