"""Custom exceptions for SSH, terminal and system check operations."""

from __future__ import annotations


class RobotSSHToolsError(Exception):
    """Common base exception for all robot_ssh_tools errors."""
    pass


class SSHConnectionError(RobotSSHToolsError):
    """Exception for SSH connection errors."""
    pass


class SSHTimeoutError(SSHConnectionError):
    """Exception for SSH connection timeouts."""
    pass


class SSHCommandError(RobotSSHToolsError):
    """Exception for non-zero SSH command exit codes.

    Attributes:
        command: The command that failed.
        return_code: The non-zero exit code.
        stdout: Standard output from the command.
        stderr: Standard error from the command.
    """

    def __init__(
        self,
        message: str,
        *,
        command: str,
        return_code: int,
        stdout: str,
        stderr: str,
    ) -> None:
        super().__init__(message)
        self.command = command
        self.return_code = return_code
        self.stdout = stdout
        self.stderr = stderr


class TerminalLaunchError(RobotSSHToolsError):
    """Exception for terminal launch errors."""
    pass


class UnsupportedPlatformError(TerminalLaunchError):
    """Raised when no terminal launcher exists for the host OS."""

    def __init__(self, message: str = "Unsupported OS") -> None:
        super().__init__(message)
