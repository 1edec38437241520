"""SSH connection management for running commands on robot computers.

Hosts are given as OpenSSH aliases; ``~/.ssh/config`` is consulted for the
real address, user, port and identity files so behaviour matches a plain
``ssh <alias>`` from the operator's shell.
"""

from __future__ import annotations

import getpass
import logging
import os
import socket
import time
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional

import paramiko
from typeguard import typechecked

from . import SSH_PORT, CONNECTION_TIMEOUT, COMMAND_TIMEOUT, SSH_CONFIG_PATH
from .exceptions import SSHConnectionError, SSHTimeoutError, SSHCommandError
from .types import ConnectionResult, HostConfig

logger = logging.getLogger("robot_ssh_tools.connection")


class SSHConnectionManager:
    """Manages one SSH connection to a host alias."""

    def __init__(
        self,
        hostname: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        port: Optional[int] = None,
        timeout: int = CONNECTION_TIMEOUT,
        ssh_config_path: Optional[str] = SSH_CONFIG_PATH,
    ) -> None:
        """Initialize SSH connection manager.

        Explicit *username* and *port* win over the SSH config file.

        Args:
            hostname: SSH alias, hostname or IP address
            username: SSH username (default: from SSH config, then local user)
            password: SSH password (default: agent / key authentication)
            port: SSH port (default: from SSH config, then 22)
            timeout: Connection timeout in seconds (default: 10)
            ssh_config_path: OpenSSH client config to resolve aliases with
        """
        self.alias = hostname
        self.password = password
        self.timeout = timeout
        self.key_filenames: List[str] = []
        self.ssh_client: Optional[paramiko.SSHClient] = None

        self.hostname, self.username, self.port = self._resolve_host_config(
            hostname, username, port, ssh_config_path,
        )

    def _resolve_host_config(
        self,
        alias: str,
        username: Optional[str],
        port: Optional[int],
        ssh_config_path: Optional[str],
    ) -> HostConfig:
        """Look *alias* up in the SSH config file, if there is one."""
        entry: dict = {}
        if ssh_config_path and os.path.isfile(ssh_config_path):
            try:
                entry = paramiko.SSHConfig.from_path(ssh_config_path).lookup(alias)
            except (OSError, paramiko.SSHException) as exc:
                logger.warning(
                    "[CONFIG] Could not read %s for %s: %s", ssh_config_path, alias, exc,
                )

        self.key_filenames = [
            os.path.expanduser(path) for path in entry.get("identityfile", [])
        ]
        resolved_host = entry.get("hostname", alias)
        resolved_user = username or entry.get("user") or getpass.getuser()
        resolved_port = port or int(entry.get("port", SSH_PORT))

        if resolved_host != alias:
            logger.debug("[CONFIG] %s resolves to %s@%s:%d",
                         alias, resolved_user, resolved_host, resolved_port)
        return resolved_host, resolved_user, resolved_port

    def _get_ssh_client(self) -> paramiko.SSHClient:
        """Get or create SSH client; unknown host keys are accepted."""
        if self.ssh_client is None:
            self.ssh_client = paramiko.SSHClient()
            try:
                self.ssh_client.load_system_host_keys()
            except OSError as exc:
                logger.debug("[CONNECT] No system host keys loaded: %s", exc)
            self.ssh_client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

        return self.ssh_client

    def connect(self, context: str) -> None:
        """Establish SSH connection to the host.

        Args:
            context: Description of the purpose of this connection,
                embedded into error messages.

        Raises:
            SSHConnectionError: If connection fails
            SSHTimeoutError: If connection times out
        """
        logger.info(
            "[CONNECT] [%s] Attempting SSH connection to %s@%s:%d (timeout=%ds) ...",
            context, self.username, self.hostname, self.port, self.timeout,
        )
        start_time = time.time()
        # With a password, skip keys so the server's auth attempt limit
        # is not spent on them.
        use_keys = self.password is None

        try:
            client = self._get_ssh_client()

            client.connect(
                hostname=self.hostname,
                port=self.port,
                username=self.username,
                password=self.password,
                key_filename=self.key_filenames or None,
                allow_agent=use_keys,
                look_for_keys=use_keys,
                timeout=self.timeout,
                banner_timeout=self.timeout,
                auth_timeout=self.timeout,
            )

            elapsed = time.time() - start_time
            logger.info(
                "[CONNECT] [%s] Successfully connected to %s@%s:%d in %.2fs",
                context, self.username, self.hostname, self.port, elapsed,
            )

        except socket.timeout as e:
            elapsed = time.time() - start_time
            msg = (
                f"[{context}] Connection to {self.hostname}:{self.port} timed out "
                f"after {elapsed:.1f}s (limit {self.timeout}s)"
            )
            logger.error("[CONNECT] TIMEOUT — %s", msg)
            raise SSHTimeoutError(msg) from e
        except paramiko.AuthenticationException as e:
            msg = f"[{context}] Authentication failed for {self.username}@{self.hostname}:{self.port}: {e}"
            logger.error("[CONNECT] AUTH FAILED — %s", msg)
            raise SSHConnectionError(msg) from e
        except paramiko.SSHException as e:
            elapsed = time.time() - start_time
            msg = f"[{context}] SSH error connecting to {self.hostname}:{self.port}: {e}"
            logger.error("[CONNECT] SSH ERROR after %.2fs — %s", elapsed, msg)
            raise SSHConnectionError(msg) from e
        except OSError as e:
            elapsed = time.time() - start_time
            msg = f"[{context}] OS/network error connecting to {self.hostname}:{self.port}: {e}"
            logger.error("[CONNECT] OS ERROR after %.2fs — %s", elapsed, msg)
            raise SSHConnectionError(msg) from e

    def is_connected(self) -> bool:
        """Check if SSH connection is active."""
        if self.ssh_client is None:
            return False
        transport = self.ssh_client.get_transport()
        return transport is not None and transport.is_active()

    def disconnect(self) -> None:
        """Close SSH connection if open."""
        was_connected = self.is_connected()
        target = f"{self.username}@{self.hostname}:{self.port}"

        if self.ssh_client is not None:
            try:
                self.ssh_client.close()
            except Exception as exc:
                logger.warning("[DISCONNECT] Error closing connection to %s: %s", target, exc)
            finally:
                self.ssh_client = None

        if was_connected:
            logger.info("[DISCONNECT] Disconnected from %s", target)

    def __enter__(self) -> SSHConnectionManager:
        """Context manager entry."""
        self.connect(context=f"Connecting to {self.alias}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:  # type: ignore[no-untyped-def]
        """Context manager exit - ensure connection is closed."""
        self.disconnect()

    def __del__(self) -> None:
        try:
            self.disconnect()
        except Exception:
            pass


@typechecked
class SSHCommandExecutor:
    """Executes a command on a connected host and captures its output."""

    def __init__(self, connection_manager: SSHConnectionManager) -> None:
        """Initialize command executor.

        Args:
            connection_manager: Active SSH connection manager
        """
        self.connection_manager = connection_manager

    def execute_command(
        self,
        command: str,
        context: str,
        timeout: int = COMMAND_TIMEOUT,
    ) -> ConnectionResult:
        """Execute command on remote host.

        Args:
            command: Command to execute
            context: Description of the purpose, embedded into error messages.
            timeout: Command timeout in seconds

        Returns:
            Tuple of (return_code, stdout, stderr)

        Raises:
            SSHConnectionError: If connection is not active or the exec fails
            SSHCommandError: If the command exits with a non-zero return code
        """
        host = self.connection_manager.hostname
        port = self.connection_manager.port

        if not self.connection_manager.is_connected():
            msg = f"[{context}] Cannot execute command: not connected to {host}:{port}"
            logger.error("[EXEC] %s", msg)
            raise SSHConnectionError(msg)

        logger.info("[EXEC] [%s] Running on %s:%d — %r", context, host, port, command)

        client = self.connection_manager._get_ssh_client()

        try:
            stdin, stdout, stderr = client.exec_command(command, timeout=timeout)
            stdin.close()

            # Both streams share one channel window: drain stderr alongside
            # stdout or a chatty remote blocks before stdout reaches EOF.
            with ThreadPoolExecutor(max_workers=1) as pool:
                stderr_future = pool.submit(stderr.read)
                stdout_bytes = stdout.read()
                stderr_bytes = stderr_future.result()

            stdout_output = stdout_bytes.decode("utf-8", errors="replace")
            stderr_output = stderr_bytes.decode("utf-8", errors="replace")
            return_code = stdout.channel.recv_exit_status()

            logger.info(
                "[EXEC] [%s] Completed on %s:%d — rc=%d, stdout=%d bytes, stderr=%d bytes",
                context, host, port, return_code, len(stdout_output), len(stderr_output),
            )

            if return_code != 0:
                msg = f"Exit code: {return_code}\nStdErr: {stderr_output}"
                logger.warning("[EXEC] [%s] %r failed on %s:%d — %s",
                               context, command, host, port, msg)
                raise SSHCommandError(
                    msg,
                    command=command,
                    return_code=return_code,
                    stdout=stdout_output,
                    stderr=stderr_output,
                )

            return (return_code, stdout_output, stderr_output)

        except SSHCommandError:
            raise
        except paramiko.SSHException as e:
            msg = f"[{context}] Error executing command '{command}' on {host}:{port}: {e}"
            logger.error("[EXEC] SSH ERROR — %s", msg)
            raise SSHConnectionError(msg) from e
        except Exception as e:
            msg = f"[{context}] Unexpected error executing command '{command}' on {host}:{port}: {e}"
            logger.error("[EXEC] UNEXPECTED ERROR — %s", msg)
            raise SSHConnectionError(msg) from e
