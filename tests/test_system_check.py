"""
System check test suite.

Uses a real in-process SSH server built on paramiko's ServerInterface that
answers every exec request with scripted output — no system sshd, no robot.
Covers host alias resolution, the command executor and the full
``run_system_check`` path including its error messages.

Run with full visibility:
    pytest tests/test_system_check.py -v -s
"""

from __future__ import annotations

import platform
import socket
import sys
import threading
import time
from typing import List, Optional

import pytest

# ---------------------------------------------------------------------------
# Dependency gate — report clearly if anything is missing
# ---------------------------------------------------------------------------
_MISSING: List[str] = []

try:
    import paramiko
except ImportError:
    _MISSING.append("paramiko")

try:
    from typeguard import typechecked  # noqa: F401
except ImportError:
    _MISSING.append("typeguard")

if _MISSING:
    print(
        "\n"
        "=" * 72 + "\n"
        "  MISSING REQUIRED LIBRARIES\n"
        "=" * 72 + "\n"
        f"  The following packages are not installed: {', '.join(_MISSING)}\n"
        f"  Install them with:  pip install {' '.join(_MISSING)}\n"
        "=" * 72 + "\n",
        file=sys.stderr,
    )
    pytest.skip(
        f"Required libraries missing: {', '.join(_MISSING)}",
        allow_module_level=True,
    )

from robot_ssh_tools import SYSTEM_CHECK_COMMAND
from robot_ssh_tools.api import run_system_check
from robot_ssh_tools.connection import SSHCommandExecutor, SSHConnectionManager
from robot_ssh_tools.exceptions import (
    RobotSSHToolsError,
    SSHCommandError,
    SSHConnectionError,
)
from robot_ssh_tools.report import CheckStatus

# ---------------------------------------------------------------------------
# Report environment
# ---------------------------------------------------------------------------
print(
    "\n"
    "+" * 72 + "\n"
    f"  Platform : {platform.system()} {platform.release()}\n"
    f"  Python   : {sys.version.split()[0]}\n"
    f"  paramiko : {paramiko.__version__}\n"
    "+" * 72
)

# ---------------------------------------------------------------------------
# Test-only credentials (used by the in-process SSH server, never real hosts)
# ---------------------------------------------------------------------------
TEST_HOST = "127.0.0.1"
TEST_USER = "robot"
TEST_PASS = "testpass"

CHECK_OUTPUT = (
    "[INFO] [launch]: Default logging verbosity is set to INFO\n"
    "=== Check Start ===\n"
    "\x1b[32m[PASS]\x1b[0m Battery, 24.1V\n"
    "\x1b[31m[FAIL]\x1b[0m DVL, no bottom lock\n"
    "=== Detailed Report ===\n"
    "DVL,velocity invalid\n"
    "DVL,altitude 0.0m\n"
    "=======================\n"
)


def _report(label: str, detail: str = "") -> None:
    """Uniform test-level print."""
    if detail:
        print(f"  [{label}] {detail}")
    else:
        print(f"  [{label}]")


# ═══════════════════════════════════════════════════════════════════════════
#  IN-PROCESS SSH SERVER  (paramiko ServerInterface)
# ═══════════════════════════════════════════════════════════════════════════

class _ScriptedSSHServer(paramiko.ServerInterface):
    """SSH server that accepts password auth and replays a scripted result."""

    def __init__(self, owner: "ScriptedSSHServer") -> None:
        self.owner = owner

    def get_allowed_auths(self, username: str) -> str:
        return "password"

    def check_auth_password(self, username: str, password: str) -> int:
        if username == TEST_USER and password == TEST_PASS:
            return paramiko.AUTH_SUCCESSFUL
        return paramiko.AUTH_FAILED

    def check_channel_request(self, kind: str, chanid: int) -> int:
        if kind == "session":
            return paramiko.OPEN_SUCCEEDED
        return paramiko.OPEN_FAILED_ADMINISTRATIVELY_PROHIBITED

    def check_channel_exec_request(self, channel: paramiko.Channel, command: bytes) -> bool:
        cmd_str = command.decode("utf-8") if isinstance(command, bytes) else command
        self.owner.commands.append(cmd_str)
        print(f"    [SERVER] exec request: {cmd_str[:60]!r}...")
        threading.Thread(target=self._reply, args=(channel,), daemon=True).start()
        return True

    def _reply(self, channel: paramiko.Channel) -> None:
        try:
            if self.owner.stdout:
                channel.sendall(self.owner.stdout.encode())
            if self.owner.stderr:
                channel.sendall_stderr(self.owner.stderr.encode())
            channel.send_exit_status(self.owner.exit_status)
        finally:
            channel.close()


class ScriptedSSHServer:
    """
    In-process SSH server on an OS-assigned port.

    Every exec request gets ``stdout``/``stderr``/``exit_status`` back and
    the received command is recorded in ``commands``.
    """

    def __init__(self, stdout: str = "", stderr: str = "", exit_status: int = 0) -> None:
        self.host = TEST_HOST
        self.stdout = stdout
        self.stderr = stderr
        self.exit_status = exit_status
        self.commands: List[str] = []
        self.host_key = paramiko.RSAKey.generate(2048)
        self._server_socket: Optional[socket.socket] = None
        self._running = False
        self._accept_thread: Optional[threading.Thread] = None
        self._transports: List[paramiko.Transport] = []
        self._lock = threading.Lock()

    @property
    def port(self) -> int:
        if self._server_socket is None:
            raise RuntimeError("Server not started")
        return self._server_socket.getsockname()[1]

    def start(self) -> None:
        self._server_socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._server_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._server_socket.settimeout(1.0)
        self._server_socket.bind((self.host, 0))  # OS picks a free port
        self._server_socket.listen(5)
        self._running = True

        self._accept_thread = threading.Thread(target=self._accept_loop, daemon=True)
        self._accept_thread.start()
        print(f"  [SERVER] STARTED on {self.host}:{self.port}")

    def stop(self) -> None:
        self._running = False

        with self._lock:
            for t in list(self._transports):
                try:
                    t.close()
                except Exception:
                    pass
            self._transports.clear()

        if self._server_socket:
            try:
                self._server_socket.close()
            except Exception:
                pass
            self._server_socket = None

        if self._accept_thread:
            self._accept_thread.join(timeout=5)
            self._accept_thread = None
        print("  [SERVER] STOPPED")

    def _accept_loop(self) -> None:
        while self._running:
            try:
                client_sock, _ = self._server_socket.accept()  # type: ignore[union-attr]
            except socket.timeout:
                continue
            except OSError:
                break
            threading.Thread(
                target=self._handle_client, args=(client_sock,), daemon=True
            ).start()

    def _handle_client(self, client_sock: socket.socket) -> None:
        transport: Optional[paramiko.Transport] = None
        try:
            transport = paramiko.Transport(client_sock)
            transport.add_server_key(self.host_key)
            transport.start_server(server=_ScriptedSSHServer(self))

            with self._lock:
                self._transports.append(transport)

            while self._running and transport.is_active():
                time.sleep(0.1)

        except Exception:
            pass
        finally:
            if transport:
                with self._lock:
                    if transport in self._transports:
                        self._transports.remove(transport)
                try:
                    transport.close()
                except Exception:
                    pass

    def __enter__(self) -> ScriptedSSHServer:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()


def _closed_port() -> int:
    """Return a local port with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind((TEST_HOST, 0))
        return s.getsockname()[1]


def _check(server: ScriptedSSHServer, **kwargs):
    return run_system_check(
        TEST_HOST,
        username=TEST_USER,
        password=TEST_PASS,
        port=server.port,
        ssh_config_path=None,
        **kwargs,
    )


# ═══════════════════════════════════════════════════════════════════════════
#  TESTS — host alias resolution
# ═══════════════════════════════════════════════════════════════════════════

class TestHostResolution:
    """Verify ~/.ssh/config lookups."""

    @pytest.fixture()
    def ssh_config(self, tmp_path) -> str:
        path = tmp_path / "config"
        path.write_text(
            "Host kyubic_main\n"
            "    HostName 192.168.9.100\n"
            "    User ubuntu\n"
            "    Port 2222\n"
            "    IdentityFile ~/.ssh/kyubic_ed25519\n",
            encoding="utf-8",
        )
        return str(path)

    def test_alias_resolved_from_config(self, ssh_config: str) -> None:
        _report("TEST", "Alias kyubic_main resolved")
        mgr = SSHConnectionManager("kyubic_main", ssh_config_path=ssh_config)

        _report("RESULT", f"{mgr.username}@{mgr.hostname}:{mgr.port} keys={mgr.key_filenames}")
        assert mgr.alias == "kyubic_main"
        assert mgr.hostname == "192.168.9.100"
        assert mgr.username == "ubuntu"
        assert mgr.port == 2222
        assert mgr.key_filenames and mgr.key_filenames[0].endswith("kyubic_ed25519")
        assert "~" not in mgr.key_filenames[0]
        _report("PASS", "HostName, User, Port and IdentityFile applied")

    def test_explicit_values_win(self, ssh_config: str) -> None:
        _report("TEST", "Explicit username/port override the config")
        mgr = SSHConnectionManager(
            "kyubic_main", username="operator", port=22, ssh_config_path=ssh_config,
        )

        assert mgr.username == "operator"
        assert mgr.port == 22
        assert mgr.hostname == "192.168.9.100"
        _report("PASS", "Arguments take precedence")

    def test_unknown_alias_passes_through(self, ssh_config: str) -> None:
        _report("TEST", "Alias absent from config")
        mgr = SSHConnectionManager("10.0.0.7", username="robot", ssh_config_path=ssh_config)

        assert mgr.hostname == "10.0.0.7"
        assert mgr.port == 22
        assert mgr.key_filenames == []
        _report("PASS", "Hostname used verbatim, default port")

    def test_missing_config_file(self, tmp_path) -> None:
        _report("TEST", "Config path does not exist")
        mgr = SSHConnectionManager(
            "kyubic_main", username="robot", ssh_config_path=str(tmp_path / "nope"),
        )
        assert mgr.hostname == "kyubic_main"
        _report("PASS", "No lookup, no error")


# ═══════════════════════════════════════════════════════════════════════════
#  TESTS — SSHCommandExecutor
# ═══════════════════════════════════════════════════════════════════════════

class TestCommandExecutor:
    """Verify the executor against the scripted server."""

    def test_not_connected(self) -> None:
        _report("TEST", "Executor on a closed connection")
        mgr = SSHConnectionManager(TEST_HOST, username=TEST_USER, ssh_config_path=None)
        with pytest.raises(SSHConnectionError) as exc_info:
            SSHCommandExecutor(mgr).execute_command("true", context="not connected")

        _report("RESULT", f"error = {exc_info.value}")
        assert "not connected" in str(exc_info.value)
        _report("PASS", "SSHConnectionError raised")

    def test_success_returns_output(self) -> None:
        _report("TEST", "Successful exec")
        with ScriptedSSHServer(stdout="hello\n", stderr="warn\n") as srv:
            mgr = SSHConnectionManager(
                TEST_HOST, username=TEST_USER, password=TEST_PASS,
                port=srv.port, ssh_config_path=None,
            )
            with mgr:
                rc, out, err = SSHCommandExecutor(mgr).execute_command("echo hello", context="exec")

        _report("RESULT", f"rc={rc} out={out!r} err={err!r}")
        assert (rc, out, err) == (0, "hello\n", "warn\n")
        assert srv.commands == ["echo hello"]
        _report("PASS", "Output and exit status captured")

    def test_bad_password(self) -> None:
        _report("TEST", "Wrong password")
        with ScriptedSSHServer() as srv:
            mgr = SSHConnectionManager(
                TEST_HOST, username=TEST_USER, password="wrong",
                port=srv.port, ssh_config_path=None,
            )
            with pytest.raises(SSHConnectionError) as exc_info:
                mgr.connect(context="auth test")

        _report("RESULT", f"error = {exc_info.value}")
        assert "Authentication failed" in str(exc_info.value)
        _report("PASS", "Auth failure surfaced")


# ═══════════════════════════════════════════════════════════════════════════
#  TESTS — run_system_check
# ═══════════════════════════════════════════════════════════════════════════

class TestRunSystemCheck:
    """Verify the full diagnostic path."""

    def test_report_parsed_from_remote_output(self) -> None:
        _report("TEST", "Remote check succeeds")
        with ScriptedSSHServer(stdout=CHECK_OUTPUT) as srv:
            report = _check(srv)

        for item in report.summary:
            _report("ITEM", f"{item.status.value} {item.name} — {item.description}")
        assert [(i.status, i.name) for i in report.summary] == [
            (CheckStatus.PASS, "Battery"),
            (CheckStatus.FAIL, "DVL"),
        ]
        assert report.summary[1].details == "velocity invalid\naltitude 0.0m"
        assert report.raw.startswith("=== Check Start ===")
        assert "Default logging verbosity" not in report.raw
        _report("PASS", "Report built from captured stdout")

    def test_noisy_stderr_does_not_stall(self) -> None:
        _report("TEST", "Remote writes 3 MB to stderr besides the report")
        noise = "[WARN] [rclcpp]: topic not yet available\n" * (3 * 1024 * 1024 // 42 + 1)
        stdout = "=== Check Start ===\n[PASS] Battery, ok\n=======================\n"

        with ScriptedSSHServer(stdout=stdout, stderr=noise) as srv:
            started = time.time()
            report = _check(srv, timeout=10)
            elapsed = time.time() - started

        _report("RESULT", f"{len(report.summary)} items in {elapsed:.2f}s")
        assert [(i.status, i.name) for i in report.summary] == [(CheckStatus.PASS, "Battery")]
        assert elapsed < 10
        _report("PASS", "Both streams drained, report returned")

    def test_default_command_is_sent(self) -> None:
        _report("TEST", "The health check launch is what runs remotely")
        with ScriptedSSHServer(stdout=CHECK_OUTPUT) as srv:
            _check(srv)

        _report("RESULT", f"command = {srv.commands[0][:80]!r}...")
        assert srv.commands == [SYSTEM_CHECK_COMMAND]
        assert "system_health_check.launch.py" in srv.commands[0]
        _report("PASS", "Default command sent verbatim")

    def test_nonzero_exit_skips_parsing(self) -> None:
        _report("TEST", "Remote check exits 127")
        with ScriptedSSHServer(
            stdout=CHECK_OUTPUT, stderr="bash: ros2_start: command not found\n", exit_status=127,
        ) as srv:
            with pytest.raises(SSHCommandError) as exc_info:
                _check(srv)

        err = exc_info.value
        _report("RESULT", f"error = {err!r}")
        assert str(err) == "Exit code: 127\nStdErr: bash: ros2_start: command not found\n"
        assert err.return_code == 127
        assert err.stdout == CHECK_OUTPUT
        _report("PASS", "Exit code and stderr reported, no report returned")

    def test_unreachable_host(self) -> None:
        _report("TEST", "Nothing listening on the port")
        with pytest.raises(SSHConnectionError) as exc_info:
            run_system_check(
                TEST_HOST,
                username=TEST_USER,
                password=TEST_PASS,
                port=_closed_port(),
                ssh_config_path=None,
            )

        _report("RESULT", f"error = {exc_info.value}")
        assert str(exc_info.value).startswith("SSH execution failed: ")
        assert isinstance(exc_info.value, RobotSSHToolsError)
        _report("PASS", "Connection failure surfaced as an error string")

    def test_custom_command(self) -> None:
        _report("TEST", "Caller-supplied command")
        with ScriptedSSHServer(stdout="[PASS] Echo, ok\n") as srv:
            report = _check(srv, command="echo '[PASS] Echo, ok'")

        assert srv.commands == ["echo '[PASS] Echo, ok'"]
        assert report.summary[0].name == "Echo"
        _report("PASS", "Custom command used")
