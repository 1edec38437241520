"""
Robot SSH Tools - operator console backend for a small fleet of robot computers

This package provides the pieces an operator console needs to look after the
machines on a robot's internal network. It includes:

- **Reachability checks** with a single ping per host, fanned out in parallel
- **Interactive terminal** launch (new tab or new window) on Windows, macOS and Linux
- **Remote shutdown** of a robot computer in its own terminal window
- **System check** runs over SSH, parsed into a structured pass/fail report

Hosts are addressed by their OpenSSH alias, so ``~/.ssh/config`` decides the
real address, user and keys, exactly like a plain ``ssh <alias>`` would.
"""

import logging
import os

logging.getLogger("robot_ssh_tools").addHandler(logging.NullHandler())

__version__ = "0.1.0"


def _env_int(name: str, default: int, minimum: int) -> int:
    """Read an integer setting from the environment, ignoring junk values."""
    try:
        value = int(os.environ.get(name, default))
    except ValueError:
        logging.getLogger("robot_ssh_tools").warning(
            "Ignoring non-integer %s=%r", name, os.environ[name],
        )
        value = default
    return max(minimum, value)


# Addresses treated as "this machine": no SSH hop needed.
LOOPBACK_IP = "127.0.0.1"
LOCAL_HOSTNAME = "localhost"

# Ping settings
PING_TIMEOUT_MS = 1000
PING_PROCESS_TIMEOUT = 5  # seconds, guard against a ping binary that never exits
PING_MAX_WORKERS = _env_int("ROBOT_PING_MAX_WORKERS", 16, minimum=1)

# SSH settings
SSH_PORT = 22
CONNECTION_TIMEOUT = 10
COMMAND_TIMEOUT = 300
SSH_CONFIG_PATH = os.environ.get(
    "ROBOT_SSH_CONFIG", os.path.join(os.path.expanduser("~"), ".ssh", "config")
)

# Remote commands.
# STARTUP_COMMAND opens the robot's container shell inside byobu.
# SYSTEM_CHECK_COMMAND launches the health check node and strips the
# component-container prefix ROS puts in front of every line.
STARTUP_COMMAND = os.environ.get(
    "ROBOT_STARTUP_COMMAND", "ros2_start -- bash -i -c byobu"
)
SYSTEM_CHECK_COMMAND = os.environ.get(
    "ROBOT_SYSTEM_CHECK_COMMAND",
    r"""bash -i -c 'ros2_start -- bash -i -c "RCUTILS_CONSOLE_OUTPUT_FORMAT=\"{message}\" ros2 launch system_health_check system_health_check.launch.py | sed -u \"s/^\[component_container_mt-[0-9]\+\][: ]*//g\""'""",
)

# Console settings
STATUS_POLL_INTERVAL = 5.0  # seconds
DASHBOARD_PORT = 8080
VIEWER_PORT = 8081
