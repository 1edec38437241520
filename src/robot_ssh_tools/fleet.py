"""Device catalogue and status overview for the robot's internal network."""

from __future__ import annotations

import dataclasses
import logging
from typing import Callable, Dict, Iterable, List, Optional

from . import DASHBOARD_PORT, LOOPBACK_IP, VIEWER_PORT
from .api import check_batch_connections
from .types import StatusMap

logger = logging.getLogger("robot_ssh_tools.fleet")


@dataclasses.dataclass(frozen=True)
class Device:
    """A machine on the robot network.

    Attributes:
        name: Display name.
        ip: Address used for reachability checks.
        hostname: SSH alias (defaults to *name*).
        allow_startup: Whether the container start-up command applies.
    """
    name: str
    ip: str
    hostname: str = ""
    allow_startup: bool = False

    def __post_init__(self) -> None:
        if not self.hostname:
            object.__setattr__(self, "hostname", self.name)

    @property
    def is_loopback(self) -> bool:
        return self.ip == LOOPBACK_IP


# Computers an operator can open a terminal on.
CONSOLE_TARGETS: List[Device] = [
    Device("localhost", LOOPBACK_IP, allow_startup=True),
    Device("kyubic_main", "192.168.9.100", allow_startup=True),
    Device("kyubic_jetson", "192.168.9.110"),
    Device("kyubic_rpi5", "192.168.9.120"),
]

# Everything shown in the network status overview.
MONITORED_DEVICES: List[Device] = [
    Device("localhost", LOOPBACK_IP),
    Device("Sensor (ESP32)", "192.168.9.5"),
    Device("DVL", "192.168.9.10"),
    Device("GNSS", "192.168.9.20"),
    Device("Main PC", "192.168.9.100"),
    Device("Main KVM", "192.168.9.105"),
    Device("Jetson", "192.168.9.110"),
    Device("Jetson KVM", "192.168.9.115"),
    Device("RPi 5", "192.168.9.120"),
]


def find_device(key: str, devices: Iterable[Device] = CONSOLE_TARGETS) -> Optional[Device]:
    """Find a device by name, SSH alias or IP."""
    for device in devices:
        if key in (device.name, device.hostname, device.ip):
            return device
    return None


def refresh_statuses(
    devices: Iterable[Device] = MONITORED_DEVICES,
    checker: Callable[[List[str]], StatusMap] = check_batch_connections,
) -> StatusMap:
    """Return ``{ip: online}`` for *devices*.

    Loopback devices are online by definition and are not pinged. A device
    whose check did not complete is reported offline.
    """
    devices = list(devices)
    remote_ips = [d.ip for d in devices if not d.is_loopback]
    results = checker(remote_ips) if remote_ips else {}

    statuses: StatusMap = {}
    for device in devices:
        statuses[device.ip] = True if device.is_loopback else results.get(device.ip, False)

    missing = [ip for ip in remote_ips if ip not in results]
    if missing:
        logger.debug("[STATUS] No result for %s, reporting offline", ", ".join(missing))
    return statuses


def dashboard_urls(host: str) -> Dict[str, str]:
    """Web UIs served by the robot's main computer."""
    return {
        "dashboard": f"http://{host}:{DASHBOARD_PORT}",
        "viewer": f"http://{host}:{VIEWER_PORT}",
    }
