"""Host reachability checks via the OS ping utility."""

from __future__ import annotations

import logging
import platform
import subprocess
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Iterable, List

from . import PING_TIMEOUT_MS, PING_PROCESS_TIMEOUT, PING_MAX_WORKERS
from .types import CommandLine, StatusMap

logger = logging.getLogger("robot_ssh_tools.connectivity")

_IS_WINDOWS = platform.system() == "Windows"


def build_ping_command(target: str) -> CommandLine:
    """Return the argv for a single ping with a ~1 second reply timeout.

    Windows takes the timeout in milliseconds, the Linux/macOS ``-W`` flag
    takes whole seconds.
    """
    if _IS_WINDOWS:
        return ["ping", "-n", "1", "-w", str(PING_TIMEOUT_MS), target]
    return ["ping", "-c", "1", "-W", str(max(1, PING_TIMEOUT_MS // 1000)), target]


def check_ping(target: str) -> bool:
    """Ping *target* once and report whether it answered.

    Success is defined purely by the exit status of the ping binary. A ping
    that cannot be spawned, or that outlives ``PING_PROCESS_TIMEOUT``, counts
    as unreachable.
    """
    kwargs: dict = {
        "stdin": subprocess.DEVNULL,
        "stdout": subprocess.DEVNULL,
        "stderr": subprocess.DEVNULL,
        "timeout": PING_PROCESS_TIMEOUT,
    }
    # Prevent a console window flash on Windows.
    _CREATE_NO_WINDOW = getattr(subprocess, "CREATE_NO_WINDOW", 0)
    if _IS_WINDOWS and _CREATE_NO_WINDOW:
        kwargs["creationflags"] = _CREATE_NO_WINDOW

    try:
        result = subprocess.run(build_ping_command(target), **kwargs)
    except (OSError, ValueError, subprocess.TimeoutExpired) as exc:
        logger.debug("[PING] %s — could not run ping: %s", target, exc)
        return False

    online = result.returncode == 0
    logger.debug("[PING] %s — rc=%d (%s)", target, result.returncode,
                 "online" if online else "offline")
    return online


def check_batch(targets: Iterable[str]) -> StatusMap:
    """Ping every target concurrently and collect ``{target: online}``.

    All checks run to completion before the mapping is returned. A check
    that raises is left out of the mapping instead of failing the batch, so
    the result never has more keys than there are distinct targets.
    """
    unique: List[str] = list(dict.fromkeys(targets))
    if not unique:
        return {}

    results: StatusMap = {}
    with ThreadPoolExecutor(max_workers=min(PING_MAX_WORKERS, len(unique))) as pool:
        futures = {pool.submit(check_ping, target): target for target in unique}
        for future in as_completed(futures):
            target = futures[future]
            try:
                results[target] = future.result()
            except Exception as exc:
                logger.warning("[BATCH] Check for %s did not complete: %s", target, exc)

    logger.info(
        "[BATCH] %d/%d hosts online (%d checks completed)",
        sum(results.values()), len(unique), len(results),
    )
    return results
