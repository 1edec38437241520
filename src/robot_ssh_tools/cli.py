"""Command-line interface for Robot SSH Tools."""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from typing import List, Optional

from . import STARTUP_COMMAND, STATUS_POLL_INTERVAL
from .api import (
    check_batch_connections,
    exec_shutdown_command,
    open_ssh_terminal,
    run_system_check,
)
from .exceptions import RobotSSHToolsError
from .fleet import MONITORED_DEVICES, dashboard_urls, find_device, refresh_statuses
from .report import SystemCheckReport


def _print_statuses() -> None:
    statuses = refresh_statuses(MONITORED_DEVICES)
    for device in MONITORED_DEVICES:
        if device.is_loopback:
            continue
        online = statuses.get(device.ip, False)
        mark = "●" if online else "○"
        state = "ONLINE" if online else "offline"
        print(f"  {mark} {device.name:<16} {device.ip:<15} {state}")


def command_status(args) -> int:
    """Show reachability of every monitored device."""
    if not args.watch:
        _print_statuses()
        return 0

    try:
        while True:
            print(time.strftime("[%H:%M:%S] Network Status"))
            _print_statuses()
            time.sleep(args.interval)
    except KeyboardInterrupt:
        return 0


def command_ping(args) -> int:
    """Ping the given targets; exit 1 if any is offline."""
    results = check_batch_connections(args.targets)
    for target in args.targets:
        online = results.get(target)
        if online is None:
            print(f"{target}: unknown")
        else:
            print(f"{target}: {'online' if online else 'offline'}")
    return 0 if results and all(results.get(t) for t in args.targets) else 1


def command_terminal(args) -> int:
    """Launch interactive terminal."""
    device = find_device(args.name)
    hostname = device.hostname if device else args.name
    ip = device.ip if device else args.name

    if args.startup and device is not None and not device.allow_startup:
        print(f"Error: start-up command is not available on {device.name}", file=sys.stderr)
        return 1

    try:
        open_ssh_terminal(
            hostname=hostname,
            ip=ip,
            run_remote_script=args.startup,
            remote_command=(args.command or STARTUP_COMMAND) if args.startup else "",
        )
        return 0

    except RobotSSHToolsError as e:
        print(f"Terminal Launch Error: {e}", file=sys.stderr)
        return 1


def command_shutdown(args) -> int:
    """Shut a robot computer down after confirmation."""
    device = find_device(args.name)
    hostname = device.hostname if device else args.name

    if not args.yes:
        label = f"{hostname} ({device.ip})" if device else hostname
        answer = input(f"Are you sure you want to shutdown {label}? [y/N] ")
        if answer.strip().lower() not in ("y", "yes"):
            print("Cancelled.")
            return 1

    try:
        exec_shutdown_command(hostname)
        return 0

    except RobotSSHToolsError as e:
        print(f"Shutdown Error: {e}", file=sys.stderr)
        return 1


def _print_report(report: SystemCheckReport) -> None:
    for item in report.summary:
        print(f"[{item.status.value}] {item.name}: {item.description}")
        for line in item.details.splitlines():
            print(f"        {line}")

    failed = len(report.failures)
    print(f"\n{len(report.summary)} checks, {failed} failed")


def command_check(args) -> int:
    """Run the remote system check and print the report."""
    device = find_device(args.name)
    hostname = device.hostname if device else args.name

    try:
        report = run_system_check(hostname)
    except RobotSSHToolsError as e:
        print(f"System check failed: {e}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(report.to_dict(), indent=2, ensure_ascii=False))
    else:
        _print_report(report)
    return 0 if report.passed else 1


def command_dashboards(args) -> int:
    """Print the web dashboard URLs for a host."""
    for label, url in dashboard_urls(args.host).items():
        print(f"{label:<10} {url}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for CLI."""
    parser = argparse.ArgumentParser(
        description="Robot SSH Tools - check, open and shut down robot computers"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log progress to stderr",
    )

    subparsers = parser.add_subparsers(dest="subcommand", required=True)

    # Network status
    status_parser = subparsers.add_parser("status", help="Show network status")
    status_parser.add_argument(
        "--watch", action="store_true",
        help="Keep refreshing until interrupted",
    )
    status_parser.add_argument(
        "--interval", type=float, default=STATUS_POLL_INTERVAL,
        help=f"Refresh interval in seconds (default: {STATUS_POLL_INTERVAL:g})",
    )
    status_parser.set_defaults(func=command_status)

    # Ping
    ping_parser = subparsers.add_parser("ping", help="Ping hosts")
    ping_parser.add_argument("targets", nargs="+", help="Hostnames or IPs")
    ping_parser.set_defaults(func=command_ping)

    # Launch terminal
    term_parser = subparsers.add_parser("terminal", help="Open an SSH terminal")
    term_parser.add_argument("name", help="Device name, SSH alias or IP")
    term_parser.add_argument(
        "--startup", action="store_true",
        help="Run the container start-up command in the session",
    )
    term_parser.add_argument(
        "--command",
        help=f"Start-up command to run instead of {STARTUP_COMMAND!r}",
    )
    term_parser.set_defaults(func=command_terminal)

    # Shutdown
    shutdown_parser = subparsers.add_parser("shutdown", help="Shut a device down")
    shutdown_parser.add_argument("name", help="Device name, SSH alias or IP")
    shutdown_parser.add_argument(
        "-y", "--yes", action="store_true",
        help="Do not ask for confirmation",
    )
    shutdown_parser.set_defaults(func=command_shutdown)

    # System check
    check_parser = subparsers.add_parser("check", help="Run the remote system check")
    check_parser.add_argument("name", help="Device name, SSH alias or IP")
    check_parser.add_argument(
        "--json", action="store_true",
        help="Print the report as JSON",
    )
    check_parser.set_defaults(func=command_check)

    # Dashboards
    dash_parser = subparsers.add_parser("dashboards", help="Print dashboard URLs")
    dash_parser.add_argument("host", help="Host serving the dashboards")
    dash_parser.set_defaults(func=command_dashboards)

    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("paramiko").setLevel(logging.WARNING)

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
