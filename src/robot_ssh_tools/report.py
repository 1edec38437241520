"""System check report model and output parser.

The remote health check prints something like::

    === Check Start ===
    [PASS] Battery, voltage nominal
    [FAIL] Lidar, no scan received
    Plugin error: failed to load class type foo_bar::Widget
    === Detailed Report ===
    Lidar,timeout after 5s
    Lidar,retrying
    =======================

usually wrapped in launch-system noise and ANSI colour codes. The parser
never fails: unknown lines are dropped and missing markers fall back to the
whole text.
"""

from __future__ import annotations

import dataclasses
import enum
import logging
import re
from typing import Dict, List, Optional

logger = logging.getLogger("robot_ssh_tools.report")

START_MARKER = "=== Check Start ==="
END_MARKER = "======================="
DETAILED_MARKER = "=== Detailed Report ==="
PLUGIN_ERROR_PREFIX = "Plugin error:"
CLASS_TYPE_ANCHOR = "class type "

# Powerline arrow that prompt themes leak into captured output.
PROMPT_SYMBOL = "\ue0b0"

_ANSI_RE = re.compile(r"\x1b\[[0-9;]*[a-zA-Z]")


class CheckStatus(str, enum.Enum):
    PASS = "PASS"
    FAIL = "FAIL"


@dataclasses.dataclass(frozen=True)
class CheckItem:
    """One line of the check summary.

    Attributes:
        status: PASS or FAIL.
        name: Check name, unique within a report.
        description: Short text after the name on the summary line.
        details: Accumulated detailed-report log for this check, or ``""``.
    """
    status: CheckStatus
    name: str
    description: str
    details: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "status": self.status.value,
            "name": self.name,
            "description": self.description,
            "details": self.details,
        }


@dataclasses.dataclass(frozen=True)
class SystemCheckReport:
    """Parsed result of one system check run.

    Attributes:
        summary: Check items in the order they were printed.
        detailed: Detailed report section with escape codes removed.
        raw: The unmodified text between the start and end markers.
    """
    summary: List[CheckItem]
    detailed: str
    raw: str

    @property
    def passed(self) -> bool:
        return all(item.status is CheckStatus.PASS for item in self.summary)

    @property
    def failures(self) -> List[CheckItem]:
        return [item for item in self.summary if item.status is CheckStatus.FAIL]

    def to_dict(self) -> dict:
        return {
            "summary": [item.to_dict() for item in self.summary],
            "detailed": self.detailed,
            "raw": self.raw,
        }


def _lines(text: str) -> List[str]:
    # Only "\n" and "\r\n" end a line; form feeds and the like stay in it.
    return [line[:-1] if line.endswith("\r") else line for line in text.split("\n")]


def strip_ansi_and_symbols(line: str) -> str:
    """Remove ANSI escape sequences and prompt symbols, then trim."""
    previous = None
    # Removing one sequence can splice two fragments into a new one.
    while previous != line:
        previous = line
        line = _ANSI_RE.sub("", line).replace(PROMPT_SYMBOL, "")
    return line.strip()


def extract_window(text: str) -> str:
    """Return the text from the start marker through the end marker.

    The start is the first start marker, the end the last end marker. A
    missing start means "from the beginning", a missing end "to the end";
    with neither present the whole text is returned.
    """
    start = text.find(START_MARKER)
    end = text.rfind(END_MARKER)
    if start < 0 and end < 0:
        return text

    start = max(start, 0)
    if end < start:
        return text[start:]
    return text[start:end + len(END_MARKER)]


def parse_details(detailed: str) -> Dict[str, str]:
    """Map check name to its log lines from ``name,log`` rows."""
    details: Dict[str, str] = {}
    for line in _lines(detailed):
        line = line.strip()
        if not line or DETAILED_MARKER in line:
            continue

        name, sep, log = line.partition(",")
        if not sep:
            continue
        name, log = name.strip(), log.strip()
        if name in details:
            details[name] += "\n" + log
        else:
            details[name] = log
    return details


def _plugin_error_name(line: str) -> str:
    idx = line.find(CLASS_TYPE_ANCHOR)
    if idx < 0:
        return "Plugin Load Error"
    tokens = line[idx + len(CLASS_TYPE_ANCHOR):].split()
    return tokens[0] if tokens else "Plugin Error"


def parse_summary_line(line: str, details: Dict[str, str]) -> Optional[CheckItem]:
    """Turn one cleaned summary line into a CheckItem, or ``None`` to drop it."""
    if "[PASS]" in line or "[FAIL]" in line:
        status = CheckStatus.PASS if "[PASS]" in line else CheckStatus.FAIL
        content = line.replace(f"[{status.value}]", "")
        name, _, description = content.partition(",")
        name = name.strip()
        return CheckItem(
            status=status,
            name=name,
            description=description.strip(),
            details=details.get(name, ""),
        )

    if line.startswith(PLUGIN_ERROR_PREFIX):
        return CheckItem(
            status=CheckStatus.FAIL,
            name=_plugin_error_name(line),
            description=line,
            details=f"Raw Error: {line}",
        )

    return None


def parse_check_output(text: str) -> SystemCheckReport:
    """Parse raw system check output into a report."""
    window = extract_window(text)

    # A repeated detailed marker closes the detailed section.
    parts = window.split(DETAILED_MARKER)
    summary_part = parts[0]
    detailed = strip_ansi_and_symbols(DETAILED_MARKER + parts[1]) if len(parts) > 1 else ""
    details = parse_details(detailed)

    summary: List[CheckItem] = []
    for raw_line in _lines(summary_part):
        item = parse_summary_line(strip_ansi_and_symbols(raw_line), details)
        if item is not None:
            summary.append(item)

    logger.debug(
        "[CHECK] Parsed %d summary items, %d detailed entries from %d chars",
        len(summary), len(details), len(window),
    )
    return SystemCheckReport(summary=summary, detailed=detailed, raw=window)
