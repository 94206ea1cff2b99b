#!/usr/bin/env python3
"""
Nagios plugin for HP Smart Array RAID monitoring from hpacucli/ssacli output
Version: v1.0

Reads the report printed by `hpacucli ctrl all show config` on stdin (or from
a file) and exits with the Nagios state of the worst drive found.
"""

import argparse
import logging
import os
import re
import sys
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional

__version__ = "1.0"

ENABLE_PERFDATA = os.getenv("ENABLE_PERFDATA", "0").lower() in ("1", "true", "yes")
ENABLE_LONG_OUTPUT = os.getenv("ENABLE_LONG_OUTPUT", "0").lower() in ("1", "true", "yes")
TERSE_OUTPUT = os.getenv("TERSE_OUTPUT", "1").lower() in ("1", "true", "yes")
LOG_LEVEL = os.getenv("LOG_LEVEL", "WARNING")

NO_CHECK_FILE = "/tmp/NO_CHECK"

# Nagios exit codes
STATE_OK = 0
STATE_WARNING = 1
STATE_CRITICAL = 2
STATE_UNKNOWN = 3
STATE_DEPENDENT = 4

STATE_NAMES = {
    STATE_OK: "OK",
    STATE_WARNING: "WARNING",
    STATE_CRITICAL: "CRITICAL",
    STATE_UNKNOWN: "UNKNOWN",
    STATE_DEPENDENT: "DEPENDENT",
}

# hpacucli indents each level of the hierarchy by three spaces
CONTROLLER_DEPTH = 0
ARRAY_DEPTH = 3
DRIVE_DEPTH = 6

UNASSIGNED_ARRAY_ID = "U"
UNASSIGNED_ARRAY_TYPE = "unassigned"
HEALTHY_STATUS = "OK"
PREDICTIVE_FAILURE_STATUS = "Predictive Failure"

# output-tailored regular expressions
CONTROLLER_RE = re.compile(r'^(.*?) in Slot (\d+) \(([^)]+)\)\s+\(sn: ([^)]+)\)$')
SEP_RE = re.compile(r'^SEP\s+\(Vendor ID\s+([^,]+),\s+Model  ([^)]+)\)\s+(\d+)\s+\(WWID:\s+([^)]+)\)$')
ARRAY_RE = re.compile(r'^array\s+([A-Z])\s+\(([^,]+),\s+Unused\s+Space:([^)]+)\)$')
LOGICAL_DRIVE_RE = re.compile(r'^logicaldrive\s+(\d+)\s+\(([^,]+),\s+([^,]+),\s+([^)]+)\)$')
PHYSICAL_DRIVE_RE = re.compile(
    r'^physicaldrive\s+(\S+)\s+\(port\s+([^:]+):box\s+([^:]+):bay\s+(\d+),'
    r'\s+([^,]+),\s+([^,]+),\s+([^)]+)\)$'
)
SIZE_RE = re.compile(r'^\s*(\d+(?:\.\d+)?)\s*(?:([A-Z])B)?\s*$')

SIZE_PREFIXES = "KMGTPE"
SIZE_UNITS = [""] + [prefix + "B" for prefix in SIZE_PREFIXES]
SIZE_BASE = 1000

logger = logging.getLogger(__name__)


class RaidReportError(ValueError):
    """Base class for reports that cannot be trusted"""

    def __init__(self, message: str, text: str = "", line_no: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.text = text
        self.line_no = line_no

    def __str__(self):
        if self.line_no is None:
            return f"{self.message}: {self.text!r}"
        return f"line {self.line_no}: {self.message}: {self.text!r}"


class MalformedLine(RaidReportError):
    """A line does not match the grammar expected at its position"""


class UnexpectedIndentation(RaidReportError):
    """A line is indented by something other than 0, 3 or 6 spaces"""

    def __init__(self, depth: int, text: str = "", line_no: Optional[int] = None):
        super().__init__(f"unexpected indentation of {depth} spaces", text, line_no)
        self.depth = depth


class InvalidSize(RaidReportError):
    """A size token is not a number with an optional K/M/G/T/P/E byte unit"""


class MissingField(RaidReportError):
    """A matched line lacks a field, or a numeric field does not convert"""


@dataclass
class StorageEnclosureProcessor:
    vendor_id: str
    model: str
    expander: int
    wwid: str

    def describe(self) -> str:
        return f"{self.vendor_id} {self.model} expander {self.expander} (WWID: {self.wwid})"


@dataclass
class Drive:
    """A logical drive (RAID volume) or a physical disk"""
    id: str
    size: int
    status: str
    physical: bool
    raid_mode: str = ""
    # set only for physical drives
    type: str = ""
    port: str = ""
    box: int = 0
    bay: int = 0

    @property
    def healthy(self) -> bool:
        return self.status == HEALTHY_STATUS

    @property
    def kind(self) -> str:
        return "physical" if self.physical else "logical"

    def describe(self) -> str:
        mode = self.type if self.physical else self.raid_mode
        return f"{self.kind} {self.id} ({mode}, {format_size(self.size)})"


@dataclass
class Array:
    id: str
    type: str
    unused_space: int = 0
    drives: List[Drive] = field(default_factory=list)
    assigned: bool = True

    def describe(self) -> str:
        return f"{self.id} ({self.type})"


def unassigned_array() -> Array:
    """Home for physical drives that are not part of any logical array"""
    return Array(id=UNASSIGNED_ARRAY_ID, type=UNASSIGNED_ARRAY_TYPE, assigned=False)


@dataclass
class Controller:
    name: str
    type: str
    slot: int
    serial_number: str
    sep: Optional[StorageEnclosureProcessor] = None
    arrays: List[Array] = field(default_factory=lambda: [unassigned_array()])

    @property
    def unassigned(self) -> Array:
        return self.arrays[0]

    def describe(self) -> str:
        return f"{self.name} in slot {self.slot}"


def parse_size(text: str) -> int:
    """Convert a size such as '146 GB' or '1.5MB' to bytes (powers of 1000)"""
    match = SIZE_RE.match(text)
    if not match:
        raise InvalidSize("not a size", text)

    value = Decimal(match.group(1))
    prefix = match.group(2)
    if prefix:
        if prefix not in SIZE_PREFIXES:
            raise InvalidSize(f"unknown size unit {prefix}B", text)
        value *= SIZE_BASE ** (SIZE_PREFIXES.index(prefix) + 1)
    return int(value)


def format_size(size: int) -> str:
    """Human readable size for messages, not meant to be parsed back"""
    if size < 10:
        return str(size)

    exponent = 0
    while exponent < len(SIZE_UNITS) - 1 and size >= SIZE_BASE ** (exponent + 1):
        exponent += 1
    value = (Decimal(size) / SIZE_BASE ** exponent).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
    if value < 10:
        return f"{value:.1f}{SIZE_UNITS[exponent]}"
    return f"{value:.0f}{SIZE_UNITS[exponent]}"


def _match(regex, text: str, what: str):
    match = regex.match(text)
    if not match:
        raise MalformedLine(f"not a {what} line", text)
    return match


def _to_int(match, group: int, text: str) -> int:
    value = match.group(group)
    if value is None:
        raise MissingField(f"field {group} missing", text)
    try:
        return int(value)
    except ValueError:
        raise MissingField(f"field {group} is not a number: {value!r}", text) from None


def parse_controller(text: str) -> Controller:
    match = _match(CONTROLLER_RE, text, "controller")
    return Controller(
        name=match.group(1),
        slot=_to_int(match, 2, text),
        type=match.group(3),
        serial_number=match.group(4),
    )


def parse_sep(text: str) -> StorageEnclosureProcessor:
    match = _match(SEP_RE, text, "storage enclosure processor")
    return StorageEnclosureProcessor(
        vendor_id=match.group(1),
        model=match.group(2),
        expander=_to_int(match, 3, text),
        wwid=match.group(4),
    )


def parse_array(text: str) -> Array:
    match = _match(ARRAY_RE, text, "array")
    return Array(
        id=match.group(1),
        type=match.group(2),
        unused_space=parse_size(match.group(3)),
    )


def parse_drive(text: str) -> Drive:
    """Parse a logicaldrive or physicaldrive line"""
    if text.startswith("logicaldrive"):
        match = _match(LOGICAL_DRIVE_RE, text, "logical drive")
        return Drive(
            id=match.group(1),
            size=parse_size(match.group(2)),
            raid_mode=match.group(3),
            status=match.group(4),
            physical=False,
        )
    if text.startswith("physicaldrive"):
        match = _match(PHYSICAL_DRIVE_RE, text, "physical drive")
        return Drive(
            id=match.group(1),
            port=match.group(2),
            box=_to_int(match, 3, text),
            bay=_to_int(match, 4, text),
            type=match.group(5),
            size=parse_size(match.group(6)),
            status=match.group(7),
            physical=True,
        )
    raise MalformedLine("cannot determine drive type", text)


@dataclass
class _ParseState:
    """Cursors of a single parse_report() pass"""
    controllers: List[Controller] = field(default_factory=list)
    controller: Optional[Controller] = None
    array: Optional[Array] = None

    def add_controller(self, controller: Controller):
        self.controllers.append(controller)
        self.controller = controller
        self.array = controller.unassigned

    def add_array(self, array: Array, text: str):
        if any(a.id == array.id for a in self.controller.arrays if a.assigned):
            raise MalformedLine(f"duplicate array {array.id}", text)
        self.controller.arrays.append(array)
        self.array = array


def _controller_line(state: _ParseState, text: str):
    controller = parse_controller(text)
    logger.debug("controller %s", controller.describe())
    state.add_controller(controller)


def _array_line(state: _ParseState, text: str):
    if state.controller is None:
        raise MalformedLine("array level line before any controller", text)

    if text.startswith("SEP"):
        if state.controller.sep is not None:
            raise MalformedLine("duplicate SEP", text)
        state.controller.sep = parse_sep(text)
        logger.debug("  SEP %s", state.controller.sep.describe())
    elif text == UNASSIGNED_ARRAY_TYPE:
        state.array = state.controller.unassigned
        logger.debug("  unassigned drives")
    else:
        array = parse_array(text)
        logger.debug("  array %s", array.describe())
        state.add_array(array, text)


def _drive_line(state: _ParseState, text: str):
    if state.array is None:
        raise MalformedLine("drive line before any controller", text)

    drive = parse_drive(text)
    logger.debug("    %s: %s", drive.describe(), drive.status)
    state.array.drives.append(drive)


LINE_HANDLERS = {
    CONTROLLER_DEPTH: _controller_line,
    ARRAY_DEPTH: _array_line,
    DRIVE_DEPTH: _drive_line,
}


def parse_report(text: str) -> List[Controller]:
    """Rebuild the controller/array/drive forest from hpacucli output.

    The nesting is given by the indentation alone, so every line is handed
    to the grammar of its depth and attached to the most recent parent.
    Raises a RaidReportError subclass carrying the 1-based line number.
    """
    state = _ParseState()

    for line_no, line in enumerate(text.splitlines(), start=1):
        if not line.strip():
            continue

        content = line.lstrip(" ")
        depth = len(line) - len(content)
        content = content.rstrip()

        handler = LINE_HANDLERS.get(depth)
        if handler is None:
            raise UnexpectedIndentation(depth, line, line_no)
        try:
            handler(state, content)
        except RaidReportError as e:
            if e.line_no is None:
                e.line_no = line_no
            raise

    return state.controllers


@dataclass
class Deviation:
    """A drive whose status is not OK, with the state it warrants"""
    controller: Controller
    array: Array
    drive: Drive
    state: int

    def message(self) -> str:
        return (f"controller '{self.controller.describe()}', array '{self.array.describe()}': "
                f"drive '{self.drive.describe()}' status is {self.drive.status}")


@dataclass
class HealthReport:
    """Container for the evaluated RAID status"""
    state: int = STATE_OK
    controllers: int = 0
    arrays: int = 0
    logical_drives: int = 0
    physical_drives: int = 0
    deviations: List[Deviation] = field(default_factory=list)


def drive_state(array: Array, drive: Drive) -> int:
    if drive.healthy:
        return STATE_OK
    # failures on disks that are not assigned are non-critical
    if not array.assigned:
        return STATE_WARNING
    # a predicted failure is not (yet) critical
    if drive.status == PREDICTIVE_FAILURE_STATUS:
        return STATE_WARNING
    return STATE_CRITICAL


def evaluate_health(controllers: List[Controller]) -> HealthReport:
    """Reduce every drive status of the forest to the worst Nagios state"""
    report = HealthReport(controllers=len(controllers))

    for controller in controllers:
        for array in controller.arrays:
            if array.assigned:
                report.arrays += 1
            for drive in array.drives:
                if drive.physical:
                    report.physical_drives += 1
                else:
                    report.logical_drives += 1

                state = drive_state(array, drive)
                if state == STATE_OK:
                    continue
                report.deviations.append(Deviation(controller, array, drive, state))
                report.state = max(report.state, state)

    return report


class RaidChecker:
    """Turns a parsed report into the plugin's status line"""

    def __init__(self, controllers: List[Controller]):
        self.controllers = controllers
        self.report = evaluate_health(controllers)

    def diagnostics(self) -> List[str]:
        return [deviation.message() for deviation in self.report.deviations]

    def build_perfdata(self) -> str:
        r = self.report
        return (f"| controllers={r.controllers} arrays={r.arrays} "
                f"logical_drives={r.logical_drives} physical_drives={r.physical_drives} "
                f"deviations={len(r.deviations)}")

    def build_long_output(self) -> List[str]:
        lines = ["--- Controllers ---"]
        for controller in self.controllers:
            lines.append(f"{controller.describe()} ({controller.type}, sn: {controller.serial_number})")
            if controller.sep:
                lines.append(f"  SEP: {controller.sep.describe()}")
            for array in controller.arrays:
                if not array.assigned and not array.drives:
                    continue
                if array.assigned:
                    lines.append(f"  Array {array.describe()} unused {format_size(array.unused_space)}")
                else:
                    lines.append(f"  Array {array.describe()}")
                for drive in array.drives:
                    lines.append(f"    {drive.describe()}: {drive.status}")
        return lines

    def summary(self) -> str:
        r = self.report
        drives = r.logical_drives + r.physical_drives
        if not r.deviations:
            if TERSE_OUTPUT:
                return f"{r.controllers} controller(s), {drives} drive(s) OK"
            return (f"All {r.logical_drives} logical and {r.physical_drives} physical drives OK "
                    f"on {', '.join(c.describe() for c in self.controllers)}")

        if TERSE_OUTPUT:
            failed = ", ".join(f"{d.drive.kind} {d.drive.id} {d.drive.status}" for d in r.deviations)
            return f"{len(r.deviations)} of {drives} drive(s) not OK: {failed}"
        return "; ".join(self.diagnostics())

    def evaluate_status(self) -> str:
        msg = f"RAID {STATE_NAMES[self.report.state]} (HP Smart Array) - {self.summary()}"
        if ENABLE_PERFDATA:
            msg += f" {self.build_perfdata()}"
        if ENABLE_LONG_OUTPUT:
            msg += "\n" + "\n".join(self.build_long_output())
        return msg


def setup_logging(log_level: str = 'WARNING') -> None:
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.WARNING),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr,
    )


def read_report(path: str) -> str:
    if path == "-":
        data = sys.stdin.buffer.read()
    else:
        with open(path, "rb") as f:
            data = f.read()
    return data.decode("utf-8")


def main():
    parser = argparse.ArgumentParser(
        description='Nagios plugin for HP Smart Array RAID monitoring from hpacucli output',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  hpacucli ctrl all show config | %(prog)s
  %(prog)s -f /var/tmp/hpacucli.out
"""
    )

    parser.add_argument('-f', '--file', default='-',
                        help='Read the hpacucli report from this file (default: stdin)')
    parser.add_argument('-d', '--debug', action='store_true', help='Log parsing details to stderr')
    parser.add_argument('-V', '--version', action='version', version=f'%(prog)s v{__version__}')

    args = parser.parse_args()
    setup_logging('DEBUG' if args.debug else LOG_LEVEL)

    if os.path.exists(NO_CHECK_FILE):
        print("RAID OK - Check skipped (maintenance mode)")
        sys.exit(STATE_OK)

    try:
        controllers = parse_report(read_report(args.file))
    except (RaidReportError, OSError, UnicodeDecodeError) as e:
        logger.debug("report rejected", exc_info=True)
        print(f"RAID UNKNOWN - Error: {e}")
        sys.exit(STATE_UNKNOWN)

    checker = RaidChecker(controllers)
    for line in checker.diagnostics():
        print(line, file=sys.stderr)
    print(checker.evaluate_status())
    sys.exit(checker.report.state)


if __name__ == '__main__':
    main()
