"""
Simple module that parses the macOS `pmset -g log` to get "screen on" time and battery drain since the last charge.

Note that this is an approximation and may change between versions of macOS.
"""
import io as _io
import logging as _logging
import re as _re
import subprocess as _subprocess
import collections.abc as _coll_types


from dataclasses import dataclass, field
from datetime import datetime, timedelta

from .config import ScreenTimeSettings

logger = _logging.getLogger(__name__)

_TIMESTAMP_PAT = _re.compile(r"\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2} [+-]\d{4}")
# tried in order, the first rule that matches wins
_BATTERY_PATS = (
    _re.compile(r"Charge:\s*(?P<charge>\d+)"),
    _re.compile(r"(?P<charge>\d+)%"),
)

_AC_MARKERS = ("Using AC", "AC Power")
_DARK_WAKE_MARKER = "DarkWake"
_WAKE_MARKER = "Wake from"
_SLEEP_MARKER = "Entering Sleep state due to"
_DISPLAY_ON_MARKER = "Display is turned on"
_DISPLAY_OFF_MARKER = "Display is turned off"

# a rise of more than this many points between two readings is treated as a charge
_CHARGE_JUMP_PERCENT = 5
# the window to use when no charge shows up in the log
_FALLBACK_LOOKBACK = timedelta(hours=24)
_FULL_CHARGE = 100
# anything shorter than this is almost certainly not a real log
_MIN_LOG_CHARS = 200

_SECONDS_IN_HOUR = 3600
_SECONDS_IN_MINUTE = 60


def ts_to_str(ts: datetime):
    return ts.strftime("%Y-%m-%d %H:%M:%S")


def parse_ts(ts_text: str) -> datetime:
    """Parses the `pmset` log formatted timestamp into a local `datetime`"""
    return datetime.strptime(ts_text, "%Y-%m-%d %H:%M:%S %z")


def now_local() -> datetime:
    return datetime.now().astimezone()


def extract_timestamp(line: str) -> datetime | None:
    match = _TIMESTAMP_PAT.search(line)
    if not match:
        return None
    try:
        return parse_ts(match.group())
    except ValueError:
        # looks like a timestamp but isn't a real date (e.g. month 13)
        return None


def extract_battery_level(line: str) -> int | None:
    for pat in _BATTERY_PATS:
        match = pat.search(line)
        if match:
            return int(match["charge"])
    return None


@dataclass
class LogLine:
    ts: datetime
    battery: int | None
    text: str

    def __str__(self):
        battery = "--" if self.battery is None else f"{self.battery}%"
        return f"{ts_to_str(self.ts)}, {battery}, {self.text.strip()}"


@dataclass
class Interval:
    """A span of time in a device state (screen on or asleep).

    `end` and `battery_end` stay `None` while the interval is open.
    """

    start: datetime
    battery_start: int
    end: datetime | None = None
    battery_end: int | None = None

    @property
    def is_open(self) -> bool:
        return self.end is None

    def close(self, ts: datetime, battery: int):
        self.end = ts
        self.battery_end = battery

    def duration_secs(self, now: datetime) -> float:
        end = now if self.end is None else self.end
        return (end - self.start).total_seconds()

    @property
    def drain(self) -> int | None:
        if self.battery_end is None:
            return None
        return self.battery_start - self.battery_end


@dataclass
class ChargeEvent:
    ts: datetime
    charge: int

    def __str__(self):
        return f"{ts_to_str(self.ts)}, {self.charge}%"


@dataclass
class LogScan:
    screen_intervals: list[Interval] = field(default_factory=list)
    sleep_intervals: list[Interval] = field(default_factory=list)
    charge_event: ChargeEvent | None = None


def parse_log(log_lines: _coll_types.Iterable[str]) -> list[LogLine]:
    """Extracts the timestamped lines of the log, lines without a timestamp are dropped."""
    records = []
    for line in log_lines:
        ts = extract_timestamp(line)
        if ts is None:
            continue
        records.append(LogLine(ts, extract_battery_level(line), line))
    return records


class IntervalTracker(object):
    """Running state of a single forward scan over the log lines."""

    __battery: int
    __prev_battery: int
    __in_dark_wake: bool
    __open_screen: Interval | None
    __open_sleep: Interval | None
    __scan: LogScan

    def __init__(self):
        self.__battery = _FULL_CHARGE
        self.__prev_battery = _FULL_CHARGE
        self.__in_dark_wake = False
        self.__open_screen = None
        self.__open_sleep = None
        self.__scan = LogScan()

    @property
    def battery(self) -> int:
        return self.__battery

    @property
    def in_dark_wake(self) -> bool:
        return self.__in_dark_wake

    @property
    def scan(self) -> LogScan:
        return self.__scan

    def add_line(self, line: LogLine):
        self.__update_battery(line)
        self.__update_charge(line)
        self.__update_dark_wake(line)
        self.__update_screen(line)
        self.__update_sleep(line)

    def __record_charge(self, ts: datetime, charge: int):
        self.__scan.charge_event = ChargeEvent(ts, charge)

    def __update_battery(self, line: LogLine):
        if line.battery is None:
            return
        if line.battery > self.__prev_battery + _CHARGE_JUMP_PERCENT:
            logger.debug("Detected charge at %s to %d%%", line.ts, line.battery)
            self.__record_charge(line.ts, line.battery)
        self.__prev_battery = line.battery
        self.__battery = line.battery

    def __update_charge(self, line: LogLine):
        if any(marker in line.text for marker in _AC_MARKERS):
            logger.debug("Detected AC connection at %s", line.ts)
            self.__record_charge(line.ts, self.__battery)

    def __update_dark_wake(self, line: LogLine):
        if _DARK_WAKE_MARKER in line.text:
            self.__in_dark_wake = True
        elif _WAKE_MARKER in line.text:
            self.__in_dark_wake = False

    def __update_screen(self, line: LogLine):
        if _DISPLAY_ON_MARKER in line.text and not self.__in_dark_wake:
            # an earlier interval still open is left open
            self.__open_screen = Interval(line.ts, self.__battery)
            self.__scan.screen_intervals.append(self.__open_screen)
            logger.debug("Display ON at %s, battery: %d%%", line.ts, self.__battery)
        elif _DISPLAY_OFF_MARKER in line.text and self.__open_screen is not None:
            self.__open_screen.close(line.ts, self.__battery)
            self.__open_screen = None
            logger.debug("Display OFF at %s, battery: %d%%", line.ts, self.__battery)

    def __update_sleep(self, line: LogLine):
        if _WAKE_MARKER in line.text and _DARK_WAKE_MARKER not in line.text:
            if self.__open_sleep is not None:
                self.__open_sleep.close(line.ts, self.__battery)
                self.__open_sleep = None
        elif _SLEEP_MARKER in line.text:
            self.__open_sleep = Interval(line.ts, self.__battery)
            self.__scan.sleep_intervals.append(self.__open_sleep)


def scan_log(log_lines: _coll_types.Iterable[LogLine]) -> LogScan:
    tracker = IntervalTracker()
    for line in log_lines:
        tracker.add_line(line)
    scan = tracker.scan
    logger.debug(
        "Found %d screen intervals, %d sleep intervals",
        len(scan.screen_intervals),
        len(scan.sleep_intervals),
    )
    return scan


def format_rate(rate: float) -> str:
    return f"{rate:.1f}%/h"


def _clock_str(ts: datetime) -> str:
    hour = ts.hour % 12 or 12
    meridiem = "AM" if ts.hour < 12 else "PM"
    return f"{hour}:{ts.minute:02} {meridiem}"


def format_charge_time(ts: datetime, now: datetime) -> str:
    """Formats the charge time relative to `now`, e.g. `Today, 3:05 PM` or `Jan 5, 3:05 PM`."""
    ts = ts.astimezone(now.tzinfo)
    days_ago = (now.date() - ts.date()).days
    if days_ago == 0:
        return f"Today, {_clock_str(ts)}"
    if days_ago == 1:
        return f"Yesterday, {_clock_str(ts)}"
    return f"{ts.strftime('%b')} {ts.day}, {_clock_str(ts)}"


@dataclass
class SummaryResult:
    """Screen time and battery usage since the last charge."""

    screen_on_hours: int
    screen_on_minutes: int
    screen_battery_percent_per_hour: float
    sleep_battery_percent_per_hour: float
    last_charge_ts: datetime
    last_charge_level: int

    @classmethod
    def placeholder(cls, now: datetime | None = None) -> "SummaryResult":
        return cls(0, 0, 0.0, 0.0, now or now_local(), _FULL_CHARGE)

    @property
    def title(self) -> str:
        return f"{self.screen_on_hours}h {self.screen_on_minutes:02}m"

    def pretty_str(self, now: datetime | None = None) -> str:
        now = now or now_local()
        buf = _io.StringIO()
        print(f"Screen on    {self.title}", file=buf)
        print(f"Screen drain {format_rate(self.screen_battery_percent_per_hour)}", file=buf)
        print(f"Sleep drain  {format_rate(self.sleep_battery_percent_per_hour)}", file=buf)
        print(
            f"Last charge  {format_charge_time(self.last_charge_ts, now)}",
            f"· {self.last_charge_level}%",
            file=buf,
        )
        return buf.getvalue().strip()


_ICON_TEXT = "⏱"


def app_title(result: SummaryResult) -> str:
    return f"{_ICON_TEXT} {result.title}"


def summary_lines(result: SummaryResult, now: datetime) -> list[str]:
    """The text of the summary menu items."""
    return [
        f"Screen {format_rate(result.screen_battery_percent_per_hour)}",
        f"Sleep  {format_rate(result.sleep_battery_percent_per_hour)}",
        f"Last charge {format_charge_time(result.last_charge_ts, now)} · {result.last_charge_level}%",
    ]


def _usage(
    intervals: _coll_types.Iterable[Interval], since: datetime, now: datetime
) -> tuple[float, float]:
    """Sums the time and battery drain of the intervals that started since the given time."""
    total_secs = 0.0
    total_drain = 0.0
    for interval in intervals:
        if interval.start < since:
            continue
        total_secs += interval.duration_secs(now)
        if interval.drain is not None:
            total_drain += interval.drain
    return total_secs, total_drain


def _rate(drain: float, secs: float) -> float:
    hours = secs / _SECONDS_IN_HOUR
    return drain / hours if hours > 0 else 0.0


def calculate_summary(scan: LogScan, now: datetime) -> SummaryResult:
    if scan.charge_event is not None:
        charge_ts = scan.charge_event.ts
        charge_level = scan.charge_event.charge
    else:
        charge_ts = now - _FALLBACK_LOOKBACK
        charge_level = _FULL_CHARGE
    logger.debug("Using charge time: %s", charge_ts)

    screen_secs, screen_drain = _usage(scan.screen_intervals, charge_ts, now)
    sleep_secs, sleep_drain = _usage(scan.sleep_intervals, charge_ts, now)
    logger.debug("Screen on %.0fs with %.0f%% drain", screen_secs, screen_drain)

    # an interval opened after `now` must not show as negative screen time
    hours, rem_secs = divmod(max(int(screen_secs), 0), _SECONDS_IN_HOUR)
    return SummaryResult(
        screen_on_hours=hours,
        screen_on_minutes=rem_secs // _SECONDS_IN_MINUTE,
        screen_battery_percent_per_hour=_rate(screen_drain, screen_secs),
        sleep_battery_percent_per_hour=_rate(sleep_drain, sleep_secs),
        last_charge_ts=charge_ts,
        last_charge_level=charge_level,
    )


def analyze(raw_log: str, now: datetime | None = None) -> SummaryResult:
    """Computes the screen time and battery drain since the last charge from raw `pmset -g log` text.

    Never raises for malformed input, an empty log gives a zeroed summary over the last 24 hours.
    """
    if now is None:
        now = now_local()
    scan = scan_log(parse_log(raw_log.splitlines()))
    return calculate_summary(scan, now)


_PMSET_LOG_ARGS = ("pmset", "-g", "log")
_TAIL_LINES = ScreenTimeSettings().tail_lines


def pmset_log_text(tail_lines: int = _TAIL_LINES) -> str:
    """Runs `pmset -g log` keeping only the last `tail_lines` lines, returns an empty string on failure."""
    tail_args = ("tail", "-n", str(tail_lines))
    try:
        pmset_proc = _subprocess.Popen(_PMSET_LOG_ARGS, stdout=_subprocess.PIPE)
        with pmset_proc:
            tail_proc = _subprocess.Popen(
                tail_args,
                encoding="UTF-8",
                errors="replace",
                stdin=pmset_proc.stdout,
                stdout=_subprocess.PIPE,
            )
            # let `pmset` see a broken pipe if `tail` exits
            pmset_proc.stdout.close()
            with tail_proc:
                output, _ = tail_proc.communicate()
    except OSError as e:
        logger.warning("Could not run pmset: %s", e)
        return ""

    logger.debug("Got %d characters of pmset log", len(output))
    if len(output) < _MIN_LOG_CHARS:
        logger.warning(
            "pmset log output too short (%d chars), reading the power log may not be permitted",
            len(output),
        )
    return output


def screen_time_summary(tail_lines: int = _TAIL_LINES) -> SummaryResult:
    result = analyze(pmset_log_text(tail_lines))
    logger.info(
        "Screen on %s, screen %s, sleep %s, last charge %s at %d%%",
        result.title,
        format_rate(result.screen_battery_percent_per_hour),
        format_rate(result.sleep_battery_percent_per_hour),
        ts_to_str(result.last_charge_ts),
        result.last_charge_level,
    )
    return result
