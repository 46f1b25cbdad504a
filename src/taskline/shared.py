import inspect
import textwrap
import shutil
import re
import os
from datetime import date, datetime, time
from pathlib import Path
from dateutil.relativedelta import relativedelta

from taskline.taskline_env import TasklineEnvironment

# ─── Marker glyphs ─────────────────────────────────────────────────
DONE = "✅"
CANCELLED = "❌"
DUE = "📅"
SCHEDULED = "⏳"
START = "🛫"
CREATED = "➕"
REPEAT = "🔁"

DURATION_LABEL = "duration::"
TIME_LABEL = "time::"

DATE_MARKERS = {
    "done": DONE,
    "cancelled": CANCELLED,
    "due": DUE,
    "scheduled": SCHEDULED,
    "start": START,
    "created": CREATED,
}
MARKER_NAMES = {v: k for k, v in DATE_MARKERS.items()}

# markers whose dates move when a repeating task advances, in anchor order
ANCHOR_MARKERS = (DUE, SCHEDULED, START)

PRIORITY_GLYPHS = {
    "🔺": "highest",
    "⏫": "high",
    "🔼": "medium",
    "🔽": "low",
    "⏬": "lowest",
}

UNITS = ("day", "week", "month", "year")

ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
HHMM_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


# ─── Dates ─────────────────────────────────────────────────


def parse_iso_date(text: str) -> date | None:
    """
    Return the calendar date for 'YYYY-MM-DD' or 'YYYY/MM/DD', or None when
    the text is not a valid date. Never raises.
    """
    if not text:
        return None
    s = text.strip().replace("/", "-")
    if not ISO_DATE_RE.match(s):
        return None
    try:
        return datetime.strptime(s, "%Y-%m-%d").date()
    except ValueError:
        return None


def fmt_date(d: date) -> str:
    return d.strftime("%Y-%m-%d")


def add_interval(d: date, interval: int, unit: str) -> date:
    """
    Advance d by interval units. Month and year steps clamp to the last day
    of the resulting month, e.g. 2024-01-31 + 1 month -> 2024-02-29.

    Raises:
        ValueError: for an unknown unit or a result outside years 1-9999.
    """
    if unit not in UNITS:
        raise ValueError(f"unknown unit {unit!r}, expected one of {UNITS}")
    try:
        return d + relativedelta(**{f"{unit}s": interval})
    except (OverflowError, ValueError) as e:
        raise ValueError(f"{fmt_date(d)} + {interval} {unit}s is out of range") from e


def normalize_today(value: str | date) -> str:
    """
    Validate the caller-supplied 'today' and return it as 'YYYY-MM-DD'.
    Raises:
        ValueError: if value is not a valid calendar date in that format.
    """
    if isinstance(value, datetime):
        return fmt_date(value.date())
    if isinstance(value, date):
        return fmt_date(value)
    if not isinstance(value, str) or not ISO_DATE_RE.match(value):
        raise ValueError(f"today must be a YYYY-MM-DD date, got {value!r}")
    if parse_iso_date(value) is None:
        raise ValueError(f"today is not a valid calendar date: {value!r}")
    return value


def normalize_now(value: str | time | datetime) -> str:
    """
    Validate the caller-supplied 'now' and return it as 24-hour 'HH:MM'.
    Raises:
        ValueError: if value is not a valid time in that format.
    """
    if isinstance(value, (time, datetime)):
        return value.strftime("%H:%M")
    if not isinstance(value, str) or not HHMM_RE.match(value):
        raise ValueError(f"now must be a 24-hour HH:MM time, got {value!r}")
    return value


# ─── Logging ─────────────────────────────────────────────────


def _get_runtime_home() -> Path:
    override = os.environ.get("TASKLINE_HOME")
    if override:
        return Path(override).expanduser()
    return TasklineEnvironment().home


def _resolve_log_file_path(file_path: str | Path) -> Path:
    path = Path(file_path)
    if path.is_absolute():
        return path
    return _get_runtime_home() / path


def _default_log_relative_path(kind: str) -> Path:
    """Return logs/log_<YYMMDD>.md style paths under the runtime home."""
    suffix = datetime.now().strftime("%y%m%d")
    return Path("logs") / f"{kind}_{suffix}.md"


def _caller_name(frame) -> str:
    func_name = frame.f_code.co_name
    if "self" in frame.f_locals:  # instance method
        return f"{frame.f_locals['self'].__class__.__name__}.{func_name}"
    if "cls" in frame.f_locals:  # classmethod
        return f"{frame.f_locals['cls'].__name__}.{func_name}"
    return func_name


def _write_msg(
    kind: str,
    caller_name: str,
    msg: str,
    file_path: str | Path | None,
    print_output: bool,
):
    lines = [
        f"- {datetime.now().strftime('%H:%M:%S')} {kind}_msg ({caller_name}):  ",
    ]
    lines.extend(
        [
            f"\n{x}"
            for x in textwrap.wrap(
                msg.strip(),
                width=max(shutil.get_terminal_size()[0] - 6, 20),
                initial_indent="   ",
                subsequent_indent="   ",
            )
        ]
    )
    lines.append("\n\n")

    # Best-effort file logging; fall back to console when the file is unwritable.
    if file_path is None:
        file_path = _default_log_relative_path(kind)
    log_path = _resolve_log_file_path(file_path)

    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        with open(log_path, "a", encoding="utf-8") as f:
            f.writelines(lines)
    except OSError:
        print_output = True

    if print_output:
        print("".join(lines))


def log_msg(
    msg: str,
    file_path: str | Path | None = None,
    print_output: bool = False,
):
    """
    Log a message and save it directly to a file.

    Args:
        msg (str): The message to log.
        file_path (str | Path | None, optional): Overrides the default path when
            provided. Defaults to ``None`` which writes to ``logs/log_<YYMMDD>.md``.
        print_output (bool, optional): If True, also print to console.
    """
    caller_name = _caller_name(inspect.stack()[1].frame)
    _write_msg("log", caller_name, msg, file_path, print_output)


def bug_msg(
    msg: str,
    file_path: str | Path | None = None,
    print_output: bool = False,
):
    """
    Companion to log_msg for temporary debugging; writes to
    ``logs/bug_<YYMMDD>.md`` by default.
    """
    caller_name = _caller_name(inspect.stack()[1].frame)
    _write_msg("bug", caller_name, msg, file_path, print_output)
