import re
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Callable, Optional, Union

from .shared import (
    DATE_MARKERS,
    MARKER_NAMES,
    PRIORITY_GLYPHS,
    REPEAT,
    DURATION_LABEL,
    TIME_LABEL,
    parse_iso_date,
    fmt_date,
)

# A task line is read into an ordered list of segments: plain Text spans and
# annotation slots. Slots nobody touches render back to their exact source
# text, so everything outside a rewritten slot survives byte for byte.


class CheckboxState(Enum):
    OPEN = " "
    DONE = "x"
    CANCELLED = "-"
    IN_PROGRESS = "/"

    @classmethod
    def from_glyph(cls, glyph: str) -> "CheckboxState":
        if glyph == "X":
            return cls.DONE
        return cls(glyph)


@dataclass(frozen=True)
class RecurrenceInfo:
    interval: int
    unit: str  # day | week | month | year
    when_done: bool = False


# ─── Segments ─────────────────────────────────────────────────
# eq=False: segments are located by identity, two identical
# annotations on one line are still different slots.


@dataclass(eq=False)
class Text:
    text: str

    def render(self) -> str:
        return self.text


@dataclass(eq=False)
class Checkbox:
    prefix: str  # indentation, bullet and spacing before "["
    glyph: str

    @property
    def state(self) -> CheckboxState:
        return CheckboxState.from_glyph(self.glyph)

    def render(self) -> str:
        return f"{self.prefix}[{self.glyph}]"


@dataclass(eq=False)
class DateAnnotation:
    marker: str
    value: date
    raw: str
    variant: str = ""  # emoji presentation selector typed after the marker

    @property
    def name(self) -> str:
        return MARKER_NAMES[self.marker]

    @property
    def iso(self) -> str:
        return fmt_date(self.value)

    def set(self, value: date):
        self.value = value
        self.raw = f"{self.marker}{self.variant} {fmt_date(value)}"

    def render(self) -> str:
        return self.raw


@dataclass(eq=False)
class DurationAnnotation:
    value: str
    raw: str
    enclosed: bool = False

    def enclose(self):
        if not self.enclosed:
            self.raw = f"({self.raw})"
            self.enclosed = True

    def render(self) -> str:
        return self.raw


@dataclass(eq=False)
class TimeLogAnnotation:
    value: str
    raw: str

    @classmethod
    def stamp(cls, hhmm: str) -> "TimeLogAnnotation":
        return cls(hhmm, f"({TIME_LABEL}{hhmm})")

    def set(self, hhmm: str):
        self.value = hhmm
        self.raw = f"({TIME_LABEL}{hhmm})"

    def render(self) -> str:
        return self.raw


@dataclass(eq=False)
class RepeatAnnotation:
    raw: str
    info: Optional[RecurrenceInfo] = None

    def render(self) -> str:
        return self.raw


Segment = Union[
    Text,
    Checkbox,
    DateAnnotation,
    DurationAnnotation,
    TimeLogAnnotation,
    RepeatAnnotation,
]

# ─── Patterns ─────────────────────────────────────────────────

CHECKBOX_RE = re.compile(r"^(?P<prefix>\s*[-*+]\s*)\[(?P<glyph>[ xX\-/])\]")

# what is left of a list item that has no usable checkbox: "- ", "- [?] ", "[] "
LOOSE_PREFIX_RE = re.compile(
    r"^(?P<indent>\s*)(?:(?P<bullet>[-*+])(?=\s|\[|$)\s*)?(?:\[[^\]]?\]\s*)?"
)

_MARKERS = "|".join(re.escape(m) for m in DATE_MARKERS.values())
_DUR = re.escape(DURATION_LABEL)
_TIME = re.escape(TIME_LABEL)

TOKEN_RE = re.compile(
    rf"""
    (?P<date>(?P<date_marker>{_MARKERS})(?P<date_variant>\ufe0f?)\s*
        (?P<date_value>\d{{4}}(?P<sep>[-/])\d{{2}}(?P=sep)\d{{2}})(?!\d))
    |(?P<pduration>\({_DUR}(?P<pduration_value>[^)]+)\))
    |(?P<bduration>\[{_DUR}(?P<bduration_value>[^\]]+)\])
    |(?P<duration>{_DUR}(?P<duration_value>[^\s()\[\]]+))
    |(?P<ptime>\({_TIME}\s*(?P<ptime_value>[^)]*)\))
    |(?P<btime>\[{_TIME}\s*(?P<btime_value>[^\]]*)\])
    |(?P<repeat>{re.escape(REPEAT)}
        (?i:\s*every\s+(?:(?P<interval>\d+)\s*)?
            (?P<unit>day|week|month|year)s?(?![a-z])
            (?:\s*(?P<when_done>when\s+done)(?![a-z]))?)?)
    """,
    re.VERBOSE,
)

TAG_RE = re.compile(r"(?<!\S)#(?P<tag>[^\s#]+)")

# schedule text as typed: everything after the repeat marker up to the next
# date marker or inline field
_STOP = "".join(DATE_MARKERS.values())
REPEAT_TEXT_RE = re.compile(rf"{re.escape(REPEAT)}\s*([^\n{_STOP}(\[]*)")


def _segment_for(m: re.Match) -> Optional[Segment]:
    """
    Build the annotation slot for a TOKEN_RE match, or None when the match
    is not a valid annotation (e.g. a date that is not on the calendar).
    """
    raw = m.group(0)
    kind = m.lastgroup
    if kind == "date":
        value = parse_iso_date(m["date_value"])
        if value is None:
            return None
        return DateAnnotation(m["date_marker"], value, raw, m["date_variant"])
    if kind in ("pduration", "bduration"):
        return DurationAnnotation(m[f"{kind}_value"].strip(), raw, enclosed=True)
    if kind == "duration":
        return DurationAnnotation(m["duration_value"], raw)
    if kind in ("ptime", "btime"):
        return TimeLogAnnotation(m[f"{kind}_value"].strip(), raw)
    if kind == "repeat":
        info = None
        if m["unit"]:
            interval = int(m["interval"]) if m["interval"] else 1
            if interval >= 1:
                info = RecurrenceInfo(
                    interval=interval,
                    unit=m["unit"].lower(),
                    when_done=bool(m["when_done"]),
                )
        return RepeatAnnotation(raw, info)
    return None


def tokenize(line: str) -> list[Segment]:
    segments: list[Segment] = []
    pos = 0
    m = CHECKBOX_RE.match(line)
    if m:
        segments.append(Checkbox(m["prefix"], m["glyph"]))
        pos = m.end()
    for m in TOKEN_RE.finditer(line, pos):
        segment = _segment_for(m)
        if segment is None:
            continue
        if m.start() > pos:
            segments.append(Text(line[pos : m.start()]))
        segments.append(segment)
        pos = m.end()
    if pos < len(line):
        segments.append(Text(line[pos:]))
    return segments


class TaskLine:
    """
    Structured, editable view of a single task line.

    Lookups return the first slot of a kind; edits work on slots in place and
    `render()` serializes the line once at the end.
    """

    def __init__(self, raw: str):
        self.raw = raw
        self.segments: list[Segment] = tokenize(raw)

    def __str__(self) -> str:
        return self.render()

    def render(self) -> str:
        return "".join(segment.render() for segment in self.segments)

    # ---- lookups ----

    def find_all(self, kind: type, where: Callable | None = None) -> list:
        return [
            s
            for s in self.segments
            if isinstance(s, kind) and (where is None or where(s))
        ]

    def find(self, kind: type, where: Callable | None = None):
        found = self.find_all(kind, where)
        return found[0] if found else None

    @property
    def checkbox(self) -> Optional[Checkbox]:
        if self.segments and isinstance(self.segments[0], Checkbox):
            return self.segments[0]
        return None

    def date(self, marker: str) -> Optional[DateAnnotation]:
        return self.find(DateAnnotation, lambda a: a.marker == marker)

    @property
    def recurrence(self) -> Optional[RecurrenceInfo]:
        repeat = self.find(RepeatAnnotation, lambda a: a.info is not None)
        return repeat.info if repeat else None

    def starts_word(self, segment: Segment) -> bool:
        """True when segment opens the line or follows whitespace."""
        i = self._index(segment)
        if i == 0:
            return True
        before = self.segments[i - 1]
        if not isinstance(before, Text):
            return False
        return before.text[-1:].isspace()

    # ---- edits ----

    def _index(self, segment: Segment) -> int:
        for i, s in enumerate(self.segments):
            if s is segment:
                return i
        raise ValueError(f"{segment!r} is not part of this line")

    def insert_before(self, segment: Segment, *new: Segment):
        i = self._index(segment)
        self.segments[i:i] = list(new)

    def append(self, segment: Segment):
        """Add segment at the end, one space after the existing content."""
        self.rstrip()
        if self.segments:
            self.segments.append(Text(" "))
        self.segments.append(segment)

    def remove(self, segment: Segment):
        """Drop an annotation slot together with the whitespace before it."""
        i = self._index(segment)
        del self.segments[i]
        if i > 0 and isinstance(self.segments[i - 1], Text):
            before = self.segments[i - 1]
            before.text = before.text.rstrip()
            if not before.text:
                del self.segments[i - 1]
                i -= 1
        if i == 0:
            if self.segments and isinstance(self.segments[0], Text):
                self.segments[0].text = self.segments[0].text.lstrip()
                if not self.segments[0].text:
                    del self.segments[0]
            return
        if i < len(self.segments):
            left = self.segments[i - 1].render()
            right = self.segments[i].render()
            if left and right and not left[-1].isspace() and not right[0].isspace():
                # keep the neighbouring words apart
                self.segments.insert(i, Text(" "))

    def rstrip(self):
        while self.segments and isinstance(self.segments[-1], Text):
            last = self.segments[-1]
            last.text = last.text.rstrip()
            if last.text:
                break
            self.segments.pop()

    def set_checkbox(self, state: CheckboxState):
        """
        Set the checkbox state, synthesizing a "- [ ] " style prefix when the
        line has none. A bare bullet or a malformed bracket token such as
        "[?]" is replaced; indentation and the bullet character are kept.
        """
        box = self.checkbox
        if box is not None:
            box.glyph = state.value
            return
        indent, bullet = "", "-"
        if self.segments and isinstance(self.segments[0], Text):
            first = self.segments[0]
            m = LOOSE_PREFIX_RE.match(first.text)
            indent = m["indent"]
            bullet = m["bullet"] or "-"
            first.text = first.text[m.end() :]
            if not first.text:
                del self.segments[0]
        self.segments.insert(0, Checkbox(f"{indent}{bullet} ", state.value))
        if len(self.segments) > 1:
            self.segments.insert(1, Text(" "))


# ─── Read-only helpers ─────────────────────────────────────────────────


def find_date(line: str, marker: str) -> Optional[str]:
    """
    Return the date that follows marker in line as 'YYYY-MM-DD', or None.
    'YYYY/MM/DD' is accepted and normalized; impossible dates count as absent.
    """
    annotation = TaskLine(line).date(marker)
    return annotation.iso if annotation else None


def parse_recurrence(line: str) -> Optional[RecurrenceInfo]:
    """
    Decode a repeat directive such as "🔁 every 2 weeks when done".
    A repeat marker without a recognizable schedule is not a recurrence.
    """
    return TaskLine(line).recurrence


def is_task_line(line: str) -> bool:
    return CHECKBOX_RE.match(line) is not None


@dataclass
class TaskInfo:
    status: CheckboxState
    title: str
    tags: list[str] = field(default_factory=list)
    priority: Optional[str] = None
    dates: dict[str, str] = field(default_factory=dict)
    recurrence: str = ""
    duration: Optional[str] = None
    time: Optional[str] = None


def parse_task_line(line: str) -> Optional[TaskInfo]:
    """
    Read a task line into a TaskInfo, or None when line is not a task.

    The title is the free text of the line with the checkbox, annotations,
    priority glyphs and tags removed.
    """
    task = TaskLine(line)
    box = task.checkbox
    if box is None:
        return None

    dates: dict[str, str] = {}
    for annotation in task.find_all(DateAnnotation):
        dates.setdefault(annotation.name, annotation.iso)

    text = "".join(s.text for s in task.find_all(Text))
    tags = list(dict.fromkeys(TAG_RE.findall(text)))

    priority = None
    for glyph, name in PRIORITY_GLYPHS.items():
        if glyph in text:
            priority = name
            break

    title = TAG_RE.sub("", text)
    for glyph in PRIORITY_GLYPHS:
        title = title.replace(glyph, "")
    title = " ".join(title.split())

    recurrence = ""
    m = REPEAT_TEXT_RE.search(line)
    if m:
        recurrence = m.group(1).strip()

    duration = task.find(DurationAnnotation)
    logged = task.find(TimeLogAnnotation)
    return TaskInfo(
        status=box.state,
        title=title,
        tags=tags,
        priority=priority,
        dates=dates,
        recurrence=recurrence,
        duration=duration.value if duration else None,
        time=logged.value if logged else None,
    )


def set_field(line: str, key: str, value: str) -> str:
    """
    Update the value of an inline field "(key:: value)" or "[key:: value]",
    keeping its brackets, or append "(key:: value)" when the line has none.
    """
    pattern = re.compile(
        rf"(?P<head>[(\[]\s*{re.escape(key)}::\s*)[^)\]]*(?P<tail>[)\]])"
    )
    if pattern.search(line):
        return pattern.sub(
            lambda m: f"{m['head']}{value}{m['tail']}", line, count=1
        )
    return f"{line.rstrip()} ({key}:: {value})"
