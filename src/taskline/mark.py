from dataclasses import dataclass
from datetime import date, time
from typing import Optional

from .line import (
    CheckboxState,
    DurationAnnotation,
    RepeatAnnotation,
    TaskLine,
    TimeLogAnnotation,
    Text,
    find_date,
    parse_recurrence,
)
from .shared import (
    ANCHOR_MARKERS,
    DONE,
    add_interval,
    fmt_date,
    normalize_now,
    normalize_today,
    parse_iso_date,
)


@dataclass
class TaskCompletionResult:
    completed_line: str
    next_task_line: Optional[str] = None  # only for repeating tasks


def toggle_to_done(line: str, today: str | date, now: str | time) -> str:
    """
    Rewrite an open task line as completed on `today` at `now`.

    1. bare "duration::x" annotations that start a word are parenthesized
    2. "(time::HH:MM)" goes before the first (duration::x), else a bare
       duration::x, else the repeat marker, else at the end of the line; a
       line that already logged a time has that value replaced instead
    3. the checkbox becomes [x], synthesized as "- [x] " when missing
    4. the first old "✅ date" is dropped wherever it stands on the line, not
       only at its end, and "✅ today" closes the line
    """
    today = normalize_today(today)
    now = normalize_now(now)
    task = TaskLine(line)

    for duration in task.find_all(DurationAnnotation):
        if not duration.enclosed and task.starts_word(duration):
            duration.enclose()

    logged = task.find(TimeLogAnnotation)
    if logged is not None:
        logged.set(now)
    else:
        stamp = TimeLogAnnotation.stamp(now)
        anchor = (
            task.find(DurationAnnotation, lambda d: d.enclosed)
            or task.find(DurationAnnotation)
            or task.find(RepeatAnnotation)
        )
        if anchor is not None:
            task.insert_before(anchor, stamp, Text(" "))
        else:
            task.append(stamp)

    task.set_checkbox(CheckboxState.DONE)

    done = task.date(DONE)
    if done is not None:
        task.remove(done)
    task.rstrip()
    return f"{task.render()} {DONE} {today}"


def find_base_date(line: str, when_done: bool, today: str | date) -> str:
    """
    The date the next occurrence is counted from: today for "when done"
    repeats, otherwise the first of due, scheduled and start found on the
    line, falling back to today.
    """
    today = normalize_today(today)
    if when_done:
        return today
    for marker in ANCHOR_MARKERS:
        found = find_date(line, marker)
        if found:
            return found
    return today


def generate_next_task(line: str, base_date: str | date) -> str:
    """
    Return the next open occurrence of a repeating task line.

    The checkbox is reopened, the done date and any logged time are dropped
    and every due/scheduled/start date present moves to base_date plus the
    repeat interval. A line without a usable repeat directive, or one whose
    next date would fall past 9999-12-31, comes back reopened and cleaned
    but otherwise unchanged.
    """
    base = parse_iso_date(normalize_today(base_date))
    task = TaskLine(line)

    task.set_checkbox(CheckboxState.OPEN)
    done = task.date(DONE)
    if done is not None:
        task.remove(done)
    for logged in task.find_all(TimeLogAnnotation):
        task.remove(logged)

    rec = task.recurrence
    if rec is None:
        return task.render().rstrip()

    try:
        next_date = add_interval(base, rec.interval, rec.unit)
    except ValueError:
        # past the end of the calendar: keep the dates as they are
        return task.render().rstrip()
    for marker in ANCHOR_MARKERS:
        annotation = task.date(marker)
        if annotation is not None:
            annotation.set(next_date)
    return task.render().rstrip()


def mark_task_done(
    line: str, today: str | date, now: str | time
) -> TaskCompletionResult:
    """
    Complete `line` and, when it repeats, derive its next occurrence.

    Both the recurrence and the next line come from the original line, never
    from the completed one. The caller writes completed_line in place of the
    original and inserts next_task_line, when present, as a new line.

    Raises:
        ValueError: if today is not 'YYYY-MM-DD' or now is not 'HH:MM'.
    """
    today = normalize_today(today)
    now = normalize_now(now)

    completed_line = toggle_to_done(line, today, now)
    rec = parse_recurrence(line)
    if rec is None:
        return TaskCompletionResult(completed_line)

    base = find_base_date(line, rec.when_done, today)
    return TaskCompletionResult(completed_line, generate_next_task(line, base))


def next_due(line: str, today: str | date) -> Optional[str]:
    """Date the next occurrence would carry, or None for a one-off task."""
    rec = parse_recurrence(line)
    if rec is None:
        return None
    base = parse_iso_date(find_base_date(line, rec.when_done, today))
    try:
        return fmt_date(add_interval(base, rec.interval, rec.unit))
    except ValueError:
        return None
