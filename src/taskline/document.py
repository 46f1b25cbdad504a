from datetime import date, time
from pathlib import Path
from typing import Iterable, Iterator, Tuple

from .line import TaskInfo, parse_task_line, set_field
from .mark import TaskCompletionResult, mark_task_done
from .shared import log_msg

NEXT_LINE_POSITIONS = ("below", "above")


def iter_tasks(lines: Iterable[str]) -> Iterator[Tuple[int, TaskInfo]]:
    """Yield (line_no, TaskInfo) for every task line; line numbers start at 1."""
    for line_no, line in enumerate(lines, start=1):
        info = parse_task_line(line)
        if info is not None:
            yield line_no, info


def _task_index(lines: list[str], line_no: int) -> int:
    if not 1 <= line_no <= len(lines):
        raise IndexError(f"line {line_no} is out of range (1-{len(lines)})")
    idx = line_no - 1
    if parse_task_line(lines[idx]) is None:
        raise ValueError(f"line {line_no} is not a task: {lines[idx]!r}")
    return idx


def complete_task(
    lines: list[str],
    line_no: int,
    today: str | date,
    now: str | time,
    next_line: str = "below",
) -> Tuple[list[str], TaskCompletionResult]:
    """
    Complete the task on line_no (1-based) and return the updated lines and
    the completion result. The next occurrence of a repeating task is
    inserted directly below (or above) the completed line.
    """
    if next_line not in NEXT_LINE_POSITIONS:
        raise ValueError(f"next_line must be one of {NEXT_LINE_POSITIONS}")
    idx = _task_index(lines, line_no)
    result = mark_task_done(lines[idx], today, now)

    updated = list(lines)
    updated[idx] = result.completed_line
    if result.next_task_line is not None:
        at = idx + 1 if next_line == "below" else idx
        updated.insert(at, result.next_task_line)
    return updated, result


def read_lines(path: str | Path) -> Tuple[list[str], str, bool]:
    """Return (lines, newline, ends_with_newline) for a UTF-8 text file."""
    with open(path, "r", encoding="utf-8", newline="") as f:
        text = f.read()
    newline = "\r\n" if "\r\n" in text else "\n"
    return text.splitlines(), newline, text.endswith(("\n", "\r"))


def write_lines(path: str | Path, lines: list[str], newline: str, trailing: bool):
    text = newline.join(lines)
    if trailing:
        text += newline
    # newline="" keeps "\r\n" as written
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(text)


def complete_task_in_file(
    path: str | Path,
    line_no: int,
    today: str | date,
    now: str | time,
    next_line: str = "below",
) -> TaskCompletionResult:
    lines, newline, trailing = read_lines(path)
    updated, result = complete_task(lines, line_no, today, now, next_line)
    write_lines(path, updated, newline, trailing)
    log_msg(
        f"completed {path}:{line_no} -> {result.completed_line!r}"
        + (
            f", next {next_line}: {result.next_task_line!r}"
            if result.next_task_line
            else ""
        )
    )
    return result


def set_field_in_file(path: str | Path, line_no: int, key: str, value: str) -> str:
    """Upsert the inline field `key` on the task at line_no; return the new line."""
    lines, newline, trailing = read_lines(path)
    idx = _task_index(lines, line_no)
    lines[idx] = set_field(lines[idx], key, value)
    write_lines(path, lines, newline, trailing)
    log_msg(f"set {key}:: {value} on {path}:{line_no}")
    return lines[idx]
