import sys
import os
import click
from rich import print
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text
from dateutil import tz
from tzlocal import get_localzone_name

from taskline import __version__
from taskline.document import (
    complete_task_in_file,
    iter_tasks,
    read_lines,
    set_field_in_file,
)
from taskline.line import CheckboxState
from taskline.mark import mark_task_done, next_due
from taskline.shared import HHMM_RE, bug_msg, parse_iso_date
from taskline.taskline_env import TasklineEnvironment

from datetime import date, datetime


class _DateParam(click.ParamType):
    name = "date"

    def convert(self, value, param, ctx):
        if value is None:
            return None
        if isinstance(value, date):
            return value
        s = str(value).strip().lower()
        if s in ("today", "now"):
            return current_moment(ctx).date()
        d = parse_iso_date(s)
        if d is None:
            self.fail("Expected YYYY-MM-DD or 'today'", param, ctx)
        return d


class _TimeParam(click.ParamType):
    name = "time"

    def convert(self, value, param, ctx):
        if value is None:
            return None
        s = str(value).strip().lower()
        if s == "now":
            return current_moment(ctx).strftime("%H:%M")
        if len(s) == 4 and s[1] == ":":
            s = f"0{s}"
        if not HHMM_RE.match(s):
            self.fail("Expected 24-hour HH:MM or 'now'", param, ctx)
        return s


_DATE = _DateParam()
_TIME = _TimeParam()

THEME_STYLES = {
    "dark": {
        CheckboxState.OPEN: "light_sky_blue1",
        CheckboxState.IN_PROGRESS: "gold1",
        CheckboxState.DONE: "grey50",
        CheckboxState.CANCELLED: "grey50",
    },
    "light": {
        CheckboxState.OPEN: "blue",
        CheckboxState.IN_PROGRESS: "dark_orange3",
        CheckboxState.DONE: "grey42",
        CheckboxState.CANCELLED: "grey42",
    },
}


def current_moment(ctx: click.Context | None = None) -> datetime:
    """
    The wall clock in the configured zone; an empty zone means the local
    timezone of this machine.
    """
    zone_name = ""
    if ctx is not None and ctx.obj:
        zone_name = ctx.obj["CONFIG"].tasks.timezone
    zone = tz.gettz(zone_name or get_localzone_name())
    if zone is None:
        raise click.BadParameter(f"unknown timezone {zone_name!r} in config")
    return datetime.now(zone)


def _resolve_clock(ctx, today, now) -> tuple[str, str]:
    moment = None
    if today is None or now is None:
        moment = current_moment(ctx)
    today = today or moment.date()
    now = now or moment.strftime("%H:%M")
    return today.strftime("%Y-%m-%d"), now


@click.group()
@click.version_option(
    __version__, prog_name="taskline", message="%(prog)s version %(version)s"
)
@click.option(
    "--home",
    help="Override the taskline home directory (equivalent to setting $TASKLINE_HOME).",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.pass_context
def cli(ctx, home, verbose):
    """Taskline CLI – complete markdown task lines and roll repeating ones forward."""
    if home:
        os.environ["TASKLINE_HOME"] = (
            home  # Must be set before TasklineEnvironment is instantiated
        )

    env = TasklineEnvironment()
    env.ensure(init_config=True)
    config = env.load_config()

    ctx.ensure_object(dict)
    ctx.obj["ENV"] = env
    ctx.obj["CONFIG"] = config
    ctx.obj["VERBOSE"] = verbose


@cli.command()
@click.argument("line", nargs=-1)
@click.option("--today", type=_DATE, help="Completion date, YYYY-MM-DD.")
@click.option("--now", type=_TIME, help="Completion time, HH:MM.")
@click.pass_context
def done(ctx, line, today, now):
    """Print LINE marked done and, if it repeats, its next occurrence."""
    if not line and not sys.stdin.isatty():
        line = sys.stdin.read().rstrip("\r\n")
    else:
        line = " ".join(line)

    if not line.strip():
        print("[bold red]✘ No task line provided. Use argument or pipe.[/bold red]")
        sys.exit(1)

    today, now = _resolve_clock(ctx, today, now)
    result = mark_task_done(line, today, now)
    if ctx.obj["VERBOSE"]:
        bug_msg(f"done {line!r} @ {today} {now} -> {result}")

    click.echo(result.completed_line)
    if result.next_task_line is not None:
        click.echo(result.next_task_line)


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.argument("line_no", type=int)
@click.option("--today", type=_DATE, help="Completion date, YYYY-MM-DD.")
@click.option("--now", type=_TIME, help="Completion time, HH:MM.")
@click.option(
    "--next-line",
    type=click.Choice(["below", "above"]),
    help="Where to insert the next occurrence (default from config).",
)
@click.pass_context
def complete(ctx, file, line_no, today, now, next_line):
    """Complete the task on LINE_NO of FILE in place."""
    config = ctx.obj["CONFIG"]
    today, now = _resolve_clock(ctx, today, now)
    next_line = next_line or config.tasks.next_line

    try:
        result = complete_task_in_file(file, line_no, today, now, next_line)
    except (IndexError, ValueError) as e:
        print(f"[red]✘ {escape(str(e))}[/red]")
        sys.exit(1)

    print(f"[green]✔ Completed:[/green] {escape(result.completed_line)}")
    if result.next_task_line is not None:
        print(f"[blue]↻ Next:[/blue] {escape(result.next_task_line)}")


@cli.command("set")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.argument("line_no", type=int)
@click.argument("key")
@click.argument("value")
def set_(file, line_no, key, value):
    """Set an inline (KEY:: VALUE) field on the task at LINE_NO of FILE."""
    try:
        line = set_field_in_file(file, line_no, key, value)
    except (IndexError, ValueError) as e:
        print(f"[red]✘ {escape(str(e))}[/red]")
        sys.exit(1)
    print(f"[green]✔ Updated:[/green] {escape(line)}")


@cli.command("list")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--all", "show_all", is_flag=True, help="Include finished tasks.")
@click.option("--today", type=_DATE, help="Reference date for the next column.")
@click.pass_context
def list_(ctx, file, show_all, today):
    """List the tasks in FILE."""
    config = ctx.obj["CONFIG"]
    show_all = show_all or config.ui.show_completed
    today = today or current_moment(ctx).date()
    lines, _, _ = read_lines(file)
    styles = THEME_STYLES[config.ui.theme]

    table = Table(title=escape(str(file)), expand=False)
    table.add_column("line", justify="right")
    table.add_column("", no_wrap=True)
    table.add_column("task")
    table.add_column("due", no_wrap=True)
    table.add_column("repeat")
    table.add_column("next", no_wrap=True)

    count = 0
    for line_no, info in iter_tasks(lines):
        finished = info.status in (CheckboxState.DONE, CheckboxState.CANCELLED)
        if finished and not show_all:
            continue
        style = styles[info.status]
        nxt = next_due(lines[line_no - 1], today) if not finished else None
        table.add_row(
            str(line_no),
            Text(f"[{info.status.value}]", style=style),
            Text(info.title, style=style),
            info.dates.get("due", ""),
            Text(info.recurrence),
            nxt or "",
        )
        count += 1

    if not count:
        print("[yellow]No tasks found.[/yellow]")
        return
    Console().print(table)
