"""
Shared pytest fixtures for taskline tests.

This module provides common fixtures used across all test files, including:
- Time freezing utilities
- An isolated taskline home (config and logs)
- Sample task lines
- Markdown file factories
"""

import pytest
from freezegun import freeze_time
from click.testing import CliRunner

from taskline.taskline_env import TasklineEnvironment


@pytest.fixture(autouse=True)
def taskline_home(tmp_path, monkeypatch):
    """
    Points $TASKLINE_HOME at a fresh directory so that config files and
    log_msg output never touch the real home directory.
    """
    home = tmp_path / "taskline-home"
    monkeypatch.setenv("TASKLINE_HOME", str(home))
    return home


@pytest.fixture
def frozen_time():
    """
    Freezes time to 2025-01-15 12:00:00 (UTC) for the duration of the test.

    Usage:
        def test_something(frozen_time):
            frozen_time.tick(delta=timedelta(hours=2))
    """
    with freeze_time("2025-01-15 12:00:00") as frozen:
        yield frozen


@pytest.fixture
def freeze_at():
    """
    Returns a function that freezes time to a specific datetime.

    Usage:
        def test_something(freeze_at):
            with freeze_at("2025-01-15 10:00:00"):
                ...
    """
    return freeze_time


@pytest.fixture
def test_env(taskline_home):
    env = TasklineEnvironment()
    env.ensure(init_config=True)
    return env


@pytest.fixture
def write_config(taskline_home):
    """
    Returns a function that writes raw TOML into the config file of the
    isolated home, e.g. write_config('[tasks]\\ntimezone = "UTC"').
    """

    def _write(text: str):
        taskline_home.mkdir(parents=True, exist_ok=True)
        path = taskline_home / "config.toml"
        path.write_text(text, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def sample_lines():
    """
    Task lines for common scenarios, keyed by a descriptive name.
    """
    return {
        "plain": "- [ ] Call mom",
        "due": "- [ ] Pay taxes 📅 2024-04-15",
        "weekly": "- [ ] Buy milk 📅 2024-01-10 🔁 every 1 week",
        "when_done": "- [ ] Water plants 📅 2024-01-01 🔁 every 3 days when done",
        "scheduled_start": "- [ ] Review ⏳ 2024-03-05 🛫 2024-03-01 🔁 every 2 weeks",
        "duration": "- [ ] Deep work duration::90m",
        "month_end": "- [ ] Pay rent 📅 2024-01-31 🔁 every month",
        "bare_repeat": "- [ ] Something 🔁",
        "cancelled": "- [-] Old plan ❌ 2024-01-02",
        "in_progress": "- [/] Draft chapter",
    }


@pytest.fixture
def task_file(tmp_path):
    """
    Returns a factory that writes lines to a markdown file and returns its path.
    """

    def _create(lines: list[str], name: str = "tasks.md", newline: str = "\n"):
        path = tmp_path / name
        path.write_bytes((newline.join(lines) + newline).encode("utf-8"))
        return path

    return _create
