"""
Tests for the taskline home, its config file and the markdown log helpers.
"""

import tomllib

import pytest

from taskline.shared import bug_msg, log_msg
from taskline.taskline_env import TasklineConfig, TasklineEnvironment


class TestConfig:
    def test_created_with_defaults(self, taskline_home):
        env = TasklineEnvironment()
        config = env.load_config()
        assert env.home == taskline_home
        assert env.config_path.exists()
        assert config == TasklineConfig()
        assert config.tasks.next_line == "below"
        assert config.ui.show_completed is False

    def test_written_file_parses_back(self, test_env):
        with open(test_env.config_path, "rb") as f:
            data = tomllib.load(f)
        assert TasklineConfig.model_validate(data) == TasklineConfig()
        assert "# next_line" in test_env.config_path.read_text(encoding="utf-8")

    def test_partial_config_is_completed(self, write_config):
        path = write_config('[tasks]\nnext_line = "above"\n')
        config = TasklineEnvironment().load_config()
        assert config.tasks.next_line == "above"
        assert config.ui.theme == "dark"
        text = path.read_text(encoding="utf-8")
        assert 'next_line = "above"' in text
        assert "[ui]" in text

    @pytest.mark.parametrize(
        "text",
        ['[tasks]\nnext_line = "sideways"\n', "[ui\ntheme = dark\n"],
    )
    def test_invalid_config_falls_back_to_defaults(self, write_config, text, capsys):
        path = write_config(text)
        config = TasklineEnvironment().load_config()
        assert config == TasklineConfig()
        assert path.read_text(encoding="utf-8") == text
        assert "Using defaults" in capsys.readouterr().out

    def test_config_property_loads_once(self, test_env):
        first = test_env.config
        assert test_env.config is first


class TestHome:
    def test_env_variable(self, taskline_home):
        assert TasklineEnvironment().home == taskline_home

    def test_xdg_config_home(self, tmp_path, monkeypatch):
        monkeypatch.delenv("TASKLINE_HOME")
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
        monkeypatch.chdir(tmp_path)
        assert TasklineEnvironment().home == tmp_path / "xdg" / "taskline"

    def test_working_directory_with_config_and_logs(self, tmp_path, monkeypatch):
        project = tmp_path / "project"
        (project / "logs").mkdir(parents=True)
        (project / "config.toml").write_text("", encoding="utf-8")
        monkeypatch.chdir(project)
        assert TasklineEnvironment().home == project

    def test_config_alone_is_not_a_home(self, tmp_path, monkeypatch, taskline_home):
        (tmp_path / "config.toml").write_text("", encoding="utf-8")
        monkeypatch.chdir(tmp_path)
        assert TasklineEnvironment().home == taskline_home


class TestLogMessages:
    def test_log_msg(self, taskline_home, frozen_time):
        log_msg("hello from the test")
        text = (taskline_home / "logs" / "log_250115.md").read_text(encoding="utf-8")
        assert "12:00:00 log_msg (TestLogMessages.test_log_msg)" in text
        assert "hello from the test" in text

    def test_bug_msg(self, taskline_home, frozen_time):
        bug_msg("something odd")
        assert (taskline_home / "logs" / "bug_250115.md").exists()

    def test_explicit_path(self, tmp_path):
        target = tmp_path / "custom.md"
        log_msg("to a custom file", file_path=target)
        assert "to a custom file" in target.read_text(encoding="utf-8")

    def test_print_output(self, tmp_path, capsys):
        log_msg("printed too", file_path=tmp_path / "x.md", print_output=True)
        assert "printed too" in capsys.readouterr().out
