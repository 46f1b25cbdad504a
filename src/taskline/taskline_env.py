from pathlib import Path
import os
import tomllib
from pydantic import BaseModel, Field, ValidationError
from typing import Optional
from jinja2 import Template


# ─── Config Schema ─────────────────────────────────────────────────
class UIConfig(BaseModel):
    theme: str = Field("dark", pattern="^(dark|light)$")
    show_completed: bool = False


class TasksConfig(BaseModel):
    next_line: str = Field("below", pattern="^(below|above)$")
    timezone: str = ""


class TasklineConfig(BaseModel):
    title: str = "Taskline Configuration"
    ui: UIConfig = UIConfig()
    tasks: TasksConfig = TasksConfig()


# ─── Commented Template ────────────────────────────────────
CONFIG_TEMPLATE = """\
title = "{{ title }}"

[ui]
# theme: str = 'dark' | 'light'
theme = "{{ ui.theme }}"

# show_completed: bool = true | false
# list finished and cancelled tasks in `taskline list`
show_completed = {{ ui.show_completed | lower }}

[tasks]
# next_line: str = 'below' | 'above'
# where the next occurrence of a repeating task is inserted
# relative to the completed line.
next_line = "{{ tasks.next_line }}"

# timezone: str = '' | 'US/Eastern' | 'Europe/Paris' ...
# zone used to resolve "today" and "now" when completing a
# task. Leave empty to use the local timezone of this machine.
timezone = "{{ tasks.timezone }}"

"""

# ─── Save Config with Comments ───────────────────────────────


def save_config_from_template(config: TasklineConfig, path: Path):
    template = Template(CONFIG_TEMPLATE)
    rendered = template.render(**config.model_dump())
    path.write_text(rendered.strip() + "\n", encoding="utf-8")
    print(f"✅ Config with comments written to: {path}")


# ─── Main Environment Class ───────────────────────────────


class TasklineEnvironment:
    def __init__(self):
        self._home = self._resolve_home()
        self._config: Optional[TasklineConfig] = None

    @property
    def home(self) -> Path:
        return self._home

    @property
    def config_path(self) -> Path:
        return self.home / "config.toml"

    def ensure(self, init_config: bool = True):
        self.home.mkdir(parents=True, exist_ok=True)

        if init_config and not self.config_path.exists():
            save_config_from_template(TasklineConfig(), self.config_path)

    def load_config(self) -> TasklineConfig:
        # Step 1: Create the file if it doesn't exist
        if not os.path.exists(self.config_path):
            config = TasklineConfig()
            self.home.mkdir(parents=True, exist_ok=True)
            template = Template(CONFIG_TEMPLATE)
            rendered = template.render(**config.model_dump()).strip() + "\n"
            with open(self.config_path, "w", encoding="utf-8") as f:
                f.write(rendered)
            print(f"✅ Created new config file at {self.config_path}")
            self._config = config
            return config

        # Step 2: Try to load and validate the config
        try:
            with open(self.config_path, "rb") as f:
                data = tomllib.load(f)
            config = TasklineConfig.model_validate(data)
        except (ValidationError, tomllib.TOMLDecodeError) as e:
            print(f"⚠️ Config error in {self.config_path}: {e}\nUsing defaults.")
            self._config = TasklineConfig()
            # leave a broken file alone so the user can fix it
            return self._config

        # Step 3: Always regenerate the canonical version
        template = Template(CONFIG_TEMPLATE)
        rendered = template.render(**config.model_dump()).strip() + "\n"

        with open(self.config_path, "r", encoding="utf-8") as f:
            current_text = f.read()

        if rendered != current_text:
            with open(self.config_path, "w", encoding="utf-8") as f:
                f.write(rendered)
            print(f"✅ Updated {self.config_path} with any missing defaults.")

        self._config = config
        return config

    @property
    def config(self) -> TasklineConfig:
        if self._config is None:
            return self.load_config()
        return self._config

    def _resolve_home(self) -> Path:
        cwd = Path.cwd()
        if (cwd / "config.toml").exists() and (cwd / "logs").is_dir():
            return cwd

        env_home = os.getenv("TASKLINE_HOME")
        if env_home:
            return Path(env_home).expanduser()

        xdg_home = os.getenv("XDG_CONFIG_HOME")
        if xdg_home:
            return Path(xdg_home).expanduser() / "taskline"
        else:
            return Path.home() / ".config" / "taskline"
