import os
from pathlib import Path
from typing import Literal

import structlog
import yaml
from pydantic import BaseModel
from pydantic import Field
from pydantic import ValidationError
from xdg import xdg_config_home

from opscockpit.commands.command_registry import CommandRegistry
from opscockpit.commands.command_registry import ExecutableSpec
from opscockpit.jobs.job import JobKind

CONFIG_FILE_ENV_VAR = "OPSCOCKPIT_CONFIG"

logger = structlog.stdlib.get_logger(__name__)


class ConfigError(Exception):
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


# this is deliberately a function so tests can redirect XDG_CONFIG_HOME
def default_config_path() -> Path:
    return xdg_config_home() / "opscockpit" / "config.yml"


class CommandConfig(BaseModel):
    # "ssh" is what the database and the frontend call remote commands
    type: Literal["local", "ssh", "remote"] = "local"
    cmd: str
    args: list[str] = Field(default_factory=list)

    def to_executable_spec(self) -> ExecutableSpec:
        return ExecutableSpec(
            kind=JobKind.LOCAL if self.type == "local" else JobKind.REMOTE,
            program=self.cmd,
            args=tuple(self.args),
        )


def _default_commands() -> dict[str, CommandConfig]:
    return {
        "vm-status": CommandConfig(
            type="local", cmd="echo", args=["Simulating make status...done."]
        ),
        "vm-logs": CommandConfig(
            type="local", cmd="echo", args=["Simulating make logs...fake log output."]
        ),
        "docker-ps": CommandConfig(
            type="ssh", cmd="echo", args=["Simulating ssh command...container up."]
        ),
    }


class CockpitConfig(BaseModel):
    commands: dict[str, CommandConfig] = Field(default_factory=_default_commands)
    # see opscockpit.execution.execution_adapter_factory for the format; "local:"
    # runs remote commands on this machine
    remote_execution: str = "local:"
    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:5173"]
    )
    log_queue_size: int = Field(default=1024, gt=0)
    read_chunk_size: int = Field(default=4096, gt=0)

    def command_registry(self) -> CommandRegistry:
        return CommandRegistry(
            {key: c.to_executable_spec() for key, c in self.commands.items()}
        )


def config_path_from_environment() -> Path:
    from_env = os.environ.get(CONFIG_FILE_ENV_VAR)
    return Path(from_env) if from_env else default_config_path()


def load_config(path: None | Path = None) -> CockpitConfig:
    real_path = path if path is not None else config_path_from_environment()
    if not real_path.exists():
        logger.info(f"no config file at {real_path}, using built-in defaults")
        return CockpitConfig()
    try:
        with real_path.open("r", encoding="utf-8") as f:
            raw = yaml.load(f, Loader=yaml.SafeLoader)
    except yaml.YAMLError as e:
        raise ConfigError(f"config file {real_path} is not valid YAML: {e}")
    try:
        return CockpitConfig(**(raw if raw is not None else {}))
    except (ValidationError, TypeError) as e:
        raise ConfigError(f"config file {real_path} is invalid: {e}")


def write_config(config: CockpitConfig, path: None | Path = None) -> None:
    real_path = path if path is not None else config_path_from_environment()
    real_path.parent.mkdir(parents=True, exist_ok=True)
    with real_path.open("w", encoding="utf-8") as f:
        f.write(yaml.dump(config.model_dump(), Dumper=yaml.SafeDumper))
