import shlex
from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterator
from typing import Mapping

from opscockpit.jobs.job import JobKind


class UnknownCommand(Exception):
    def __init__(self, key: str) -> None:
        super().__init__(f"Unknown command: {key}")
        self.key = key
        self.message = f"Unknown command: {key}"


@dataclass(frozen=True)
class ExecutableSpec:
    kind: JobKind
    program: str
    args: tuple[str, ...] = ()

    def render(self) -> str:
        """The command line as it's shown to users and stored in the job history."""
        return " ".join([self.program, *self.args])

    def argv(self) -> list[str]:
        return [self.program, *self.args]

    def shell_quoted(self) -> str:
        # the remote shell re-splits whatever ssh hands it, so quote every word
        return shlex.join(self.argv())


class CommandRegistry:
    """Read-only mapping from a command key (what the client sends) to what we execute."""

    def __init__(self, commands: Mapping[str, ExecutableSpec]) -> None:
        self._commands: Mapping[str, ExecutableSpec] = MappingProxyType(dict(commands))

    def resolve(self, key: str) -> ExecutableSpec:
        spec = self._commands.get(key)
        if spec is None:
            raise UnknownCommand(key)
        return spec

    def keys(self) -> Iterator[str]:
        return iter(self._commands)

    def __len__(self) -> int:
        return len(self._commands)

    def __contains__(self, key: object) -> bool:
        return key in self._commands
