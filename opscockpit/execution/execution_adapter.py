from abc import ABC
from abc import abstractmethod

from opscockpit.commands.command_registry import ExecutableSpec
from opscockpit.execution.process_handle import ProcessHandle


class SpawnError(Exception):
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ExecutionAdapter(ABC):
    @abstractmethod
    def name(self) -> str:
        pass

    @abstractmethod
    async def start(self, spec: ExecutableSpec) -> ProcessHandle:
        """Start one new process for spec; raises SpawnError if it can't be launched."""
