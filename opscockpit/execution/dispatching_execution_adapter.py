from opscockpit.commands.command_registry import ExecutableSpec
from opscockpit.execution.execution_adapter import ExecutionAdapter
from opscockpit.execution.process_handle import ProcessHandle
from opscockpit.jobs.job import JobKind


class DispatchingExecutionAdapter(ExecutionAdapter):
    """Chooses the local or the remote adapter depending on the command's kind."""

    def __init__(self, local: ExecutionAdapter, remote: ExecutionAdapter) -> None:
        self._adapters = {JobKind.LOCAL: local, JobKind.REMOTE: remote}

    def name(self) -> str:
        return ", ".join(
            f"{kind.value}: {adapter.name()}" for kind, adapter in self._adapters.items()
        )

    def adapter_for(self, spec: ExecutableSpec) -> ExecutionAdapter:
        return self._adapters[spec.kind]

    async def start(self, spec: ExecutableSpec) -> ProcessHandle:
        return await self.adapter_for(spec).start(spec)
