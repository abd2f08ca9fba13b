import asyncio
import os

import structlog

from opscockpit.commands.command_registry import ExecutableSpec
from opscockpit.execution.execution_adapter import ExecutionAdapter
from opscockpit.execution.execution_adapter import SpawnError
from opscockpit.execution.process_handle import DEFAULT_READ_CHUNK_SIZE
from opscockpit.execution.process_handle import ProcessHandle
from opscockpit.execution.process_handle import SubprocessHandle

logger = structlog.stdlib.get_logger(__name__)


async def start_process_locally(
    argv: list[str],
    environment: dict[str, str],
    read_chunk_size: int,
) -> SubprocessHandle:
    # Without this, we wouldn't even have PATH
    sub_environ = os.environ.copy()
    sub_environ.update(environment)

    try:
        process = await asyncio.create_subprocess_exec(
            argv[0],
            *argv[1:],
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=sub_environ,
        )
    except FileNotFoundError:
        raise SpawnError(f"cannot start {argv[0]}: program not found")
    except PermissionError:
        raise SpawnError(f"cannot start {argv[0]}: permission denied")
    except OSError as e:
        raise SpawnError(f"cannot start {argv[0]}: {e}")

    logger.info(f"started {argv[0]} with pid {process.pid}")
    return SubprocessHandle(process, read_chunk_size)


class LocalExecutionAdapter(ExecutionAdapter):
    def __init__(
        self,
        environment: None | dict[str, str] = None,
        read_chunk_size: int = DEFAULT_READ_CHUNK_SIZE,
    ) -> None:
        self._environment = environment if environment is not None else {}
        self._read_chunk_size = read_chunk_size

    def name(self) -> str:
        return "local processes"

    async def start(self, spec: ExecutableSpec) -> ProcessHandle:
        return await start_process_locally(
            spec.argv(), self._environment, self._read_chunk_size
        )
