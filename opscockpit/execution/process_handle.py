import asyncio
from abc import ABC
from abc import abstractmethod
from typing import AsyncIterator

import structlog

from opscockpit.jobs.job import LogStream

logger = structlog.stdlib.get_logger(__name__)

DEFAULT_READ_CHUNK_SIZE = 4096


class ProcessHandle(ABC):
    """
    A started process (local or behind ssh), seen as two byte streams and an exit code.

    Each stream can be consumed exactly once. wait() returns the exit code, or None
    if the process terminated abnormally (killed by a signal) and there is no code.
    """

    @abstractmethod
    def chunks(self, stream: LogStream) -> AsyncIterator[bytes]: ...

    @abstractmethod
    async def wait(self) -> None | int: ...

    @property
    @abstractmethod
    def pid(self) -> None | int: ...


class SubprocessHandle(ProcessHandle):
    def __init__(
        self,
        process: asyncio.subprocess.Process,
        read_chunk_size: int = DEFAULT_READ_CHUNK_SIZE,
    ) -> None:
        self._process = process
        self._read_chunk_size = read_chunk_size
        self._consumed: set[LogStream] = set()

    @property
    def pid(self) -> None | int:
        return self._process.pid

    def chunks(self, stream: LogStream) -> AsyncIterator[bytes]:
        if stream in self._consumed:
            raise RuntimeError(f"{stream.value} of process {self.pid} already consumed")
        self._consumed.add(stream)
        reader = (
            self._process.stdout if stream == LogStream.STDOUT else self._process.stderr
        )
        assert reader is not None, f"{stream.value} of process {self.pid} is not a pipe"
        return self._read(reader)

    async def _read(self, reader: asyncio.StreamReader) -> AsyncIterator[bytes]:
        while True:
            chunk = await reader.read(self._read_chunk_size)
            if not chunk:
                return
            yield chunk

    async def wait(self) -> None | int:
        rc = await self._process.wait()
        if rc < 0:
            logger.warning(f"process {self.pid} was killed by signal {-rc}")
            return None
        return rc
