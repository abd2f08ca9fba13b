import pytest

from opscockpit.commands.command_registry import ExecutableSpec
from opscockpit.execution.execution_adapter import SpawnError
from opscockpit.execution.local_execution_adapter import LocalExecutionAdapter
from opscockpit.execution.process_handle import ProcessHandle
from opscockpit.jobs.job import JobKind
from opscockpit.jobs.job import LogStream


async def _read_all(handle: ProcessHandle, stream: LogStream) -> bytes:
    return b"".join([chunk async for chunk in handle.chunks(stream)])


async def test_stdout_stderr_and_exit_code() -> None:
    handle = await LocalExecutionAdapter().start(
        ExecutableSpec(
            JobKind.LOCAL, "sh", ("-c", "echo out; echo err >&2; exit 3")
        )
    )

    assert await _read_all(handle, LogStream.STDOUT) == b"out\n"
    assert await _read_all(handle, LogStream.STDERR) == b"err\n"
    assert await handle.wait() == 3
    assert handle.pid is not None


async def test_small_chunk_size_splits_output() -> None:
    handle = await LocalExecutionAdapter(read_chunk_size=2).start(
        ExecutableSpec(JobKind.LOCAL, "printf", ("abcdef",))
    )

    chunks = [chunk async for chunk in handle.chunks(LogStream.STDOUT)]
    assert all(len(c) <= 2 for c in chunks)
    assert b"".join(chunks) == b"abcdef"
    assert await handle.wait() == 0


async def test_environment_is_passed() -> None:
    handle = await LocalExecutionAdapter(environment={"COCKPIT_TEST": "42"}).start(
        ExecutableSpec(JobKind.LOCAL, "sh", ("-c", "echo $COCKPIT_TEST"))
    )

    assert await _read_all(handle, LogStream.STDOUT) == b"42\n"
    assert await handle.wait() == 0


async def test_missing_program_is_a_spawn_error() -> None:
    with pytest.raises(SpawnError) as e:
        await LocalExecutionAdapter().start(
            ExecutableSpec(JobKind.LOCAL, "/nonexistent/definitely-not-a-program")
        )
    assert "not found" in e.value.message


async def test_killed_process_has_no_exit_code() -> None:
    handle = await LocalExecutionAdapter().start(
        ExecutableSpec(JobKind.LOCAL, "sh", ("-c", "kill -9 $$"))
    )

    await _read_all(handle, LogStream.STDOUT)
    await _read_all(handle, LogStream.STDERR)
    assert await handle.wait() is None


async def test_streams_cannot_be_read_twice() -> None:
    handle = await LocalExecutionAdapter().start(
        ExecutableSpec(JobKind.LOCAL, "true")
    )
    await _read_all(handle, LogStream.STDOUT)

    with pytest.raises(RuntimeError):
        handle.chunks(LogStream.STDOUT)
    await _read_all(handle, LogStream.STDERR)
    assert await handle.wait() == 0
