import asyncio
import datetime

from pydantic import BaseModel

from fakes import FakeProcessHandle
from fakes import InMemoryJobStore
from fakes import RecordingChannel
from fakes import concatenated

from opscockpit.clock import Clock
from opscockpit.clock import MockClock
from opscockpit.jobs.job import Job
from opscockpit.jobs.job import JobKind
from opscockpit.jobs.job import JobStatus
from opscockpit.jobs.job import LogRecord
from opscockpit.jobs.job import LogStream
from opscockpit.jobs.stream_multiplexer import StreamMultiplexer
from opscockpit.notification.events import EventName

_T0 = datetime.datetime(2024, 5, 1, 12, 0, tzinfo=datetime.timezone.utc)


async def _store_with_job(job_id: str = "job") -> InMemoryJobStore:
    store = InMemoryJobStore()
    await store.insert_job(Job(job_id, JobKind.LOCAL, "x", JobStatus.RUNNING, _T0))
    return store


def _channel_text(channel: RecordingChannel, stream: LogStream) -> str:
    return "".join(
        e["data"] for e in channel.of("job-log") if e["stream"] == stream.value
    )


async def test_both_sinks_get_every_chunk_in_order() -> None:
    store = await _store_with_job()
    channel = RecordingChannel()
    handle = FakeProcessHandle(
        stdout=[b"a", b"b", b"c"], stderr=[b"x", b"y"], exit_code=0
    )

    result = await StreamMultiplexer(store, channel, MockClock(_T0)).run("job", handle)

    assert result.exit_code == 0
    assert result.records == 5
    assert result.persistence_failures == 0
    assert concatenated(store.logs, "job", LogStream.STDOUT) == "abc"
    assert concatenated(store.logs, "job", LogStream.STDERR) == "xy"
    assert _channel_text(channel, LogStream.STDOUT) == "abc"
    assert _channel_text(channel, LogStream.STDERR) == "xy"
    assert all(e["jobId"] == "job" for e in channel.of("job-log"))


async def test_exit_code_is_passed_through() -> None:
    store = await _store_with_job()

    result = await StreamMultiplexer(store, RecordingChannel(), MockClock(_T0)).run(
        "job", FakeProcessHandle(exit_code=None)
    )

    assert result.exit_code is None
    assert result.records == 0


async def test_split_utf8_characters_are_reassembled() -> None:
    store = await _store_with_job()
    encoded = "grüße".encode("utf-8")
    # split in the middle of "ü"
    handle = FakeProcessHandle(stdout=[encoded[:3], encoded[3:]])

    await StreamMultiplexer(store, RecordingChannel(), MockClock(_T0)).run("job", handle)

    assert concatenated(store.logs, "job", LogStream.STDOUT) == "grüße"
    assert all("�" not in r.data for r in store.logs)


async def test_persistence_failure_does_not_stop_notifications() -> None:
    store = await _store_with_job()
    store.fail_append = lambda r: r.data == "b"
    channel = RecordingChannel()

    result = await StreamMultiplexer(store, channel, MockClock(_T0)).run(
        "job", FakeProcessHandle(stdout=[b"a", b"b", b"c"])
    )

    assert result.persistence_failures == 1
    assert concatenated(store.logs, "job", LogStream.STDOUT) == "ac"
    # the channel still sees everything, exactly once
    assert _channel_text(channel, LogStream.STDOUT) == "abc"


async def test_notification_failure_does_not_stop_persistence() -> None:
    store = await _store_with_job()

    result = await StreamMultiplexer(
        store, RecordingChannel(fail=True), MockClock(_T0)
    ).run("job", FakeProcessHandle(stdout=[b"a", b"b"], stderr=[b"c"]))

    assert result.notification_failures == 3
    assert concatenated(store.logs, "job", LogStream.STDOUT) == "ab"
    assert concatenated(store.logs, "job", LogStream.STDERR) == "c"


async def test_slow_store_with_tiny_queue_loses_nothing() -> None:
    store = await _store_with_job()
    store.append_delay_seconds = 0.001
    channel = RecordingChannel()
    chunks = [f"{i},".encode() for i in range(50)]

    await StreamMultiplexer(store, channel, MockClock(_T0), queue_size=1).run(
        "job", FakeProcessHandle(stdout=chunks, stderr=chunks)
    )

    expected = "".join(c.decode() for c in chunks)
    assert concatenated(store.logs, "job", LogStream.STDOUT) == expected
    assert concatenated(store.logs, "job", LogStream.STDERR) == expected
    assert _channel_text(channel, LogStream.STDOUT) == expected


class _BackwardsClock(Clock):
    def __init__(self) -> None:
        self._clock = MockClock(_T0)

    def now(self) -> datetime.datetime:
        result = self._clock.now()
        self._clock.rewind_seconds(1)
        return result


async def test_timestamps_never_go_backwards_per_stream() -> None:
    store = await _store_with_job()

    await StreamMultiplexer(store, RecordingChannel(), _BackwardsClock()).run(
        "job", FakeProcessHandle(stdout=[b"a", b"b", b"c"], stderr=[b"x", b"y"])
    )

    for stream in LogStream:
        timestamps = [r.timestamp for r in store.logs if r.stream == stream]
        assert timestamps == sorted(timestamps)


async def test_records_carry_their_job_id() -> None:
    store = await _store_with_job("one")
    await store.insert_job(Job("two", JobKind.LOCAL, "y", JobStatus.RUNNING, _T0))
    channel = RecordingChannel()

    multiplexer = StreamMultiplexer(store, channel, MockClock(_T0))
    await asyncio.gather(
        multiplexer.run(
            "one", FakeProcessHandle(stdout=[b"1"] * 5, chunk_delay_seconds=0.001)
        ),
        multiplexer.run(
            "two", FakeProcessHandle(stdout=[b"2"] * 5, chunk_delay_seconds=0.001)
        ),
    )

    assert len(store.logs) == 10
    record: LogRecord
    for record in store.logs:
        assert record.data == ("1" if record.job_id == "one" else "2")


class _StalledChannel(RecordingChannel):
    def __init__(self) -> None:
        super().__init__()
        self.release = asyncio.Event()

    async def emit(self, event: EventName, payload: BaseModel) -> None:
        await self.release.wait()
        await super().emit(event, payload)


async def test_stalled_client_does_not_hold_back_persistence() -> None:
    store = await _store_with_job()
    channel = _StalledChannel()
    multiplexer = StreamMultiplexer(
        store, channel, MockClock(_T0), queue_size=4, notification_queue_size=4
    )

    run = asyncio.create_task(
        multiplexer.run("job", FakeProcessHandle(stdout=[b"x"] * 50))
    )
    for _ in range(200):
        if len(store.logs) == 50:
            break
        await asyncio.sleep(0.01)

    assert len(store.logs) == 50
    assert not channel.events
    assert not run.done()

    channel.release.set()
    result = await run

    assert result.records == 50
    assert result.notifications_dropped > 0
    assert len(channel.of("job-log")) == 50 - result.notifications_dropped
