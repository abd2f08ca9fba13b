import asyncio
import codecs
import datetime
from dataclasses import dataclass

import structlog
from structlog.stdlib import BoundLogger

from opscockpit.clock import Clock
from opscockpit.db.job_store import JobStore
from opscockpit.db.job_store import PersistenceError
from opscockpit.execution.process_handle import ProcessHandle
from opscockpit.jobs.job import JobId
from opscockpit.jobs.job import LogRecord
from opscockpit.jobs.job import LogStream
from opscockpit.notification import events
from opscockpit.notification.channel import NotificationChannel

logger = structlog.stdlib.get_logger(__name__)

DEFAULT_QUEUE_SIZE = 1024


@dataclass(frozen=True)
class MultiplexResult:
    exit_code: None | int
    records: int
    persistence_failures: int
    notification_failures: int
    notifications_dropped: int


class _MonotonicTimestamps:
    """Wall clock time, but never going backwards for the same stream."""

    def __init__(self, clock: Clock) -> None:
        self._clock = clock
        self._last: dict[LogStream, datetime.datetime] = {}

    def next(self, stream: LogStream) -> datetime.datetime:
        now = self._clock.now()
        last = self._last.get(stream)
        if last is not None and now < last:
            now = last
        self._last[stream] = now
        return now


class _Counters:
    def __init__(self) -> None:
        self.records = 0
        self.persistence_failures = 0
        self.notification_failures = 0
        self.notifications_dropped = 0


class StreamMultiplexer:
    """
    Reads stdout and stderr of one process and hands every chunk, as a LogRecord,
    to the job store and to the notification channel.

    Each stream has its own reader task, each sink its own worker task. Readers
    and workers are connected by bounded FIFO queues, and records of one stream
    arrive at each sink in the order they were read. A slow store slows the
    readers down (and, through the pipe, the process) instead of eating memory.
    A slow client never does: when its queue is full, records are dropped for
    the channel only. A failing sink only affects itself.
    """

    def __init__(
        self,
        store: JobStore,
        channel: NotificationChannel,
        clock: Clock,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        notification_queue_size: int = DEFAULT_QUEUE_SIZE,
    ) -> None:
        self._store = store
        self._channel = channel
        self._clock = clock
        self._queue_size = queue_size
        self._notification_queue_size = notification_queue_size

    async def run(
        self,
        job_id: JobId,
        handle: ProcessHandle,
        parent_logger: None | BoundLogger = None,
    ) -> MultiplexResult:
        bound_logger = (
            parent_logger if parent_logger is not None else logger.bind(job_id=job_id)
        )
        timestamps = _MonotonicTimestamps(self._clock)
        counters = _Counters()
        persistence_queue: asyncio.Queue[None | LogRecord] = asyncio.Queue(
            self._queue_size
        )
        notification_queue: asyncio.Queue[None | LogRecord] = asyncio.Queue(
            self._notification_queue_size
        )

        async def read_stream(stream: LogStream) -> None:
            decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

            async def hand_out(text: str) -> None:
                record = LogRecord(
                    job_id=job_id,
                    timestamp=timestamps.next(stream),
                    stream=stream,
                    data=text,
                )
                counters.records += 1
                await persistence_queue.put(record)
                try:
                    notification_queue.put_nowait(record)
                except asyncio.QueueFull:
                    counters.notifications_dropped += 1
                    bound_logger.debug(
                        f"client is too slow, not notifying about {stream.value} chunk"
                    )

            try:
                async for chunk in handle.chunks(stream):
                    # multi-byte characters can be split between two reads
                    text = decoder.decode(chunk)
                    if text:
                        await hand_out(text)
            except Exception:
                bound_logger.exception(f"reading {stream.value} failed, giving up on it")
            tail = decoder.decode(b"", final=True)
            if tail:
                await hand_out(tail)

        async def persist() -> None:
            while (record := await persistence_queue.get()) is not None:
                try:
                    await self._store.append_log(record)
                except PersistenceError as e:
                    counters.persistence_failures += 1
                    bound_logger.error(
                        f"cannot persist {record.stream.value} chunk: {e.message}"
                    )
                except Exception:
                    counters.persistence_failures += 1
                    bound_logger.exception(
                        f"unexpected error persisting {record.stream.value} chunk"
                    )

        async def notify() -> None:
            while (record := await notification_queue.get()) is not None:
                try:
                    await self._channel.emit(*events.job_log(record))
                except Exception:
                    counters.notification_failures += 1
                    bound_logger.exception(
                        f"unexpected error notifying about {record.stream.value} chunk"
                    )

        sinks = [asyncio.create_task(persist()), asyncio.create_task(notify())]
        exit_code_task = asyncio.create_task(handle.wait())

        await asyncio.gather(
            read_stream(LogStream.STDOUT), read_stream(LogStream.STDERR)
        )
        await persistence_queue.put(None)
        # the channel backlog is bounded, waiting for it to drain is fine here
        await notification_queue.put(None)
        await asyncio.gather(*sinks)
        exit_code = await exit_code_task

        bound_logger.info(
            f"process finished with exit code {exit_code}, {counters.records} log record(s)"
        )
        if counters.notifications_dropped:
            bound_logger.warning(
                f"{counters.notifications_dropped} log record(s) not sent to the client, it was too slow"
            )
        return MultiplexResult(
            exit_code=exit_code,
            records=counters.records,
            persistence_failures=counters.persistence_failures,
            notification_failures=counters.notification_failures,
            notifications_dropped=counters.notifications_dropped,
        )
