"""Streaming ``hdc shell hilog`` output with crash-aware filtering."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import re
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, Any

from ohkit.shared.enums import LogReaderState

if TYPE_CHECKING:
    from ohkit.device.device import OhosDevice
    from ohkit.shared.process import ProcessRunner

logger = logging.getLogger(__name__)

# 10-27 19:57:53.779  1195  2885 I Thread:528202332952  [INFO:ohos_main.cpp(140)] flutter The Dart VM service ...
_LOG_FORMAT = re.compile(r"^[\d\-:. ]{30,40}[VDIWEF][^:]+:")

_ALLOWED_TAGS = (
    re.compile(r"^[\d\-:. ]{30,40}[VDIWEF]\s[^:]+Flutter[^:]+:\sflutter\s"),
    re.compile(r"^[\d\-:. ]{30,40}[IE].*Dart VM\s+"),
    re.compile(r"^[WEF]/System\.err:\s+"),
    re.compile(r"^[F]/[\S^:]+:\s+"),
)

# F/libc(pid): Fatal signal 11
_FATAL_LOG = re.compile(r"^F/libc\s*\(\s*\d+\):\sFatal signal (\d+)")

# I/DEBUG(pid): ...
_TOMBSTONE_LINE = re.compile(r"^[IF]/DEBUG\s*\(\s*\d+\):\s(.+)$")

# I/DEBUG(pid): Tombstone written to: ...
_TOMBSTONE_TERMINATOR = re.compile(r"^Tombstone written to:\s")

_LOG_MARKERS = frozenset({"--------- beginning of system", "--------- beginning of main"})

_END: Any = object()


class LogLineClassifier:
    """Decide which hilog lines reach the user.

    In ``NORMAL`` mode, well-formed lines pass only when an allow-listed tag
    matches, and unformatted lines are treated as continuations of the
    previous line. A fatal signal switches to ``IN_CRASH``, where only
    tombstone lines pass (without their ``DEBUG`` prefix) until the
    tombstone terminator is seen.
    """

    def __init__(self) -> None:
        self.state = LogReaderState.NORMAL
        # true so continuation lines before any formatted line are kept
        self.accepted_last_line = True

    def classify(self, line: str) -> str | None:
        """Return the text to emit for ``line``, or ``None`` to drop it."""
        if self.state is LogReaderState.IN_CRASH:
            return self._classify_crash(line)

        if _FATAL_LOG.match(line):
            self.state = LogReaderState.IN_CRASH
            self.accepted_last_line = False
            return None

        if _LOG_FORMAT.match(line):
            accepted = any(pattern.match(line) for pattern in _ALLOWED_TAGS)
            self.accepted_last_line = accepted
            return line if accepted else None

        if line in _LOG_MARKERS:
            self.accepted_last_line = False
            return None

        return line if self.accepted_last_line else None

    def _classify_crash(self, line: str) -> str | None:
        match = _TOMBSTONE_LINE.match(line)
        if match is None:
            self.accepted_last_line = False
            return None
        text = match.group(1)
        if _TOMBSTONE_TERMINATOR.match(text):
            self.state = LogReaderState.NORMAL
        self.accepted_last_line = True
        return text


class LogSubscription:
    """One listener on an ``HdcLogReader``; iterate it for lines."""

    def __init__(self, reader: HdcLogReader) -> None:
        self._reader = reader
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._done = False

    def __aiter__(self) -> LogSubscription:
        return self

    async def __anext__(self) -> str:
        if self._done:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _END:
            self._done = True
            raise StopAsyncIteration
        return item

    def cancel(self) -> None:
        """Stop listening; the last cancelled listener stops the reader."""
        self._reader._unsubscribe(self)


class HdcLogReader:
    """Broadcast line stream over one long-lived ``hilog`` process.

    stdout and stderr are decoded as lossy UTF-8 and merged. The process
    output is only drained once the first listener subscribes.
    """

    def __init__(self, process: asyncio.subprocess.Process, name: str) -> None:
        self._process = process
        self.name = name
        self.classifier = LogLineClassifier()
        self._subscribers: list[LogSubscription] = []
        self._tasks: list[asyncio.Task[None]] = []
        self._started = False
        self._closed = False

    @classmethod
    async def create(
        cls,
        device: OhosDevice,
        runner: ProcessRunner,
        *,
        include_past_logs: bool = False,
    ) -> HdcLogReader:
        """Start ``hilog`` on ``device``.

        Live readers clear the device log history first. Past-log readers
        keep the history but only show the ``flutter`` tag.
        """
        args = ["shell", "hilog"]
        if include_past_logs:
            args.extend(["-T", "flutter"])
        else:
            await device.clear_logs()
        process = await runner.start(device.hdc_command(args))
        return cls(process, device.name)

    @property
    def is_closed(self) -> bool:
        return self._closed

    def subscribe(self) -> LogSubscription:
        subscription = LogSubscription(self)
        if self._closed:
            subscription._queue.put_nowait(_END)
            return subscription
        self._subscribers.append(subscription)
        if not self._started:
            self._start()
        return subscription

    async def lines(self) -> AsyncIterator[str]:
        subscription = self.subscribe()
        try:
            async for line in subscription:
                yield line
        finally:
            subscription.cancel()

    def dispose(self) -> None:
        self._stop()

    def _start(self) -> None:
        self._started = True
        pumps = [asyncio.ensure_future(self._pump(stream)) for stream in (self._process.stdout, self._process.stderr) if stream is not None]
        self._tasks = [*pumps, asyncio.ensure_future(self._watch_exit(pumps))]

    async def _pump(self, stream: asyncio.StreamReader) -> None:
        while True:
            raw = await stream.readline()
            if not raw:
                return
            self._on_line(raw.decode("utf-8", errors="replace").rstrip("\r\n"))

    async def _watch_exit(self, pumps: list[asyncio.Future[None]]) -> None:
        await asyncio.gather(*pumps, return_exceptions=True)
        await self._process.wait()
        logger.debug("hilog process for %s exited", self.name)
        self._close()

    def _on_line(self, line: str) -> None:
        # lines may still arrive after close, before hdc stops streaming
        if self._closed:
            return
        text = self.classifier.classify(line)
        if text is None:
            return
        for subscription in list(self._subscribers):
            subscription._queue.put_nowait(text)

    def _unsubscribe(self, subscription: LogSubscription) -> None:
        if subscription in self._subscribers:
            self._subscribers.remove(subscription)
        if not self._subscribers and self._started:
            self._stop()

    def _close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for subscription in self._subscribers:
            subscription._queue.put_nowait(_END)

    def _stop(self) -> None:
        self._close()
        current = asyncio.current_task() if _loop_running() else None
        for task in self._tasks:
            if task is not current and not task.done():
                task.cancel()
        if self._process.returncode is None:
            with contextlib.suppress(ProcessLookupError):
                self._process.kill()


def _loop_running() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True
