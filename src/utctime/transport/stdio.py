"""STDIO transport — newline-delimited JSON-RPC over stdin/stdout.

Requests are handled strictly in arrival order: each response is written
before the next line is read. Lines are pulled by a daemon thread feeding a
bounded :class:`asyncio.Queue`, so a stdin blocked in ``readline`` never keeps the
process alive at shutdown.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import sys
import threading
from typing import TYPE_CHECKING, BinaryIO, Protocol

from utctime.protocol.errors import InternalError
from utctime.protocol.models import JsonRpcResponse
from utctime.transport.errors import TransportIOError
from utctime.utils.telemetry import ATTR_TRANSPORT, get_tracer

if TYPE_CHECKING:
    from utctime.protocol.dispatcher import Dispatcher

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)

_EOF = object()

# Lines read ahead of the dispatcher; the reader thread blocks once this fills.
QUEUE_SIZE = 64


class LineReader(Protocol):
    def readline(self) -> bytes: ...


class StdioServer:
    """Serves one dispatcher over a pair of byte streams.

    Usage::

        server = StdioServer(dispatcher)
        await server.serve()   # returns at end of input

    :meth:`serve` returns normally at end of input and raises
    :class:`TransportIOError` when either stream fails.
    """

    def __init__(
        self,
        dispatcher: Dispatcher,
        *,
        reader: LineReader | None = None,
        writer: BinaryIO | None = None,
    ) -> None:
        self._dispatcher = dispatcher
        self._reader = reader if reader is not None else sys.stdin.buffer
        self._writer = writer if writer is not None else sys.stdout.buffer
        self._handled = 0

    @property
    def handled(self) -> int:
        """Number of non-blank lines processed so far."""
        return self._handled

    async def serve(self) -> None:
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue[object] = asyncio.Queue(maxsize=QUEUE_SIZE)
        thread = threading.Thread(
            target=self._pump, args=(loop, queue), name="utctime-stdin", daemon=True
        )
        thread.start()
        logger.info("STDIO transport ready")

        while True:
            item = await queue.get()
            if item is _EOF:
                logger.info("STDIO end of input after %d message(s)", self._handled)
                return
            if isinstance(item, OSError):
                raise TransportIOError("stdio", f"read failed: {item}") from item

            assert isinstance(item, bytes)
            line = item.strip()
            if not line:
                continue
            self._handled += 1
            with _tracer.start_as_current_span("transport.message") as span:
                span.set_attribute(ATTR_TRANSPORT, "stdio")
                reply = await self._handle(line)
            if reply is not None:
                self._write(reply)

    async def _handle(self, line: bytes) -> bytes | None:
        try:
            return await self._dispatcher.handle_raw(line)
        except Exception:
            logger.exception("Unhandled error while processing a STDIO message")
            error = InternalError("Internal error")
            response = JsonRpcResponse.failure(error.code, error.message, None)
            return self._dispatcher.encode(response.to_wire())

    def _write(self, reply: bytes) -> None:
        try:
            self._writer.write(reply + b"\n")
            self._writer.flush()
        except OSError as exc:
            raise TransportIOError("stdio", f"write failed: {exc}") from exc

    def _pump(self, loop: asyncio.AbstractEventLoop, queue: asyncio.Queue[object]) -> None:
        """Reader thread body: forward lines, then EOF or the read error."""
        try:
            while True:
                line = self._reader.readline()
                if not line:
                    break
                if not _post(loop, queue, line):
                    return
        except OSError as exc:
            _post(loop, queue, exc)
            return
        _post(loop, queue, _EOF)


def _post(loop: asyncio.AbstractEventLoop, queue: asyncio.Queue[object], item: object) -> bool:
    """Block until *item* is queued; ``False`` once the loop is gone."""
    if loop.is_closed():
        return False
    try:
        asyncio.run_coroutine_threadsafe(queue.put(item), loop).result()
    except (RuntimeError, concurrent.futures.CancelledError):
        return False
    return True
