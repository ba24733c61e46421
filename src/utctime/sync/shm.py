"""Read-only access to the NTP shared-memory reference-clock segment.

The segment is owned and written by an external time daemon (gpsd, chrony,
a PPS bridge) using the ``struct shmTime`` layout of ntpd's SHM driver::

    struct shmTime {
        int    mode;
        volatile int count;
        time_t clockTimeStampSec;
        int    clockTimeStampUSec;
        time_t receiveTimeStampSec;
        int    receiveTimeStampUSec;
        int    leap;
        int    precision;
        int    nsamples;
        volatile int valid;
        unsigned clockTimeStampNSec;
        unsigned receiveTimeStampNSec;
        int    dummy[8];
    };

The writer updates the structure without locking, bumping ``count`` before and
after each update. A sample is only accepted when ``count`` is even and
unchanged across the payload read; everything else is discarded and retried.

Nothing outside this module sees the raw mapping: callers get a typed
:class:`ShmSample` or a :class:`~utctime.sync.errors.SyncError`.
"""

from __future__ import annotations

import ctypes
import logging
import mmap
import os
import struct
import time
from typing import TYPE_CHECKING, NamedTuple, Protocol

from utctime.sync.errors import SegmentUnavailableError, TornReadError

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

SHM_KEY_BASE = 0x4E545030  # "NTP0"

# Native byte order and alignment: the daemon writes the C struct as laid out
# by the platform compiler, and time_t is a C long on Linux.
LAYOUT_FORMAT = "@iililiiiiiII8i"
LAYOUT_SIZE = struct.calcsize(LAYOUT_FORMAT)
COUNT_FORMAT = "@i"
COUNT_OFFSET = struct.calcsize("@i")

_SHM_RDONLY = 0o10000
_NANOS_PER_SECOND = 1_000_000_000

DEFAULT_MAX_RETRIES = 3


class ShmSample(NamedTuple):
    """One consistent sample from the segment."""

    mode: int
    count: int
    clock_sec: int
    clock_nsec: int
    receive_sec: int
    receive_nsec: int
    leap: int
    precision: int
    nsamples: int
    valid: int

    @property
    def clock_time(self) -> float:
        """Reference (true) time of the sample, Unix seconds."""
        return self.clock_sec + self.clock_nsec / _NANOS_PER_SECOND

    @property
    def receive_time(self) -> float:
        """Local system time when the reference was taken, Unix seconds."""
        return self.receive_sec + self.receive_nsec / _NANOS_PER_SECOND

    @property
    def offset_ms(self) -> float:
        """Reference minus local clock, in milliseconds."""
        seconds = self.clock_sec - self.receive_sec
        nanos = self.clock_nsec - self.receive_nsec
        return seconds * 1_000.0 + nanos / 1_000_000.0

    @property
    def is_valid(self) -> bool:
        return self.valid != 0


def _pick_nanos(usec: int, nsec: int) -> int:
    # Older writers leave the NSec fields zero; trust them only when they agree
    # with the microsecond field.
    if 0 <= nsec < _NANOS_PER_SECOND and nsec // 1_000 == usec:
        return nsec
    return usec * 1_000


def decode_sample(raw: bytes) -> ShmSample:
    """Unpack one ``struct shmTime`` image into a :class:`ShmSample`."""
    if len(raw) < LAYOUT_SIZE:
        msg = f"segment image is {len(raw)} bytes, expected at least {LAYOUT_SIZE}"
        raise SegmentUnavailableError(msg)
    fields = struct.unpack_from(LAYOUT_FORMAT, raw, 0)
    (mode, count, clock_sec, clock_usec, recv_sec, recv_usec,
     leap, precision, nsamples, valid, clock_nsec, recv_nsec) = fields[:12]
    return ShmSample(
        mode=mode,
        count=count,
        clock_sec=clock_sec,
        clock_nsec=_pick_nanos(clock_usec, clock_nsec),
        receive_sec=recv_sec,
        receive_nsec=_pick_nanos(recv_usec, recv_nsec),
        leap=leap,
        precision=precision,
        nsamples=nsamples,
        valid=valid,
    )


# ---------------------------------------------------------------------------
# Segment backends
# ---------------------------------------------------------------------------


class Segment(Protocol):
    """A read-only window onto the shared structure."""

    @property
    def size(self) -> int: ...

    def read(self, offset: int, size: int) -> bytes: ...

    def close(self) -> None: ...


class BufferSegment:
    """In-process segment over a mutable buffer (tests and local bridges)."""

    def __init__(self, buffer: bytearray) -> None:
        self._buffer = buffer

    @property
    def size(self) -> int:
        return len(self._buffer)

    def read(self, offset: int, size: int) -> bytes:
        return bytes(self._buffer[offset : offset + size])

    def close(self) -> None:
        """Nothing to release."""


class MappedFileSegment:
    """Read-only ``mmap`` of a file-backed segment (e.g. under ``/dev/shm``)."""

    def __init__(self, path: str) -> None:
        self._path = path
        try:
            fd = os.open(path, os.O_RDONLY)
        except OSError as exc:
            raise SegmentUnavailableError(f"{path}: {exc.strerror}") from exc
        try:
            length = os.fstat(fd).st_size
            if length < LAYOUT_SIZE:
                msg = f"{path} is {length} bytes, expected at least {LAYOUT_SIZE}"
                raise SegmentUnavailableError(msg)
            self._map = mmap.mmap(fd, 0, access=mmap.ACCESS_READ)
        except OSError as exc:
            raise SegmentUnavailableError(f"{path}: {exc}") from exc
        finally:
            os.close(fd)

    @property
    def size(self) -> int:
        return len(self._map)

    def read(self, offset: int, size: int) -> bytes:
        return self._map[offset : offset + size]

    def close(self) -> None:
        self._map.close()


class SysVSegment:
    """System V segment attached read-only via libc ``shmget``/``shmat``.

    ``shmget`` is called with the expected structure size, so a segment that
    is smaller than ``struct shmTime`` is rejected by the kernel with EINVAL.
    """

    def __init__(self, unit: int = 0) -> None:
        self.key = SHM_KEY_BASE + unit
        libc = _load_libc()
        shmid = libc.shmget(self.key, LAYOUT_SIZE, 0)
        if shmid < 0:
            errno = ctypes.get_errno()
            raise SegmentUnavailableError(f"shmget(0x{self.key:08x}): {os.strerror(errno)}")
        address = libc.shmat(shmid, None, _SHM_RDONLY)
        if address is None or address == ctypes.c_void_p(-1).value:
            errno = ctypes.get_errno()
            raise SegmentUnavailableError(f"shmat(0x{self.key:08x}): {os.strerror(errno)}")
        self._libc = libc
        self._address: int | None = address

    @property
    def size(self) -> int:
        return LAYOUT_SIZE

    def read(self, offset: int, size: int) -> bytes:
        if self._address is None:
            msg = "Segment detached"
            raise SegmentUnavailableError(msg)
        if offset < 0 or offset + size > LAYOUT_SIZE:
            msg = f"read [{offset}, {offset + size}) outside segment"
            raise SegmentUnavailableError(msg)
        return ctypes.string_at(self._address + offset, size)

    def close(self) -> None:
        if self._address is not None:
            self._libc.shmdt(ctypes.c_void_p(self._address))
            self._address = None


def _load_libc() -> ctypes.CDLL:
    try:
        libc = ctypes.CDLL(None, use_errno=True)
        libc.shmget.argtypes = [ctypes.c_int, ctypes.c_size_t, ctypes.c_int]
        libc.shmget.restype = ctypes.c_int
        libc.shmat.argtypes = [ctypes.c_int, ctypes.c_void_p, ctypes.c_int]
        libc.shmat.restype = ctypes.c_void_p
        libc.shmdt.argtypes = [ctypes.c_void_p]
        libc.shmdt.restype = ctypes.c_int
    except (OSError, AttributeError) as exc:
        raise SegmentUnavailableError(f"System V shared memory not supported: {exc}") from exc
    return libc


def segment_factory(path: str | None = None, unit: int = 0) -> Callable[[], Segment]:
    """Return a callable that attaches the configured segment on each call."""
    if path:
        return lambda: MappedFileSegment(path)
    return lambda: SysVSegment(unit)


# ---------------------------------------------------------------------------
# Reader
# ---------------------------------------------------------------------------


class ShmReader:
    """Applies the sequence double-read protocol to a segment.

    The segment is attached for the duration of one :meth:`read_sample` call,
    so a daemon restart that recreates the segment is picked up on the next
    query. Blocking; run it off the event loop.
    """

    def __init__(
        self,
        open_segment: Callable[[], Segment],
        *,
        max_retries: int = DEFAULT_MAX_RETRIES,
    ) -> None:
        if max_retries < 1:
            msg = "max_retries must be at least 1"
            raise ValueError(msg)
        self._open_segment = open_segment
        self._max_retries = max_retries

    @property
    def max_retries(self) -> int:
        return self._max_retries

    def read_sample(self) -> ShmSample:
        """Return one consistent sample.

        Raises :class:`SegmentUnavailableError` if the segment can't be
        attached and :class:`TornReadError` if every attempt was torn.
        """
        segment = self._open_segment()
        try:
            if segment.size < LAYOUT_SIZE:
                msg = f"segment is {segment.size} bytes, expected at least {LAYOUT_SIZE}"
                raise SegmentUnavailableError(msg)
            return self._read_consistent(segment)
        finally:
            segment.close()

    def _read_consistent(self, segment: Segment) -> ShmSample:
        for attempt in range(1, self._max_retries + 1):
            before = self._read_count(segment)
            if before % 2:
                logger.debug("SHM update in progress (count=%d), attempt %d", before, attempt)
                time.sleep(0)
                continue

            sample = decode_sample(segment.read(0, LAYOUT_SIZE))

            after = self._read_count(segment)
            if before == after and sample.count == before:
                return sample
            logger.debug(
                "Torn SHM read (count %d -> %d), attempt %d", before, after, attempt
            )
            time.sleep(0)

        raise TornReadError(self._max_retries)

    @staticmethod
    def _read_count(segment: Segment) -> int:
        raw = segment.read(COUNT_OFFSET, struct.calcsize(COUNT_FORMAT))
        return struct.unpack(COUNT_FORMAT, raw)[0]
