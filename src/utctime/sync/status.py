"""SyncMonitor — two-tier clock-sync status with graceful degradation.

Tier 1 reads the shared-memory segment on a worker thread; tier 2 runs the
peer-status command. Both share one deadline, so :meth:`query_status` never
holds the caller for longer than its timeout, and it never raises.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from utctime.sync.errors import InvalidSampleError, StaleSampleError, SyncError
from utctime.sync.models import UNSYNCED_STRATUM, SyncSource, SyncStatus
from utctime.sync.peers import SystemQuery
from utctime.utils.telemetry import ATTR_SYNC_SOURCE, get_tracer

if TYPE_CHECKING:
    from collections.abc import Callable

    from utctime.sync.peers import PeerList, PeerQuery
    from utctime.sync.shm import ShmReader, ShmSample

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)

DEFAULT_TIMEOUT = 2.0
DEFAULT_MAX_SAMPLE_AGE = 64.0
# A clock fed directly by a reference (stratum 0) is itself stratum 1.
REFCLOCK_STRATUM = 1


class SyncMonitor:
    """Produces a fresh :class:`SyncStatus` for every call.

    Usage::

        monitor = SyncMonitor(ShmReader(segment_factory(unit=0)), NtpqPeerQuery())
        status = await monitor.query_status()

    Either tier may be ``None`` to disable it.
    """

    def __init__(
        self,
        shm_reader: ShmReader | None = None,
        peer_query: PeerQuery | None = None,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        max_sample_age: float = DEFAULT_MAX_SAMPLE_AGE,
        reference: str = "SHM",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._shm = shm_reader
        self._peers = peer_query
        self._timeout = timeout
        self._max_sample_age = max_sample_age
        self._reference = reference
        self._clock = clock

    @property
    def timeout(self) -> float:
        return self._timeout

    async def query_status(self, timeout: float | None = None) -> SyncStatus:
        """Return the current status, degrading to ``available: false``."""
        budget = self._timeout if timeout is None else timeout
        loop = asyncio.get_running_loop()
        deadline = loop.time() + budget

        with _tracer.start_as_current_span("sync.query_status") as span:
            status = await self._query(deadline, loop)
            span.set_attribute(ATTR_SYNC_SOURCE, status.source.value)
        return status

    async def _query(self, deadline: float, loop: asyncio.AbstractEventLoop) -> SyncStatus:
        errors: list[str] = []

        if self._shm is not None:
            try:
                sample = await asyncio.wait_for(
                    asyncio.to_thread(self._shm.read_sample),
                    timeout=max(deadline - loop.time(), 0.0),
                )
                return self._from_sample(sample)
            except TimeoutError:
                errors.append("shared memory read timed out")
                logger.warning("Shared-memory read exceeded the sync timeout")
            except SyncError as exc:
                errors.append(str(exc))
                logger.debug("Shared-memory tier unavailable: %s", exc)

        if self._peers is not None:
            remaining = deadline - loop.time()
            if remaining <= 0:
                errors.append("no time left for peer query")
            else:
                try:
                    peers = await asyncio.wait_for(
                        self._peers.query_peers(remaining), timeout=remaining
                    )
                    status = self._from_peers(peers)
                    if status.synced:
                        status = await self._with_system_variables(status, deadline, loop)
                    return status
                except TimeoutError:
                    errors.append(f"peer query timed out after {remaining:.2f}s")
                    logger.warning("Peer query exceeded the sync timeout")
                except SyncError as exc:
                    errors.append(str(exc))
                    logger.debug("Peer-query tier unavailable: %s", exc)

        return SyncStatus.unavailable("; ".join(errors) or None, sampled_at=self._now())

    def _from_sample(self, sample: ShmSample) -> SyncStatus:
        if not sample.is_valid:
            raise InvalidSampleError
        now = self._clock()
        age = now - sample.receive_time
        if age > self._max_sample_age:
            raise StaleSampleError(age, self._max_sample_age)
        return SyncStatus(
            available=True,
            synced=True,
            offset_ms=sample.offset_ms,
            stratum=REFCLOCK_STRATUM,
            source=SyncSource.SHARED_MEMORY,
            sampled_at=datetime.fromtimestamp(now, tz=timezone.utc),
            precision=sample.precision,
            leap=sample.leap,
            reference=self._reference,
        )

    def _from_peers(self, peers: PeerList) -> SyncStatus:
        system_peer = peers.system_peer
        now = self._now()
        if system_peer is None:
            return SyncStatus(
                available=True,
                synced=False,
                stratum=UNSYNCED_STRATUM,
                source=SyncSource.PEER_QUERY,
                sampled_at=now,
            )
        return SyncStatus(
            available=True,
            synced=True,
            offset_ms=system_peer.offset_ms,
            stratum=min(system_peer.stratum + 1, UNSYNCED_STRATUM),
            source=SyncSource.PEER_QUERY,
            sampled_at=now,
            reference=system_peer.remote,
        )

    async def _with_system_variables(
        self, status: SyncStatus, deadline: float, loop: asyncio.AbstractEventLoop
    ) -> SyncStatus:
        """Add precision and root distance when the peer tier can report them."""
        if not isinstance(self._peers, SystemQuery):
            return status
        remaining = deadline - loop.time()
        if remaining <= 0:
            return status
        try:
            system = await asyncio.wait_for(self._peers.query_system(remaining), timeout=remaining)
        except (TimeoutError, SyncError) as exc:
            logger.debug("System variables unavailable: %s", str(exc) or "timed out")
            return status
        return status.model_copy(
            update={
                "precision": system.precision,
                "root_delay_ms": system.root_delay_ms,
                "root_dispersion_ms": system.root_dispersion_ms,
                "leap": system.leap,
            }
        )

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self._clock(), tz=timezone.utc)
