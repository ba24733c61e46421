"""Shared fixtures for utctime tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from utctime.config import ServerSettings
from utctime.protocol.dispatcher import Dispatcher
from utctime.sync.errors import PeerQueryError
from utctime.sync.peers import PeerList, SystemVariables, parse_ntpq_peers, parse_ntpq_rv
from utctime.sync.status import SyncMonitor
from utctime.tools import build_registry, legacy_handlers

if TYPE_CHECKING:
    from collections.abc import Callable

    from utctime.protocol.registry import Registry

NTPQ_SYNCED = """\
     remote           refid      st t when poll reach   delay   offset  jitter
==============================================================================
*162.159.200.1   10.102.8.4       2 u   33   64  377   12.345   -0.123   0.456
+216.239.35.0    .GOOG.           1 u   30   64  377   20.113    0.871   0.212
"""

NTPQ_UNSYNCED = """\
     remote           refid      st t when poll reach   delay   offset  jitter
==============================================================================
 162.159.200.1   .INIT.          16 u    -   64    0    0.000    0.000   0.000
"""

NTPQ_RV = """\
associd=0 status=0615 leap_none, sync_ntp, 1 event, clock_sync,
version="ntpd 4.2.8p15@1.3728-o Wed Feb 16 17:13:02 UTC 2022 (1)",
processor="x86_64", system="Linux/6.1.0", leap=00, stratum=3,
precision=-23, rootdelay=12.345, rootdisp=20.456, refid=162.159.200.1,
reftime=e9a1b2c3.12345678  Sun, Mar 10 2024 12:34:56.123,
clock=e9a1b2c4.23456789  Sun, Mar 10 2024 12:34:57.234, peer=12345, tc=6,
mintc=3, offset=-0.123456, frequency=-12.345, sys_jitter=0.456000,
clk_jitter=0.012, clk_wander=0.003
"""


class StaticPeerQuery:
    """Returns a fixed billboard, or raises a fixed error.

    System variables are reported only when *system_output* is given.
    """

    def __init__(
        self,
        output: str | None = None,
        error: Exception | None = None,
        system_output: str | None = None,
    ) -> None:
        self.output = output
        self.error = error
        self.system_output = system_output
        self.calls: list[float] = []

    async def query_peers(self, timeout: float) -> PeerList:
        self.calls.append(timeout)
        if self.error is not None:
            raise self.error
        return parse_ntpq_peers(self.output or "")

    async def query_system(self, timeout: float) -> SystemVariables:
        if self.system_output is None:
            msg = "no system variables"
            raise PeerQueryError(msg)
        return parse_ntpq_rv(self.system_output)


@pytest.fixture
def ntpq_synced() -> str:
    return NTPQ_SYNCED


@pytest.fixture
def ntpq_unsynced() -> str:
    return NTPQ_UNSYNCED


@pytest.fixture
def ntpq_rv() -> str:
    return NTPQ_RV


@pytest.fixture
def static_peer_query() -> Callable[..., StaticPeerQuery]:
    return StaticPeerQuery


@pytest.fixture
def settings() -> ServerSettings:
    return ServerSettings()


@pytest.fixture
def unavailable_monitor() -> SyncMonitor:
    """A monitor with no tiers: every query reports ``available: false``."""
    return SyncMonitor()


@pytest.fixture
def synced_monitor() -> SyncMonitor:
    return SyncMonitor(peer_query=StaticPeerQuery(NTPQ_SYNCED))


@pytest.fixture
def registry(synced_monitor: SyncMonitor, settings: ServerSettings) -> Registry:
    return build_registry(synced_monitor, StaticPeerQuery(NTPQ_SYNCED), settings)


@pytest.fixture
def dispatcher(registry: Registry, synced_monitor: SyncMonitor, settings: ServerSettings) -> Dispatcher:
    return Dispatcher(registry, legacy=legacy_handlers(synced_monitor, settings))
