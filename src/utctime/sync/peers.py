"""Peer-status query — the subprocess fallback tier.

The :class:`PeerQuery` protocol is the only thing :class:`SyncMonitor` knows
about; :class:`NtpqPeerQuery` satisfies it by running ``ntpq -p -n`` and
parsing the peer billboard::

         remote           refid      st t when poll reach   delay   offset  jitter
    ==============================================================================
    *162.159.200.1   10.102.8.4       3 u   33   64  377   12.345   -0.123   0.456
    +216.239.35.0    .GOOG.           1 u   30   64  377   20.113    0.871   0.212

Implementations that also satisfy :class:`SystemQuery` report the daemon's
system variables (``ntpq -c rv``): precision, root delay and root dispersion.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import shlex
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, Field

from utctime.sync.errors import PeerQueryError, PeerQueryTimeoutError

logger = logging.getLogger(__name__)

DEFAULT_PEER_COMMAND = "ntpq -p -n"
DEFAULT_SYSTEM_COMMAND = "ntpq -c rv"

# '*' is the system peer, 'o' the system peer disciplined by PPS.
SYSTEM_PEER_TALLIES = frozenset("*o")
_TALLY_CODES = frozenset(" x.-+#*o")
_NO_ASSOCIATIONS = "No association ID's returned"
_COLUMNS = 10
# ntpq leap indicator: two bits, "11" means the clock is unsynchronized.
_LEAP_BITS = 2


class Peer(BaseModel):
    """One row of the peer billboard."""

    tally: str = Field(default=" ", max_length=1)
    remote: str
    refid: str
    stratum: int
    type: str = "u"
    when: str = "-"
    poll: int = 0
    reach: str = "0"
    delay_ms: float = 0.0
    offset_ms: float = 0.0
    jitter_ms: float = 0.0

    @property
    def is_system_peer(self) -> bool:
        return self.tally in SYSTEM_PEER_TALLIES


class PeerList(BaseModel):
    """Parsed peer billboard plus the raw command output."""

    peers: list[Peer] = Field(default_factory=list)
    raw_output: str = ""

    @property
    def system_peer(self) -> Peer | None:
        for peer in self.peers:
            if peer.is_system_peer:
                return peer
        return None


class SystemVariables(BaseModel):
    """The daemon's system variables as reported by ``ntpq -c rv``."""

    stratum: int | None = None
    precision: int | None = None
    root_delay_ms: float | None = None
    root_dispersion_ms: float | None = None
    offset_ms: float | None = None
    leap: int | None = None
    refid: str | None = None
    raw_output: str = ""


@runtime_checkable
class PeerQuery(Protocol):
    """Anything that can report the time daemon's peers."""

    async def query_peers(self, timeout: float) -> PeerList: ...


@runtime_checkable
class SystemQuery(Protocol):
    """Anything that can report the time daemon's system variables."""

    async def query_system(self, timeout: float) -> SystemVariables: ...


def parse_ntpq_peers(output: str) -> PeerList:
    """Parse ``ntpq -p`` output.

    Raises :class:`PeerQueryError` when the text has no billboard header or a
    peer row can't be read.
    """
    lines = output.splitlines()
    if any(_NO_ASSOCIATIONS in line for line in lines):
        return PeerList(peers=[], raw_output=output)

    header = next(
        (i for i, line in enumerate(lines) if line.split()[:2] == ["remote", "refid"]),
        None,
    )
    if header is None:
        msg = "no peer table header in output"
        raise PeerQueryError(msg)

    peers: list[Peer] = []
    for line in lines[header + 1 :]:
        if not line.strip() or set(line.strip()) == {"="}:
            continue
        peers.append(_parse_row(line))
    return PeerList(peers=peers, raw_output=output)


def _parse_row(line: str) -> Peer:
    tally = line[0]
    if tally not in _TALLY_CODES:
        msg = f"unknown tally code {tally!r} in row {line!r}"
        raise PeerQueryError(msg)
    fields = line[1:].split()
    if len(fields) != _COLUMNS:
        msg = f"expected {_COLUMNS} columns, got {len(fields)} in row {line!r}"
        raise PeerQueryError(msg)
    remote, refid, st, kind, when, poll, reach, delay, offset, jitter = fields
    try:
        return Peer(
            tally=tally,
            remote=remote,
            refid=refid,
            stratum=int(st),
            type=kind,
            when=when,
            poll=int(poll),
            reach=reach,
            delay_ms=float(delay),
            offset_ms=float(offset),
            jitter_ms=float(jitter),
        )
    except ValueError as exc:
        raise PeerQueryError(f"bad numeric field in row {line!r}") from exc


# ``ntpq -c rv`` key -> (SystemVariables field, converter)
_SYSTEM_FIELDS = {
    "stratum": ("stratum", int),
    "precision": ("precision", int),
    "rootdelay": ("root_delay_ms", float),
    "rootdisp": ("root_dispersion_ms", float),
    "offset": ("offset_ms", float),
    "leap": ("leap", lambda value: int(value, _LEAP_BITS)),
    "refid": ("refid", str),
}


def parse_ntpq_rv(output: str) -> SystemVariables:
    """Parse ``ntpq -c rv`` output.

    The output is a comma-separated run of ``key=value`` pairs wrapped over
    several lines; unknown keys and bare words are ignored.
    """
    values: dict[str, object] = {}
    for part in output.replace("\n", ",").split(","):
        key, sep, value = part.strip().partition("=")
        if not sep or key not in _SYSTEM_FIELDS:
            continue
        field, convert = _SYSTEM_FIELDS[key]
        try:
            values[field] = convert(value.strip().strip('"'))
        except ValueError as exc:
            raise PeerQueryError(f"bad value for {key!r}: {value!r}") from exc

    if not values:
        msg = "no system variables in output"
        raise PeerQueryError(msg)
    return SystemVariables(raw_output=output, **values)


class NtpqPeerQuery:
    """Runs the peer-status commands as subprocesses with a hard timeout.

    The child is killed whenever the query ends early, whether by timeout or
    by cancellation of the awaiting task.
    """

    def __init__(
        self,
        command: str = DEFAULT_PEER_COMMAND,
        system_command: str = DEFAULT_SYSTEM_COMMAND,
    ) -> None:
        self._argv = shlex.split(command)
        if not self._argv:
            msg = "peer command must not be empty"
            raise ValueError(msg)
        self._system_argv = shlex.split(system_command)
        if not self._system_argv:
            msg = "system command must not be empty"
            raise ValueError(msg)

    @property
    def argv(self) -> list[str]:
        return list(self._argv)

    @property
    def system_argv(self) -> list[str]:
        return list(self._system_argv)

    async def query_peers(self, timeout: float) -> PeerList:
        """Run the peer command and parse its billboard."""
        return parse_ntpq_peers(await self._run(self._argv, timeout))

    async def query_system(self, timeout: float) -> SystemVariables:
        """Run the system-variables command and parse its pairs."""
        return parse_ntpq_rv(await self._run(self._system_argv, timeout))

    async def _run(self, argv: list[str], timeout: float) -> str:
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise PeerQueryError(f"{argv[0]}: {exc.strerror or exc}") from exc

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except TimeoutError:
            raise PeerQueryTimeoutError(timeout) from None
        finally:
            if proc.returncode is None:
                with contextlib.suppress(ProcessLookupError):
                    proc.kill()
                await proc.wait()

        if proc.returncode != 0:
            detail = stderr.decode(errors="replace").strip() or f"exit status {proc.returncode}"
            raise PeerQueryError(detail)

        text = stdout.decode(errors="replace")
        logger.debug("%s returned %d bytes", argv[0], len(text))
        return text
