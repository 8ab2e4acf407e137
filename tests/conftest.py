"""
Shared fixtures for lan_recon tests.

Provides quiet loggers, canned OS command output and fake TCP streams so
discovery and port scanning run without touching the network.
"""

import asyncio
from typing import Dict, Optional, Sequence, Tuple

import pytest

from lan_recon.utils.error_handler import ErrorHandler
from lan_recon.utils.logger import Logger, LogLevel


class FakeRunner:
    """CommandRunner returning canned stdout keyed by argv."""

    def __init__(self, outputs: Optional[Dict[Tuple[str, ...], Optional[str]]] = None):
        self.outputs = dict(outputs or {})
        self.calls = []

    def __call__(self, args: Sequence[str], timeout: float) -> Optional[str]:
        self.calls.append(tuple(args))
        return self.outputs.get(tuple(args))


class FakeReader:
    """Stream reader that returns a fixed banner, or hangs when asked to."""

    def __init__(self, data: bytes = b"", hang: bool = False):
        self.data = data
        self.hang = hang

    async def read(self, n: int = -1) -> bytes:
        if self.hang:
            await asyncio.sleep(10)
        return self.data[:n] if n >= 0 else self.data


class FakeWriter:
    """Stream writer that records what was written and whether it was closed."""

    def __init__(self):
        self.written = b""
        self.closed = False

    def write(self, data: bytes) -> None:
        self.written += data

    async def drain(self) -> None:
        return None

    def close(self) -> None:
        self.closed = True


class FakeNetwork:
    """
    Connector standing in for asyncio.open_connection.

    ``open_ports`` maps (ip, port) to the banner sent on connect. Ports in
    ``hanging`` never complete the connection; every other port refuses.
    """

    def __init__(self, open_ports=None, hanging=(), delay: float = 0.0):
        self.open_ports = dict(open_ports or {})
        self.hanging = set(hanging)
        self.delay = delay
        self.writers = {}
        self.active_hosts: Dict[str, int] = {}
        self.max_active_hosts = 0

    async def __call__(self, host: str, port: int):
        self.active_hosts[host] = self.active_hosts.get(host, 0) + 1
        self.max_active_hosts = max(self.max_active_hosts, len(self.active_hosts))
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if (host, port) in self.hanging:
                await asyncio.sleep(10)
            if (host, port) not in self.open_ports:
                raise ConnectionRefusedError(f"{host}:{port} refused")
        finally:
            self.active_hosts[host] -= 1
            if not self.active_hosts[host]:
                del self.active_hosts[host]

        writer = FakeWriter()
        self.writers[(host, port)] = writer
        return FakeReader(self.open_ports[(host, port)]), writer


# === FIXTURES ===

@pytest.fixture
def quiet_logger():
    """Logger that only prints errors."""
    return Logger("test", min_level=LogLevel.ERROR)


@pytest.fixture
def error_handler(quiet_logger):
    return ErrorHandler(quiet_logger)


@pytest.fixture
def fake_runner():
    return FakeRunner()


@pytest.fixture
def fake_network():
    return FakeNetwork()
