# tests/conftest.py
import asyncio

import pytest

from x32_reflector.config import Configuration
from x32_reflector.errors import BindError, SendError
from x32_reflector.relay import Relay


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeSocket:
    """Stands in for a bound DeviceSocket, recording everything sent through it"""

    def __init__(self, local_address):
        self.local_address = local_address
        self.sent = []  # [(data, address, port)]
        self.handler = None
        self.error_handler = None
        self.closed = False
        self.failing = set()  # {(address, port)} that raise on send

    def on_message(self, handler):
        self.handler = handler

    def on_error(self, handler):
        self.error_handler = handler

    def send(self, data, address, port):
        if (address, port) in self.failing:
            raise SendError(address, port, OSError("Network is unreachable"))
        self.sent.append((data, address, port))

    def receive(self, data, addr=("10.1.10.20", 10023)):
        self.handler(data, addr)

    def report_error(self, exc):
        self.error_handler(exc)

    def close(self):
        self.closed = True


class FakeBinder:
    """Async bind function handing out FakeSockets, optionally failing on the n-th call"""

    def __init__(self, fail_on=None):
        self.sockets = []
        self.fail_on = fail_on

    async def __call__(self, local_address, port=None):
        if self.fail_on is not None and len(self.sockets) + 1 == self.fail_on:
            raise BindError(local_address, port, OSError("Address already in use"))
        socket = FakeSocket(local_address)
        self.sockets.append(socket)
        return socket


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def binder():
    return FakeBinder()


@pytest.fixture
def config():
    return Configuration.model_validate({
        "udp": {"bind": "127.0.0.1"},
        "devices": [
            {"name": "Primary", "address": "10.1.10.20", "port": 10023},
            {"name": "Secondary", "address": "10.1.10.21", "port": 10023},
        ],
        "timeout": 1,
    })


@pytest.fixture
def relay(config, binder, clock):
    return asyncio.run(Relay.create(config, bind=binder, clock=clock))
