"""Pytest configuration and shared fixtures."""
import socket

import pytest

from p2p import Connection
from session import ChatSession


class FakeConnection:
    """Stands in for the write half; records or rejects outgoing lines."""

    def __init__(self, fail=False):
        self.sent = []
        self.fail = fail

    def send_line(self, text):
        if self.fail:
            raise BrokenPipeError("peer went away")
        self.sent.append(text)
        return len(text) + 1


@pytest.fixture
def session():
    return ChatSession()


@pytest.fixture
def fake_connection():
    return FakeConnection()


@pytest.fixture
def socket_pair():
    """A connected Connection plus the raw socket on the other end."""
    local, remote = socket.socketpair()
    remote.settimeout(2)
    connection = Connection(local, "peer")
    yield connection, remote
    connection.close()
    remote.close()


def read_exactly(sock, size):
    data = b""
    while len(data) < size:
        chunk = sock.recv(size - len(data))
        if not chunk:
            break
        data += chunk
    return data
