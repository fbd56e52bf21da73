"""Shared fixtures for session and server tests."""

import asyncio

import pytest

from tumailserver.config import ServerConfig


class FakeWriter:
    """Stands in for asyncio.StreamWriter and records everything written."""

    def __init__(self, peer=('127.0.0.1', 40000)):
        self.peer = peer
        self.data = bytearray()
        self.closed = False

    def get_extra_info(self, name, default=None):
        if name == 'peername':
            return self.peer
        return default

    def write(self, data):
        self.data.extend(data)

    async def drain(self):
        pass

    def close(self):
        self.closed = True

    async def wait_closed(self):
        pass

    def replies(self):
        return self.data.decode().split('\r\n')[:-1]


def make_reader(*lines, limit=1024, eof=True):
    reader = asyncio.StreamReader(limit=limit)
    for line in lines:
        reader.feed_data(line)
    if eof:
        reader.feed_eof()
    return reader


@pytest.fixture
def config(tmp_path):
    output = tmp_path / 'mail'
    spool = tmp_path / 'spool'
    output.mkdir()
    spool.mkdir()
    return ServerConfig(
        host='127.0.0.1',
        port=0,
        hostname='mail.test',
        output_directory=output,
        spool_directory=spool,
        idle_timeout=5,
    )
