# tumailserver
# MIT licensed

import asyncio
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Optional, Tuple

import aiofiles
import aiofiles.os

from .addresses import DEFAULT_ADDRESS, sanitize_address
from .blocklist import SpamBlocklist, reverse_ip
from .commands import Command, Reply, parse_command
from .config import ServerConfig
from .logs import highlight
from .metrics import ServerMetrics
from .notifier import LogNotifier, Notifier
from .store import MessageStore, safe_unlink

logger = logging.getLogger(__name__)

SPOOL_PREFIX = 'MailServer'


class SpoolError(Exception):
    """Writing the captured transcript to the spool file failed."""


class Session:
    """One accepted connection, from banner to the stored transcript.

    Every line the peer sends, commands included, is captured to a spool
    file. When the conversation ends for any reason the spool file is
    promoted to the message store if it is larger than the configured
    minimum, and removed either way.
    """

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter,
                 config: ServerConfig, blocklist: SpamBlocklist, store: MessageStore,
                 notifier: Optional[Notifier] = None, metrics: Optional[ServerMetrics] = None):
        self.reader = reader
        self.writer = writer
        self.config = config
        self.blocklist = blocklist
        self.store = store
        self.notifier = notifier if notifier is not None else LogNotifier()
        self.metrics = metrics if metrics is not None else ServerMetrics()

        peer = writer.get_extra_info('peername')
        self.remote_ip = peer[0] if peer else 'unknown'
        self.reversed_ip = reverse_ip(self.remote_ip)
        self.from_address = DEFAULT_ADDRESS
        self.to_address = DEFAULT_ADDRESS
        self.reading_data = False
        self.stored_path: Optional[Path] = None

        self._spool = None
        self._spool_path: Optional[Path] = None
        self._overflow = False

    @property
    def banner(self) -> str:
        return f"{Reply.SERVICE_READY.value} {self.config.hostname} Tu Mail Server"

    async def run(self) -> Optional[Path]:
        try:
            if not await self._admit():
                return None
            try:
                await self._open_spool()
            except OSError as e:
                logger.error(f"Could not create spool file for {self.remote_ip}: {e}")
                return None

            keep = True
            try:
                await self._converse()
            except SpoolError as e:
                logger.error(f"Spool write failed for {self.remote_ip}, dropping message: {e}")
                keep = False
            finally:
                await self._finish(keep)
            return self.stored_path
        finally:
            await self._close_transport()

    async def _admit(self) -> bool:
        info = f"Accepting mail from {self.remote_ip}"
        if self.blocklist and await self.blocklist.is_blocked(self.remote_ip):
            info += ", listed as a spam source"
            if self.config.spam_detection:
                logger.info(f"{info}, dropped")
                await self.metrics.increment('sessions_rejected')
                return False
        logger.info(info)
        await self.metrics.increment('sessions_accepted')
        return True

    async def _open_spool(self):
        fd, name = await asyncio.to_thread(
            tempfile.mkstemp, prefix=SPOOL_PREFIX, dir=self.config.spool_directory
        )
        os.close(fd)
        self._spool_path = Path(name)
        try:
            self._spool = await aiofiles.open(self._spool_path, 'wb')
        except OSError:
            await safe_unlink(self._spool_path)
            raise
        logger.debug(f"Created spool file {self._spool_path}")

    async def _converse(self):
        if not await self._send(self.banner):
            return

        while True:
            chunk = await self._read_chunk()
            if chunk is None:
                break
            line, dispatchable = chunk
            await self._capture(line)
            if not dispatchable:
                continue

            if self.reading_data:
                if not line.startswith(b'.'):
                    continue
                self.reading_data = False

            text = line.decode('utf-8', errors='replace')
            command, reply = parse_command(text)
            logger.debug(f"Command: {text.rstrip()}")

            if command is Command.MAIL:
                self.from_address = sanitize_address(text)
                logger.debug(f"Sender: {highlight(self.from_address)}")
            elif command is Command.RCPT:
                self.to_address = sanitize_address(text)
                logger.debug(f"Recipient: {highlight(self.to_address)}")
            elif command is Command.DATA:
                self.reading_data = True

            if not await self._send(reply) or command is Command.QUIT:
                break

    async def _read_chunk(self) -> Optional[Tuple[bytes, bool]]:
        """Return the next line and whether it may be dispatched as a command.

        Over-long input comes back in pieces that are never dispatched.
        ``None`` ends the conversation.
        """
        try:
            line = await asyncio.wait_for(self.reader.readuntil(b'\n'), self.config.idle_timeout or None)
        except asyncio.LimitOverrunError as e:
            self._overflow = True
            return await self.reader.readexactly(e.consumed), False
        except asyncio.IncompleteReadError as e:
            if e.partial:
                await self._capture(e.partial)
            return None
        except asyncio.TimeoutError:
            logger.info(f"Session with {self.remote_ip} idle for {self.config.idle_timeout}s, closing")
            return None
        except OSError as e:
            logger.debug(f"Read from {self.remote_ip} failed: {e}")
            return None

        if self._overflow:
            self._overflow = False
            return line, False
        return line, True

    async def _capture(self, data: bytes):
        try:
            await self._spool.write(data)
        except OSError as e:
            raise SpoolError(e) from e

    async def _send(self, reply: str) -> bool:
        try:
            self.writer.write(f"{reply}\r\n".encode())
            await self.writer.drain()
        except OSError as e:
            logger.debug(f"Write to {self.remote_ip} failed: {e}")
            return False
        return True

    async def _finish(self, keep: bool):
        try:
            try:
                await self._sync_spool()
            except OSError as e:
                logger.error(f"Could not sync spool file for {self.remote_ip}: {e}")
                return
            if not keep:
                return
            stats = await aiofiles.os.stat(self._spool_path)
            if stats.st_size <= self.config.min_message_size:
                logger.debug(f"Discarding {stats.st_size} byte transcript from {self.remote_ip}")
                await self.metrics.increment('messages_discarded')
                return

            async with aiofiles.open(self._spool_path, 'rb') as f:
                content = await f.read()
            try:
                self.stored_path = await self.store.finalize(
                    content, self.to_address, self.from_address, self.reversed_ip, int(time.time())
                )
            except OSError as e:
                logger.error(f"Could not store message from {self.remote_ip}: {e}")
                return
            await self.metrics.increment('messages_stored')
            logger.debug(f"Stored message {highlight(self.stored_path)}")

            if self.config.notify_address and self.to_address == self.config.notify_address:
                await self._notify()
        finally:
            await safe_unlink(self._spool_path)

    async def _sync_spool(self):
        try:
            await self._spool.flush()
            await asyncio.to_thread(os.fsync, self._spool.fileno())
        finally:
            await self._spool.close()

    async def _notify(self):
        try:
            await self.notifier.notify(self.to_address, self.from_address)
            await self.metrics.increment('notifications_sent')
        except Exception as e:
            logger.error(f"Notification for {self.to_address} failed: {e}")

    async def _close_transport(self):
        try:
            self.writer.close()
            await self.writer.wait_closed()
        except (ConnectionError, OSError) as e:
            logger.debug(f"Error closing connection to {self.remote_ip}: {e}")
