# tumailserver
# MIT licensed

import asyncio
import logging
from typing import Optional, Set

from .blocklist import SpamBlocklist
from .config import ServerConfig
from .metrics import ServerMetrics
from .notifier import Notifier, build_notifier
from .session import Session
from .store import MessageStore

logger = logging.getLogger(__name__)


# --- Task Manager for Proper Cleanup ---
class TaskManager:
    def __init__(self):
        self.tasks: Set[asyncio.Task] = set()

    def create_task(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self.tasks.add(task)
        task.add_done_callback(self.tasks.discard)
        return task

    async def cancel_all(self):
        if self.tasks:
            logger.info(f"Cancelling {len(self.tasks)} active sessions...")
            for task in list(self.tasks):
                if not task.done():
                    task.cancel()
            try:
                await asyncio.gather(*self.tasks, return_exceptions=True)
            finally:
                self.tasks.clear()
                logger.info("All sessions cancelled.")


class MailServer:
    """Accepts connections and runs one Session task per peer."""

    def __init__(self, config: ServerConfig, blocklist: Optional[SpamBlocklist] = None,
                 store: Optional[MessageStore] = None, notifier: Optional[Notifier] = None):
        self.config = config
        self.blocklist = blocklist if blocklist is not None else SpamBlocklist()
        self.store = store if store is not None else MessageStore(config.output_directory)
        self.notifier = notifier if notifier is not None else build_notifier(config)
        self.metrics = ServerMetrics()
        self.task_manager = TaskManager()
        self._server: Optional[asyncio.AbstractServer] = None

    @property
    def port(self) -> int:
        if self._server is None or not self._server.sockets:
            return self.config.port
        return self._server.sockets[0].getsockname()[1]

    async def start(self):
        self.store.ensure_directory()
        self._server = await asyncio.start_server(
            self._accept,
            host=self.config.host,
            port=self.config.port,
            limit=self.config.max_line_length,
        )
        logger.info(f"Mail server listening on {self.config.host}:{self.port}")

    def _accept(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        session = Session(
            reader, writer, self.config, self.blocklist, self.store,
            notifier=self.notifier, metrics=self.metrics,
        )
        task = self.task_manager.create_task(session.run())
        task.add_done_callback(self._session_done)

    def _session_done(self, task: asyncio.Task):
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Session ended with an unexpected error: {exc!r}")

    async def serve_forever(self, shutdown_event: asyncio.Event):
        if self._server is None:
            await self.start()
        await shutdown_event.wait()

    async def close(self):
        if self._server is None:
            return
        self._server.close()
        # wait_closed() also waits for open connections, so end the sessions first
        await self.task_manager.cancel_all()
        await self._server.wait_closed()
        self._server = None
