# tumailserver
# MIT licensed

import asyncio
import logging
import shlex
from typing import Protocol

from .config import ServerConfig
from .logs import highlight

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    async def notify(self, recipient: str, sender: str) -> None:
        ...


class LogNotifier:
    async def notify(self, recipient: str, sender: str) -> None:
        logger.info(f"New mail for {highlight(recipient)} from {highlight(sender)}")


class CommandNotifier:
    """Run a shell command when watched mail arrives.

    ``{sender}`` and ``{recipient}`` in the template are replaced with the
    shell-quoted addresses, e.g.::

        espeak "mail from {sender}"
    """

    def __init__(self, template: str):
        self.template = template

    def render(self, recipient: str, sender: str) -> str:
        return self.template.format(recipient=shlex.quote(recipient), sender=shlex.quote(sender))

    async def notify(self, recipient: str, sender: str) -> None:
        command = self.render(recipient, sender)
        logger.debug(f"Running notification command: {command}")
        process = await asyncio.create_subprocess_shell(
            command,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
        )
        returncode = await process.wait()
        if returncode != 0:
            logger.warning(f"Notification command exited with status {returncode}")


def build_notifier(config: ServerConfig) -> Notifier:
    if config.notify_command:
        return CommandNotifier(config.notify_command)
    return LogNotifier()
