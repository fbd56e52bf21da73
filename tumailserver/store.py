# tumailserver
# MIT licensed

import asyncio
import logging
import os
import uuid
from pathlib import Path

import aiofiles
import aiofiles.os

logger = logging.getLogger(__name__)

MESSAGE_NAME_FORMAT = '{to}--{sender}--{remote_ip}--{timestamp}.txt'


# --- Atomic File Operations ---
async def atomic_write(filepath: Path, content: bytes):
    """Write content to file atomically using a temp file private to this writer"""
    temp_path = filepath.with_name(f"{filepath.name}.{uuid.uuid4().hex}.tmp")
    try:
        async with aiofiles.open(temp_path, 'wb') as f:
            await f.write(content)
        await asyncio.to_thread(os.replace, temp_path, filepath)
    except Exception:
        if temp_path.exists():
            await asyncio.to_thread(os.unlink, temp_path)
        raise


async def safe_unlink(path: Path):
    """Safe file deletion with error handling"""
    try:
        if await aiofiles.os.path.exists(path):
            await aiofiles.os.remove(path)
    except OSError as e:
        logger.error(f"Failed to delete file {path}: {e}")
        # Don't re-raise for cleanup operations


def message_name(to_address: str, from_address: str, remote_ip: str, timestamp: int) -> str:
    return MESSAGE_NAME_FORMAT.format(
        to=to_address, sender=from_address, remote_ip=remote_ip, timestamp=int(timestamp)
    )


class MessageStore:
    """Materializes captured transcripts in the output directory."""

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def ensure_directory(self):
        self.directory.mkdir(parents=True, exist_ok=True)

    def count(self) -> int:
        if not self.directory.is_dir():
            return 0
        return sum(1 for p in self.directory.iterdir() if p.suffix == '.txt')

    async def finalize(self, content: bytes, to_address: str, from_address: str,
                       remote_ip: str, timestamp: int) -> Path:
        # same-second duplicates share a name; the later one replaces the earlier
        path = self.directory / message_name(to_address, from_address, remote_ip, timestamp)
        await atomic_write(path, content)
        return path
