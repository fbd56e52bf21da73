# tumailserver
# MIT licensed

import asyncio
import ipaddress
import logging
import socket
from pathlib import Path
from typing import FrozenSet, Iterable

logger = logging.getLogger(__name__)


def load_blocklist(path: Path) -> FrozenSet[str]:
    """Read one DNSBL zone suffix per non-empty line."""
    suffixes = set()
    with open(path, 'r') as f:
        for line in f:
            line = line.strip()
            if line:
                suffixes.add(line)
    return frozenset(suffixes)


def reverse_ip(ip: str) -> str:
    """Return the DNSBL lookup form of an address.

    IPv4 reverses the dotted quad (1.2.3.4 -> 4.3.2.1), IPv6 uses the
    reversed nibble form. Anything unparseable is reversed on its dots.
    """
    try:
        address = ipaddress.ip_address(ip)
    except ValueError:
        return '.'.join(reversed(ip.split('.')))
    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped:
        address = address.ipv4_mapped
    if address.version == 4:
        return '.'.join(reversed(str(address).split('.')))
    return address.reverse_pointer[:-len('.ip6.arpa')]


class SpamBlocklist:
    def __init__(self, suffixes: Iterable[str] = ()):
        normalized = set()
        for suffix in suffixes:
            suffix = suffix.strip()
            if suffix:
                normalized.add(suffix if suffix.startswith('.') else f".{suffix}")
        self.suffixes = frozenset(normalized)

    def __len__(self) -> int:
        return len(self.suffixes)

    async def _resolves(self, name: str) -> bool:
        loop = asyncio.get_running_loop()
        try:
            await loop.getaddrinfo(name, None, proto=socket.IPPROTO_TCP)
        except (OSError, UnicodeError) as e:
            logger.debug(f"Lookup of {name} failed: {e}")
            return False
        return True

    async def is_blocked(self, remote_ip: str) -> bool:
        """True when the reversed address resolves under any listed zone."""
        reversed_ip = reverse_ip(remote_ip)
        for suffix in sorted(self.suffixes):
            if await self._resolves(reversed_ip + suffix):
                logger.debug(f"{remote_ip} is listed in {suffix.lstrip('.')}")
                return True
        return False
