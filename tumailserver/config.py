# tumailserver
# MIT licensed

import logging
import os
import socket
import tempfile
from configparser import ConfigParser
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

# --- Constants ---
DEFAULT_PORT = 25
DEFAULT_IDLE_TIMEOUT = 300
MAX_LINE_LENGTH = 1024
MIN_MESSAGE_SIZE = 50
DEFAULT_CONFIG_PATH = 'config.ini'


@dataclass(frozen=True)
class ServerConfig:
    host: str = '0.0.0.0'
    port: int = DEFAULT_PORT
    hostname: str = 'localhost'
    output_directory: Path = Path('mail')
    spool_directory: Path = Path(tempfile.gettempdir())
    idle_timeout: float = DEFAULT_IDLE_TIMEOUT
    max_line_length: int = MAX_LINE_LENGTH
    min_message_size: int = MIN_MESSAGE_SIZE
    blocklist_file: Optional[Path] = None
    spam_detection: bool = True
    notify_address: str = ''
    notify_command: str = ''
    verbose: bool = False


def default_config() -> ConfigParser:
    config = ConfigParser(interpolation=None)
    config['server'] = {
        'host': '0.0.0.0',
        'port': str(DEFAULT_PORT),
        'hostname': socket.getfqdn(),
        'output_directory': 'mail',
        'spool_directory': tempfile.gettempdir(),
        'idle_timeout': str(DEFAULT_IDLE_TIMEOUT),
        'max_line_length': str(MAX_LINE_LENGTH),
        'min_message_size': str(MIN_MESSAGE_SIZE),
    }
    config['spam'] = {
        'blocklist_file': '',
        'spam_detection': 'true',
    }
    config['notify'] = {
        'address': '',
        'command': '',
    }
    config['logging'] = {
        'verbose': 'false',
    }
    return config


def load_config(path: Optional[Path] = None, create: bool = True) -> ServerConfig:
    """Read config.ini on top of the defaults and return an immutable snapshot.

    A missing file is written out with the defaults when ``create`` is set.
    """
    config = default_config()
    config_path = Path(path or DEFAULT_CONFIG_PATH)
    if config_path.exists():
        config.read(config_path)
    elif create:
        with open(config_path, 'w') as f:
            config.write(f)
        logger.info(f"Created default {config_path}")

    return from_parser(config)


def _expand(value: str) -> Path:
    return Path(os.path.expanduser(value))


def from_parser(config: ConfigParser) -> ServerConfig:
    server = config['server']
    blocklist_raw = config.get('spam', 'blocklist_file').strip()
    return ServerConfig(
        host=server.get('host'),
        port=server.getint('port'),
        hostname=server.get('hostname'),
        output_directory=_expand(server.get('output_directory')),
        spool_directory=_expand(server.get('spool_directory')),
        idle_timeout=server.getfloat('idle_timeout'),
        max_line_length=server.getint('max_line_length'),
        min_message_size=server.getint('min_message_size'),
        blocklist_file=_expand(blocklist_raw) if blocklist_raw else None,
        spam_detection=config.getboolean('spam', 'spam_detection'),
        notify_address=config.get('notify', 'address').strip(),
        notify_command=config.get('notify', 'command').strip(),
        verbose=config.getboolean('logging', 'verbose'),
    )


def apply_overrides(config: ServerConfig, args) -> ServerConfig:
    """Overlay command line flags that were actually given."""
    overrides = {}
    if getattr(args, 'host', None) is not None:
        overrides['host'] = args.host
    if getattr(args, 'port', None) is not None:
        overrides['port'] = args.port
    if getattr(args, 'out', None) is not None:
        overrides['output_directory'] = _expand(args.out)
    if getattr(args, 'bad', None) is not None:
        overrides['blocklist_file'] = _expand(args.bad) if args.bad else None
    if getattr(args, 'spam', None) is not None:
        overrides['spam_detection'] = args.spam
    if getattr(args, 'debug', None):
        overrides['verbose'] = True
    if getattr(args, 'alter', None) is not None:
        overrides['notify_address'] = args.alter
    return replace(config, **overrides)
