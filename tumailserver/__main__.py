# tumailserver
# MIT licensed

import argparse
import asyncio
import logging
import signal
import sys

from . import __version__
from .blocklist import SpamBlocklist, load_blocklist
from .config import apply_overrides, load_config
from .logs import highlight, setup_logging
from .server import MailServer
from .store import MessageStore

logger = logging.getLogger('tumailserver')


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog='tumailserver',
        description='Minimal inbound mail receiver that stores raw SMTP transcripts',
    )
    parser.add_argument('--config', default='config.ini', help='Configuration file (default: config.ini)')
    parser.add_argument('--host', help='Address to listen on')
    parser.add_argument('--port', type=int, help='Port to listen on')
    parser.add_argument('--out', help='Directory received mail is written to')
    parser.add_argument('--bad', help='File of DNSBL zones, one per line')
    parser.add_argument('--spam', dest='spam', action='store_true', default=None,
                        help='Drop connections from listed addresses')
    parser.add_argument('--no-spam', dest='spam', action='store_false',
                        help='Accept listed addresses, only log them')
    parser.add_argument('--debug', action='store_true', help='Verbose logging')
    parser.add_argument('--alter', help='Recipient address that triggers a notification')
    parser.add_argument('--version', action='version', version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


# --- Main Application ---
async def run(config):
    store = MessageStore(config.output_directory)
    store.ensure_directory()
    config.spool_directory.mkdir(parents=True, exist_ok=True)

    suffixes = load_blocklist(config.blocklist_file) if config.blocklist_file else ()
    blocklist = SpamBlocklist(suffixes)
    logger.info(
        f"Loaded {highlight(len(blocklist))} blocklist zones, "
        f"{highlight(store.count())} messages already stored"
    )

    shutdown_event = asyncio.Event()

    def signal_handler():
        if not shutdown_event.is_set():
            logger.info("Shutdown signal received")
            shutdown_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    server = MailServer(config, blocklist=blocklist, store=store)
    try:
        await server.start()
        await server.serve_forever(shutdown_event)
    finally:
        logger.info("Shutting down...")
        await server.close()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)
        metrics = await server.metrics.snapshot()
        logger.info(f"Final metrics: {metrics}")
        logger.info("Shutdown complete")


def main(argv=None):
    args = parse_args(argv)
    setup_logging(args.debug)
    try:
        config = apply_overrides(load_config(args.config), args)
        setup_logging(config.verbose)
        logger.info(
            f"Port: {config.port}  spam detection: {config.spam_detection}  "
            f"mail directory: {config.output_directory}  verbose: {config.verbose}"
        )
        asyncio.run(run(config))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    except Exception as e:
        logger.critical(f"Fatal error in main: {e}", exc_info=True)
        sys.exit(1)


if __name__ == '__main__':
    main()
