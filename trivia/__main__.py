"""
Run the trivia plugin as a standalone process.

Usage:
    python -m trivia config.json
"""

import asyncio
import logging
import sys

from nats.aio.client import Client as NATS

from .config import configure_logger, load_config
from .plugin import TriviaPlugin

logger = logging.getLogger(__name__)


async def run(config_file: str) -> None:
    """Connect to NATS and serve trivia turns until cancelled."""
    conf = load_config(config_file)

    logging_config = conf['logging']
    configure_logger(
        logging.getLogger(),
        log_file=logging_config.get('log_file'),
        log_level=logging_config.get('level', 'info'),
    )

    nats_config = conf['nats']
    nats_url = nats_config.get('url', 'nats://localhost:4222')

    nats = NATS()
    await nats.connect(
        servers=[nats_url],
        max_reconnect_attempts=nats_config.get('max_reconnect_attempts', -1),
        reconnect_time_wait=nats_config.get('reconnect_delay', 2),
        connect_timeout=nats_config.get('connection_timeout', 5)
    )
    logger.info(f"Connected to NATS: {nats_url}")

    plugin = TriviaPlugin(nats, conf['trivia'])
    try:
        await plugin.initialize()
        await asyncio.Event().wait()
    finally:
        await plugin.shutdown()
        if not nats.is_closed:
            await nats.close()
        logger.info("NATS connection closed")


def main():
    """Main entry point

    Returns:
        0 on keyboard interrupt (normal exit)
        1 on usage error
    """
    if len(sys.argv) != 2:
        print('usage: %s <config file>' % sys.argv[0], file=sys.stderr)
        return 1

    try:
        asyncio.run(run(sys.argv[1]))
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())
