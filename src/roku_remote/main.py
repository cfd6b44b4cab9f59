"""
Roku Remote Local Server - Main Entry Point
"""

import asyncio
import signal
import sys
import logging
import os
from typing import List, Optional

from .services.remote_server import RemoteServer

logger = logging.getLogger(__name__)


async def main() -> int:
    """Run the server until a signal or a startup failure"""

    server: Optional[RemoteServer] = None
    shutdown_tasks: List[asyncio.Task] = []
    loop = asyncio.get_running_loop()

    def handle_signal(signum, frame):
        logger.info(f"Received signal {signum}, shutting down...")
        if server and not shutdown_tasks:
            shutdown_tasks.append(loop.create_task(server.stop()))

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    exit_code = 0
    try:
        # CONFIG_FILE overrides the default config location
        config_path = os.environ.get('CONFIG_FILE', 'config/config.yaml')
        logger.info(f"Using configuration file: {config_path}")
        server = RemoteServer(config_path=config_path)

        await server.start()

    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt")
    except Exception as e:
        logger.error(f"Server failed: {e}")
        exit_code = 1
    finally:
        if shutdown_tasks:
            for result in await asyncio.gather(*shutdown_tasks, return_exceptions=True):
                if isinstance(result, Exception):
                    logger.error(f"Shutdown failed: {result}")
        if server:
            await server.stop()

    return exit_code


def run():
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        print("\nServer stopped by user")
        sys.exit(0)


if __name__ == "__main__":
    run()
