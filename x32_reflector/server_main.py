"""
Runs the relay and its management API on one event loop
"""
import asyncio
import logging

import uvicorn

from .api_server import create_app
from .config import load_configuration
from .errors import ConfigurationError, BindError
from .logger import setup_logger
from .relay import Relay

logger = logging.getLogger('x32-reflector')


async def serve(config):
    relay = await Relay.create(config)
    relay.start()

    app = create_app(relay)
    server = uvicorn.Server(uvicorn.Config(
        app,
        host=config.http.bind,
        port=config.http.port,
        log_level="info",
    ))

    logger.info(f"Management API on http://{config.http.bind}:{config.http.port}{config.site_root}")
    for device in relay.list_devices():
        logger.info(f"Relaying {device['name']} ({device['address']}:{device['port']})")

    try:
        await server.serve()
    finally:
        relay.close()
        logger.info("Relay stopped")


def main():
    setup_logger()

    try:
        config = load_configuration()
    except ConfigurationError as e:
        logger.error(f"Failed to launch due to an error initialising: {e}")
        return 1

    try:
        asyncio.run(serve(config))
    except (ConfigurationError, BindError) as e:
        logger.error(f"Failed to launch due to an error initialising: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Shutting down")

    return 0


if __name__ == '__main__':
    raise SystemExit(main())
