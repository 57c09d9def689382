#!/usr/bin/env python3

import asyncio
import argparse
import logging
import signal
import sys

from server.tcp_server import main as tcp_main
import config

logger = logging.getLogger("J2ME-Main")


class ProxySystem:
    def __init__(self, host: str, port: int):
        self.server_task: asyncio.Task | None = None
        self.running = False
        self.host = host
        self.port = port

    async def start_tcp_server(self):
        logger.info("Starting TCP server...")
        try:
            await tcp_main(self.host, self.port)
        except asyncio.CancelledError:
            logger.info("TCP server task cancelled")
            raise

    async def start(self):
        logger.info("=" * 56)
        logger.info("%s starting...", config.APP_NAME)
        logger.info("=" * 56)
        logger.info(f"TCP Server:    {self.host}:{self.port}")
        logger.info(f"REST API:      {config.API_BASE}")
        logger.info("=" * 56)
        self.running = True
        self.server_task = asyncio.create_task(self.start_tcp_server())
        try:
            await self.server_task
        except asyncio.CancelledError:
            pass
        finally:
            await self.shutdown()

    async def shutdown(self):
        if not self.running:
            return
        logger.info("Shutting down %s...", config.APP_NAME)
        self.running = False
        if self.server_task and not self.server_task.done():
            self.server_task.cancel()
            await asyncio.gather(self.server_task, return_exceptions=True)
        logger.info("%s stopped", config.APP_NAME)

    def request_stop(self, signame: str = "signal"):
        logger.info("Received %s, stopping", signame)
        return asyncio.get_running_loop().create_task(self.shutdown())

    def install_signal_handlers(self, signals=(signal.SIGINT, signal.SIGTERM)):
        loop = asyncio.get_running_loop()
        for sig in signals:
            try:
                loop.add_signal_handler(sig, self.request_stop, sig.name)
            except NotImplementedError:
                # no loop signal support (Windows Proactor): KeyboardInterrupt in run() covers SIGINT
                logger.debug("Signal handler for %s unavailable", sig.name)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description=config.APP_NAME)
    parser.add_argument("--host", default=config.SERVER_HOST)
    parser.add_argument("--port", type=int, default=config.TCP_PORT,
                        help="TCP port for constrained clients (env PORT)")
    parser.add_argument("--log-level", default=config.LOG_LEVEL,
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser.parse_args(argv)


async def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(
        level=args.log_level,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s'
    )

    system = ProxySystem(args.host, args.port)
    system.install_signal_handlers()

    try:
        await system.start()
    except Exception as e:
        logger.exception(f"System error: {e}")
        sys.exit(1)


def run():
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("System interrupted")


if __name__ == "__main__":
    run()
