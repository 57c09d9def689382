import asyncio
import logging

import config
from .session import Session

logger = logging.getLogger("TCPServer")


async def handle_client(reader, writer):
    peer = writer.get_extra_info("peername")
    logger.info("Client connected from %s", peer)
    session = Session(reader, writer)
    try:
        await session.run()
    except Exception as e:
        logger.exception("Session %s error: %s", peer, e)
        await session.close()
    logger.info("Session %s ended", peer)


async def main(host=config.SERVER_HOST, port=config.TCP_PORT):
    server = await asyncio.start_server(handle_client, host, port)
    logger.info("TCP server is listening on %s:%s", host, port)
    async with server:
        await server.serve_forever()


if __name__ == "__main__":
    logging.basicConfig(level=config.LOG_LEVEL)
    asyncio.run(main())
