"""Connect to the QQ gateway and print every incoming message."""

import argparse
import asyncio
import logging

import httpx

from qqgate import GatewaySession, QQClient, QQGateConfig, QueueSink


async def print_messages(sink: QueueSink) -> None:
    while True:
        message = await sink.get()
        print(f"[{message.timestamp}] {message.sender}: {message.content}")


async def run(config: QQGateConfig) -> None:
    async with httpx.AsyncClient() as http:
        client = QQClient(http, config)
        session = GatewaySession(client, config)
        sink = QueueSink(maxsize=100)

        printer = asyncio.create_task(print_messages(sink))
        try:
            await session.run(sink)
        finally:
            sink.close()
            printer.cancel()


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser()
    parser.add_argument("--app-id", required=True)
    parser.add_argument("--app-secret", required=True)
    parser.add_argument("--sandbox", action="store_true")
    parser.add_argument("--verbose", action="store_true")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)
    config = QQGateConfig(app_id=args.app_id, app_secret=args.app_secret, sandbox=args.sandbox)
    asyncio.run(run(config))


if __name__ == "__main__":
    main()
