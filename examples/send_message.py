"""Send a text message to a QQ channel and check the bot's health."""

import argparse
import asyncio

import httpx

from qqgate import QQClient, QQGateConfig


async def run(config: QQGateConfig, channel_id: str, content: str) -> None:
    async with httpx.AsyncClient() as http:
        client = QQClient(http, config)

        if not await client.health_check():
            print("health check failed")
            return

        await client.send(content, channel_id)
        print(f"sent to {channel_id}")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser()
    parser.add_argument("--channel-id", required=True)
    parser.add_argument("--content", default="ping")
    parser.add_argument("--sandbox", action="store_true")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    # app_id / app_secret come from QQGATE_APP_ID / QQGATE_APP_SECRET
    config = QQGateConfig(sandbox=args.sandbox)
    asyncio.run(run(config, args.channel_id, args.content))


if __name__ == "__main__":
    main()
