"""Run the publishing orchestrator without the HTTP API."""

from __future__ import annotations

import argparse
import asyncio
import signal

from src.influence.config import load_config
from src.influence.container import build_container
from src.influence.logging import configure_logging


async def _run(*, once: bool) -> None:
    config = load_config()
    configure_logging(config.log_level, json=config.log_json)
    container = build_container(config)
    orchestrator = container.orchestrator

    if once:
        await orchestrator.recover()
        await orchestrator.run_until_idle()
        await orchestrator.aclose()
        return

    shutdown_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, shutdown_event.set)
    await orchestrator.run_forever(shutdown_event=shutdown_event)


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--once",
        action="store_true",
        help="Recover, dispatch every due job, wait for them and exit.",
    )
    args = parser.parse_args()
    asyncio.run(_run(once=args.once))


if __name__ == "__main__":
    main()
