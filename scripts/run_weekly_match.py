#!/usr/bin/env python
"""Run today's coffee pairing round from environment settings.

Intended for a cron job; settings come from a ``.env`` file next to it.
"""

import asyncio
import os
import random

from dotenv import load_dotenv

from coffee_pairing.core.config import NotifyConfig, PairingConfig
from coffee_pairing.services.matching.service import MatchingService
from coffee_pairing.services.notify import FakeNotifier, create_notifier
from coffee_pairing.services.storage import (
    MatchRepository,
    UserRepository,
    create_db_engine,
)

load_dotenv()

# Set DRY_RUN=1 to print pairs and messages without sending or storing anything
DRY_RUN = os.environ.get("DRY_RUN", "") == "1"


async def main() -> None:
    """Run one matching round."""
    fallback = os.environ.get("COFFEE_FALLBACK_EMAILS", "")
    config = PairingConfig(
        database_url=os.environ.get("COFFEE_DATABASE_URL", "duckdb:///data/coffee.duckdb"),
        fallback_emails=[e for e in fallback.split(",") if e.strip()],
        persist=not DRY_RUN,
        notify=NotifyConfig(
            site=os.environ.get("ZULIP_SITE", "https://recurse.zulipchat.com"),
            bot_email=os.environ.get("ZULIP_BOT_EMAIL"),
        ),
    )

    engine = create_db_engine(config.database_url)
    notifier = create_notifier(config.notify, dry_run=DRY_RUN)
    service = MatchingService(
        config,
        UserRepository(engine),
        MatchRepository(engine),
        notifier,
        random.Random(),  # noqa: S311
    )
    try:
        result = await service.run()
    finally:
        await notifier.close()
        engine.dispose()

    for pair in result.pairs:
        print(f"{pair.a} <-> {pair.b}")
    if isinstance(notifier, FakeNotifier):
        for message in notifier.sent:
            print(f"To: {', '.join(message.recipients)}\n{message.content}")
    print(f"{len(result.pairs)} pairs, {result.messages_sent} messages")


if __name__ == "__main__":
    asyncio.run(main())
