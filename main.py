"""
Daily Standup Bot — Entry Point.

`python main.py` starts the Telegram bot (polling + scheduler job).
`python main.py tick` runs one scheduler tick and exits, for an external cron.
The cron passes its bearer token in the CRON_AUTHORIZATION environment
variable ("Bearer <CRON_SECRET>").
"""

import asyncio
import logging
import os
import sys

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

from standup.bot.telegram_bot import main, run_tick_once
from standup.core.scheduler import UnauthorizedError

if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] == "tick":
        try:
            result = asyncio.run(run_tick_once(os.getenv("CRON_AUTHORIZATION")))
        except UnauthorizedError as exc:
            print(f"ERROR: {exc}", file=sys.stderr)
            sys.exit(1)
        print(f"morning={result['morning']} evening={result['evening']}")
    else:
        main()
