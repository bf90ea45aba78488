"""
Elepad Reminders — Entry Point.

Single entry point: `python main.py` starts the Telegram bot, which runs
the reminder scan on its job queue. For a cron-driven single tick use
`python -m elepad.core.reminder_scan` instead.
"""

import logging

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

from elepad.bot.telegram_bot import main

if __name__ == "__main__":
    main()
