"""
Nagger — Entry Point.

Single entry point: `python main.py` starts the Telegram bot together with
the reminder scheduler and the message retention sweeper.
"""

from nagger.bot.telegram_bot import main

if __name__ == "__main__":
    main()
