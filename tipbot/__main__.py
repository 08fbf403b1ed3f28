# tipbot/__main__.py
# Long-polling entry point: python -m tipbot
from __future__ import annotations

from tipbot.bot.tip_bot import run_polling
from tipbot.core.config import get_settings
from tipbot.core.logging import configure_logging


def main() -> None:
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)
    run_polling(settings)


if __name__ == "__main__":
    main()
