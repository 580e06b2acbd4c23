import logging

from interfaces.telegram.handlers import create_telegram_bot
from settings import TELEGRAM_BOT_TOKEN, build_repositories, configure_logging

logger = logging.getLogger(__name__)


def main() -> None:
    if not TELEGRAM_BOT_TOKEN:
        raise RuntimeError("TELEGRAM_BOT_TOKEN environment variable is not set.")

    configure_logging()

    account_repo, identity_repo = build_repositories()
    bot = create_telegram_bot(TELEGRAM_BOT_TOKEN, account_repo, identity_repo)
    logger.info("Telegram bot polling")
    bot.infinity_polling()


if __name__ == "__main__":
    main()
