import logging

from infrastructure.config import Settings, configure_logging
from infrastructure.db.identity_repository_sqlite import SqliteIdentityRepository
from infrastructure.db.ledger_store_sqlite import SqliteLedgerStore
from interfaces.telegram.handlers import create_telegram_bot

logger = logging.getLogger(__name__)


def main() -> None:
    settings = Settings.from_env(require_secret=False)
    configure_logging(settings.log_level)

    if not settings.telegram_token:
        raise RuntimeError("TELEGRAM_TOKEN environment variable is not set.")

    store = SqliteLedgerStore(settings.db_path)
    identity_repo = SqliteIdentityRepository(settings.db_path)

    bot = create_telegram_bot(settings.telegram_token, store, identity_repo)
    logger.info("Telegram bot polling")
    bot.infinity_polling()


if __name__ == "__main__":
    main()
