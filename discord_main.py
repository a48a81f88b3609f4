from infrastructure.config import Settings, configure_logging
from infrastructure.db.identity_repository_sqlite import SqliteIdentityRepository
from infrastructure.db.ledger_store_sqlite import SqliteLedgerStore
from interfaces.discord.handlers import create_discord_bot


def main() -> None:
    settings = Settings.from_env(require_secret=False)
    configure_logging(settings.log_level)

    if not settings.discord_token:
        raise RuntimeError("DISCORD_TOKEN environment variable is not set.")

    store = SqliteLedgerStore(settings.db_path)
    identity_repo = SqliteIdentityRepository(settings.db_path)

    bot = create_discord_bot(store, identity_repo)
    bot.run(settings.discord_token, log_handler=None)


if __name__ == "__main__":
    main()
