from application.auth import TokenAuthority
from infrastructure.config import Settings, configure_logging
from infrastructure.db.ledger_store_sqlite import SqliteLedgerStore
from interfaces.web.api import create_app


def main() -> None:
    settings = Settings.from_env()
    configure_logging(settings.log_level)

    store = SqliteLedgerStore(settings.db_path)
    authority = TokenAuthority(settings.secret_key, settings.token_max_age_seconds)

    app = create_app(store, authority, settings)
    app.run(host=settings.host, port=settings.port, debug=settings.debug)


if __name__ == "__main__":
    main()
