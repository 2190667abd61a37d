import logging
import os

from dotenv import load_dotenv

from infrastructure.db.state_storage_sqlite import SqliteStateStorage
from interfaces.telegram.handlers import create_telegram_bot


load_dotenv()

TELEGRAM_TOKEN = os.environ.get("TELEGRAM_TOKEN")
DB_PATH = os.environ.get("DB_PATH", "ledger.db")
LEDGER_CURRENCY = os.environ.get("LEDGER_CURRENCY", "USD")
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


def main() -> None:
    if not TELEGRAM_TOKEN:
        raise RuntimeError("TELEGRAM_TOKEN environment variable is not set.")

    logging.basicConfig(
        level=LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    storage = SqliteStateStorage(DB_PATH)

    bot = create_telegram_bot(TELEGRAM_TOKEN, storage, currency=LEDGER_CURRENCY)
    bot.infinity_polling()


if __name__ == "__main__":
    main()
