import logging
import os

from dotenv import load_dotenv

from infrastructure.db.state_storage_sqlite import SqliteStateStorage
from interfaces.discord.handlers import create_discord_bot


load_dotenv()

DISCORD_TOKEN = os.environ.get("DISCORD_TOKEN")
DB_PATH = os.environ.get("DB_PATH", "ledger.db")
LEDGER_CURRENCY = os.environ.get("LEDGER_CURRENCY", "USD")
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


def main() -> None:
    if not DISCORD_TOKEN:
        raise RuntimeError("DISCORD_TOKEN environment variable is not set.")

    logging.basicConfig(
        level=LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    storage = SqliteStateStorage(DB_PATH)

    bot = create_discord_bot(storage, currency=LEDGER_CURRENCY)
    bot.run(DISCORD_TOKEN, log_handler=None)


if __name__ == "__main__":
    main()
