from pathlib import Path
from dotenv import load_dotenv
import os

# env file name comes from ENV_FILE, .env by default
env_file = os.getenv("ENV_FILE", ".env")
load_dotenv(Path(__file__).parent.parent / env_file)

DATA_DIR = Path(__file__).parent / "data"

ENV = os.getenv("ENV", "dev").lower()
bot_token = (
    os.getenv("BOT_TOKEN_PROD") if ENV == "prod" else os.getenv("BOT_TOKEN_DEV")
) or os.getenv("BOT_TOKEN")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{DATA_DIR / 'skillbot.db'}")
FEEDBACK_DELAY = float(os.getenv("FEEDBACK_DELAY", "3"))
SEED_PATH = Path(os.getenv("SEED_PATH", DATA_DIR / "catalog.json"))
