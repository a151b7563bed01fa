import os
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent

# .env は config.py と同じ場所
load_dotenv(BASE_DIR / ".env")


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")

    DATA_DIR = os.getenv("DATA_DIR", str(BASE_DIR / "data"))
    RESERVATIONS_FILE = os.getenv("RESERVATIONS_FILE", "User_Reservations.json")
    VIOLATIONS_FILE = os.getenv("VIOLATIONS_FILE", "User_Violations.json")

    OWNER_USERNAME = os.getenv("OWNER_USERNAME", "admin")
    OWNER_PASSWORD = os.getenv("OWNER_PASSWORD", "admin")

    # 画面側のポーリング間隔（ステータス更新の遅れの上限）
    POLL_INTERVAL_SECONDS = int(os.getenv("POLL_INTERVAL_SECONDS", "1"))

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
