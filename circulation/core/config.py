import logging
import os

# -----------------------------
# Configuration
# -----------------------------
DATABASE_URL = os.getenv("CIRCULATION_DB", "sqlite:///./circulation.db")
LOG_LEVEL = os.getenv("CIRCULATION_LOG", "INFO")
RESERVATION_DAYS = int(os.getenv("CIRCULATION_RESERVATION_DAYS", "3"))

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"


def configure_logging(level: str = LOG_LEVEL) -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT)
