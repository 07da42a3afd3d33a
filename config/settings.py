"""Configuration loader."""
import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv(Path(__file__).parent.parent / ".env")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# none / empty → JSON + CSV files under DATA_DIR
DATABASE_URL = os.getenv("DATABASE_URL", "none").strip()
DATA_DIR = Path(os.getenv("DATA_DIR", str(Path(__file__).parent.parent / "data")))

# Seconds between a confidence mutation and its flush to storage (0 = flush inline)
CONFIDENCE_FLUSH_DELAY = float(os.getenv("CONFIDENCE_FLUSH_DELAY", "2.0"))

WEIGHT_PRESET = os.getenv("WEIGHT_PRESET", "default")
ROLLING_ZSCORE_WINDOW = int(os.getenv("ROLLING_ZSCORE_WINDOW", "90"))
