from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")


@dataclass(frozen=True)
class StoreConfig:
    database_url: str = os.getenv("TABLEFINDER_DATABASE_URL", "sqlite:///data/tablefinder.db")
    echo: bool = False


DEFAULT_STORE_CONFIG = StoreConfig()
