from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")

_PLACE_FIELDS = (
    "id",
    "displayName",
    "formattedAddress",
    "internationalPhoneNumber",
    "websiteUri",
    "priceLevel",
    "rating",
    "userRatingCount",
    "types",
    "location",
    "currentOpeningHours.openNow",
    "photos",
)


@dataclass(frozen=True)
class PlacesConfig:
    api_key: str = os.getenv("GOOGLE_PLACES_API_KEY", "")
    timeout: float = 10.0
    # Search responses nest places under "places."; details responses do not
    search_fields: str = ",".join(f"places.{f}" for f in _PLACE_FIELDS)
    details_fields: str = ",".join(_PLACE_FIELDS)
    review_fields: str = "id,reviews"


DEFAULT_PLACES_CONFIG = PlacesConfig()
