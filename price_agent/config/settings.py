# price_agent/config/settings.py

"""Central configuration for the price_agent engine."""

import os
from pathlib import Path

from curl_cffi.requests import BrowserTypeLiteral
from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Central configuration for the price_agent engine."""

    # --- Catalog ---
    DEFAULT_CURRENCY: str = os.getenv("PRICE_AGENT_CURRENCY", "SGD")

    # --- Matching ---
    MATCH_LIMIT: int = 5                # Candidates per free-text query
    SUGGESTION_LIMIT: int = 5           # "Did you mean" names on no match
    MIN_SUGGESTION_LENGTH: int = 2      # Shorter queries get no suggestions
    SIGNIFICANT_WORD_MIN_LENGTH: int = 3
    FUZZY_OVERLAP_THRESHOLD: float = 0.5

    # --- Alternatives ---
    ALTERNATIVES_LIMIT: int = 3
    DEFAULT_ALTERNATIVE_QUANTITY: int = 100

    # --- Browsing ---
    PRODUCT_PAGE_SIZE: int = 20

    # --- Text-understanding service ---
    PARSER_API_URL: str = os.getenv(
        "PARSER_API_URL", "https://api.anthropic.com/v1/messages"
    )
    PARSER_API_KEY: str = os.getenv("ANTHROPIC_API_KEY", "")
    PARSER_API_VERSION: str = "2023-06-01"
    PARSER_MODEL: str = os.getenv(
        "PARSER_MODEL", "claude-sonnet-4-20250514"
    )
    PARSER_MAX_TOKENS: int = 256

    # --- HTTP ---
    REQUEST_TIMEOUT: int = 30           # Seconds before a request times out
    MAX_RETRIES: int = 3                # Retry count on transient failures
    RETRY_DELAY: float = 1.0            # Base delay, multiplied per attempt
    IMPERSONATE_BROWSER: BrowserTypeLiteral = "chrome131"

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    CATALOG_DB_PATH: Path = Path(
        os.getenv(
            "PRICE_AGENT_DB",
            str(BASE_DIR / "data" / "catalog.db"),
        )
    )
    LOGS_DIR: Path = BASE_DIR / "logs"
