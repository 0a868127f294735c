from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Central settings object.
    Values come from env vars; locally you can use backend/.env.
    List values are given as JSON in env, e.g. SOURCE_PRIORITY='["upc_database","open_food_facts"]'.
    """
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # API keys
    GEMINI_API_KEY: str = ""
    GEMINI_MODEL: str = ""
    SERPAPI_API_KEY: str = ""
    BARCODE_LOOKUP_API_KEY: str = ""

    # Product databases
    UPC_DATABASE_URL: str = "https://api.upcitemdb.com/prod/trial/lookup"
    OPEN_FOOD_FACTS_URL: str = "https://world.openfoodfacts.org/api/v0/product"
    BARCODE_LOOKUP_API_URL: str = ""

    # Merge precedence (first = highest priority)
    SOURCE_PRIORITY: List[str] = ["upc_database", "barcode_lookup", "open_food_facts"]

    # Timeouts (seconds)
    SOURCE_TIMEOUT_SECONDS: float = 5.0
    LOOKUP_DEADLINE_SECONDS: float = 8.0
    SCRAPER_TIMEOUT_SECONDS: float = 10.0
    COMPARE_DEADLINE_SECONDS: float = 15.0

    # Upstream retries for 429/503 (adapter concern, not fan-out policy)
    HTTP_MAX_RETRIES: int = 1
    HTTP_MAX_BACKOFF_SECONDS: float = 2.0

    # Retailers
    ENABLED_RETAILERS: List[str] = ["amazon", "walmart"]
    SERPAPI_RETAILERS: List[str] = ["target", "bestbuy"]
    MAX_COMPARISON_RESULTS: int = 5

    # Matching
    MATCH_MIN_CONFIDENCE: int = 20

    # Outbound rate limits
    BARCODE_SCAN_MAX_REQUESTS: int = 5
    BARCODE_SCAN_WINDOW_MS: int = 60_000
    PRICE_COMPARISON_MAX_REQUESTS: int = 10
    PRICE_COMPARISON_WINDOW_MS: int = 60_000

    # Logging
    LOG_LEVEL: str = "INFO"

    # Versioning
    APP_VERSION: str = "0.1.0"
    BUILD_ID: str = "dev"


# ✅ MUST EXIST: other modules import this
settings = Settings()
