from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    # App
    APP_NAME: str = "LedgerLens"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # CORS
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000"]

    # Parsing defaults
    DEFAULT_CURRENCY: str = "INR"
    STATEMENT_MIN_CONFIDENCE: float = 0.3
    STATEMENT_LOOKBACK_DAYS: int = 730
    STATEMENT_MAX_AMOUNT: float = 10_000_000
    ENTITY_LOOKBACK_YEARS: int = 10
    ENTITY_MAX_AMOUNT: float = 1_000_000

    # LLM statement parsing endpoint
    LLM_PARSE_URL: str = ""
    LLM_API_KEY: str = ""
    LLM_TIMEOUT_SECONDS: float = 120.0
    LLM_MIN_EXPECTED_TRANSACTIONS: int = 3

    # Supabase (learned vendor mappings)
    SUPABASE_URL: str = ""
    SUPABASE_SERVICE_KEY: str = ""
    VENDOR_MAPPING_TABLE: str = "vendor_category_mappings"

    # OCR
    TESSERACT_CMD: str = "/usr/local/bin/tesseract"  # macOS default

    # Uploads
    MAX_UPLOAD_MB: int = 25

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
