"""Configuration management for the Transfer Market NLQ service."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    ENV: str = "local"
    SERVICE_NAME: str = "transfermarket-nlq"
    SERVICE_VERSION: str = "0.1.0"
    LOG_LEVEL: str = "INFO"

    # Data store Configuration
    STORE_BACKEND: str = "sql"  # "sql" or "bigquery"
    DATABASE_URL: str = "sqlite:///./data/transfer_market.db"
    STORE_CREATE_TABLES: bool = True  # Create club/player/transfer tables on startup (sql backend only)

    # BigQuery Configuration (STORE_BACKEND=bigquery)
    GCP_PROJECT_ID: str = ""
    BIGQUERY_DATASET_ID: str = "transfer_market"
    BQ_MAX_BYTES_BILLED: int | None = None  # Optional limit on BigQuery bytes billed

    # Language model Configuration
    LLM_ENABLED: bool = True
    MODEL_BACKEND: str = "http"  # "http" (generate endpoint) or "openai" (chat completions)
    MODEL_BASE_URL: str = "http://localhost:11434"
    MODEL_NAME: str = "llama3.1"
    MODEL_API_KEY: str = ""  # Only used by the openai backend
    MODEL_TIMEOUT_SECONDS: float = 30.0
    MODEL_TEMPERATURE: float = 0.1

    # Natural Language Query (NLQ) Configuration
    NLQ_MAX_RESULTS: int = 200  # Row ceiling enforced on every generated query
    NLQ_QUERY_TIMEOUT_SECONDS: float = 10.0
    NLQ_PROMPT_MAX_ROWS: int = 50  # Rows rendered into the verbalization prompt
    NLQ_PROMPT_MAX_FIELD_CHARS: int = 80  # Per-field width in the verbalization prompt


# Singleton settings instance
settings = Settings()
