from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    FEATURE_REQUEST_TIMEOUT_S: float = 30.0   # per HTTP call
    FEATURE_MAX_RETRIES: int = 3              # retries after the first attempt
    FEATURE_RETRY_BASE_DELAY_S: float = 1.0   # doubled on every retry
    FEATURE_PAGE_SIZE: int = 2000             # ESRI FeatureServer max per request
    FEATURE_MAX_RECORDS: int = 100_000
    FEATURE_PAGE_DELAY_S: float = 0.1
    FEATURE_MAX_CONCURRENCY: int = 5
    LOG_LEVEL: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
