from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # App
    environment: str = "development"
    debug: bool = True
    allowed_origins: str = "http://localhost:3000"
    log_level: str = "INFO"

    # Flag store: "memory", "redis" or "sql"
    flag_store_backend: str = "memory"
    flag_store_namespace_prefix: str = "onboarding"

    # Database (sql flag store)
    database_url_sync: str = "sqlite:///./onboarding.db"

    # Redis (redis flag store)
    redis_url: str = "redis://localhost:6379/0"

    # Billing / tenant API
    billing_api_url: str = "http://localhost:8000/api"
    billing_api_timeout: float = 15.0  # seconds

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
