from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_name: str = "TaskForge"
    api_prefix: str = "/api"
    log_level: str = "INFO"
    cors_allow_origins: list[str] = ["*"]
    host: str = "127.0.0.1"
    port: int = 8000

    # "database" (SQLModel) or "memory" (process-local, not persisted)
    persistence_backend: str = "database"
    database_url: str = "sqlite+aiosqlite:///./taskforge.db"

    redis_enabled: bool = True
    redis_url: str | None = None
    redis_host: str | None = None
    redis_port: int = 6379
    redis_candidate_hosts: list[str] = ["127.0.0.1", "localhost", "redis"]
    redis_connect_timeout: float = 2.0
    redis_max_retries: int = 3

    memory_cache_maxsize: int = 10_000
    task_cache_ttl_seconds: int = 600  # task:<id>
    task_list_cache_ttl_seconds: int = 300  # tasks:<query>

    seed_demo_data: bool = False


@lru_cache
def get_settings() -> Settings:
    return Settings()

