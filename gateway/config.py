from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration for the gateway console."""

    log_level: str = "INFO"
    json_logs: bool = False

    page_size: int = 10
    max_page_size: int = 200

    dispatch_success_rate: float = 2 / 3
    execution_time_min_ms: int = 150
    execution_time_max_ms: int = 500
    processing_offset_ms: int = 50
    completion_jitter_ms: int = 200

    # mock backend behaviour
    store_latency_min_ms: int = 0
    store_latency_max_ms: int = 0
    store_failure_rate: float = 0.0

    seed_configs: bool = True
    seed_ingest_requests: int = 50
    seed_window_hours: int = 72
    random_seed: Optional[int] = None
    diagnostics_buffer: int = 100

    model_config = SettingsConfigDict(
        env_prefix="GATEWAY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()
