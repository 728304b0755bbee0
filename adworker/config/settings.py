from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"

    db_host: str = "host.docker.internal"
    db_port: int = 5432
    db_database: str = "adworker"
    db_username: str = "adworker"
    db_password: str = "secret"
    db_pool_max_size: int = 10

    scraper_username: str = ""
    scraper_password: str = ""
    scraper_base_url: str = "https://data.oxylabs.io/v1"
    scraper_realtime_url: str = "https://realtime.oxylabs.io/v1"
    scraper_timeout_seconds: int = 180
    render_timeout_seconds: int = 300

    submit_max_attempts: int = 3
    submit_retry_delay_seconds: float = 2.0

    poll_max_attempts: int = 90
    poll_delay_seconds: float = 2.0
    transient_cooldown_multiplier: float = 1.5

    pipeline_mode: Literal["sequential", "parallel"] = "sequential"
    pipeline_concurrency: int = 4
    job_poll_interval_seconds: int = 5

    render_html: bool = True
    render_png: bool = True
    max_ads_to_render: int = 5
    renderings_root: str = "/app/files/renderings"

    default_platform: Literal["google", "bing"] = "google"
    default_location: str = "Boston, Massachusetts, United States"
