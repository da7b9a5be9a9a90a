from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    # App
    app_name: str = "Prospect Finder"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8000
    log_file: Optional[str] = "data/app.log"

    # Database
    database_url: str = "sqlite:///data/prospect_finder.db"

    # Browser / fetching
    browser_headless: bool = True
    scrape_delay_min: float = 2.0
    scrape_delay_max: float = 5.0
    http_timeout: float = 30.0
    navigation_timeout_ms: int = 60000

    # Website analyzer
    analyzer_timeout: float = 8.0
    analyzer_concurrency: int = 5
    analyzer_batch_pause: float = 0.3
    analyzer_max_redirects: int = 3
    low_quality_threshold: int = 25

    # Description enrichment
    enricher_concurrency: int = 3
    enricher_timeout: float = 20.0
    description_max_length: int = 5000
    description_min_length: int = 50

    # Discovery limits
    max_job_results: int = 20
    max_job_results_cap: int = 100
    max_pages: int = 3
    existing_job_window_days: int = 30
    persist_batch_size: int = 25
    max_scroll_batches: int = 20
    maps_scroll_pause: float = 1.5
    maps_settle_delay: float = 2.5
    max_business_results: int = 10
    run_budget_seconds: float = 300.0

    # Rate limiting
    rate_limit_max_requests: int = 5
    rate_limit_window_seconds: float = 60.0
    source_rate_limit_max_requests: int = 30

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
