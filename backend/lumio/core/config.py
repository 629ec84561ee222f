"""
Application configuration via environment variables (12-factor).
Pydantic BaseSettings validates and coerces all values at startup.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Stores: job ledger, analysis cache and result store
    # ------------------------------------------------------------------
    redis_url:     str = "redis://localhost:6379/0"
    store_backend: str = "redis"      # "redis" | "memory" (single process only)
    key_prefix:    str = "lumio:"
    store_timeout_seconds: float = 5.0

    # ------------------------------------------------------------------
    # Celery: durable queue transport + worker pool
    # ------------------------------------------------------------------
    celery_broker_url:     str = "redis://localhost:6379/1"
    celery_result_backend: str = "redis://localhost:6379/2"
    celery_always_eager:   bool = False   # dev/tests only

    worker_concurrency:       int   = 2
    job_max_attempts:         int   = 3
    job_backoff_base_seconds: float = 2.0
    job_lease_seconds:        int   = 300
    # one whole attempt; above the worst case of max_pdf_pages x (AI OCR retries + local OCR)
    job_timeout_seconds:      int   = 60 * 60
    job_ttl_seconds:          int   = 24 * 60 * 60
    stalled_sweep_interval_seconds: int = 60

    # ------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------
    cache_ttl_seconds:         int = 24 * 60 * 60
    hashtag_cache_ttl_seconds: int = 60 * 60

    # ------------------------------------------------------------------
    # File processing
    # ------------------------------------------------------------------
    max_file_size_bytes:  int   = 10 * 1024 * 1024   # 10 MiB
    max_pdf_pages:        int   = 10
    pdf_render_scale:     float = 2.0
    text_layer_min_chars: int   = 50
    upload_dir:           str   = "./uploads"
    max_analysis_chars:   int   = 50_000

    # ------------------------------------------------------------------
    # LLM (LangChain ChatOpenAI)
    # ------------------------------------------------------------------
    openai_api_key:      str   = ""
    llm_model:           str   = "gpt-4o-mini"
    llm_vision_model:    str   = "gpt-4o-mini"
    llm_temperature:     float = 0.0
    llm_max_tokens:      int   = 2048
    llm_timeout_seconds: float = 60.0

    ocr_ai_attempts:                int   = 2
    ocr_ai_base_delay_seconds:      float = 1.0
    analysis_ai_attempts:           int   = 3
    analysis_ai_base_delay_seconds: float = 1.0
    hashtag_ai_attempts:            int   = 2

    # ------------------------------------------------------------------
    # Local OCR (Tesseract)
    # ------------------------------------------------------------------
    ocr_timeout_seconds: float = 120.0
    tesseract_lang:      str   = "eng"

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------
    langsmith_api_key: str = ""
    langsmith_project: str = "lumio"
    log_level:         str = "INFO"

    # ------------------------------------------------------------------
    # Application
    # ------------------------------------------------------------------
    app_env: str = "development"   # development | staging | production
    debug: bool = False

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def ai_enabled(self) -> bool:
        return bool(self.openai_api_key)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
