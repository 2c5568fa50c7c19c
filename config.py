from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from dotenv import load_dotenv

# .env must be loaded before any Settings default is evaluated
ROOT = Path(__file__).resolve().parent
load_dotenv(ROOT / ".env")

_APP_ENV = os.getenv("APP_ENV", "development").lower()


@dataclass(frozen=True)
class Settings:
    # Environment
    app_env: str = _APP_ENV
    log_level: str = os.getenv("LOG_LEVEL", "DEBUG" if _APP_ENV == "development" else "INFO").upper()

    # Provider and model
    llm_provider: str = os.getenv("LLM_PROVIDER", "openai").lower()
    llm_model: str = os.getenv("LLM_MODEL", "gpt-4.1")

    # Keys
    openai_api_key: str | None = os.getenv("OPENAI_API_KEY")
    gemini_api_key: str | None = os.getenv("GEMINI_API_KEY")
    llama_base_url: str | None = os.getenv("LLAMA_BASE_URL")
    llama_api_key: str | None = os.getenv("LLAMA_API_KEY")

    # Runtime
    timeout_s: float = float(os.getenv("LLM_TIMEOUT_S", "30"))
    max_retries: int = int(os.getenv("LLM_MAX_RETRIES", "2"))
    temperature: float = float(os.getenv("LLM_TEMPERATURE", "0.0"))
    top_p: float = float(os.getenv("LLM_TOP_P", "1.0"))
    max_output_tokens: int = int(os.getenv("LLM_MAX_OUTPUT_TOKENS", "800"))

    # Cache
    enable_cache: bool = os.getenv("LLM_ENABLE_CACHE", "true").lower() == "true"
    cache_path: str = os.getenv("LLM_CACHE_PATH", ".visa_cache.sqlite")
    cache_ttl_s: int = int(os.getenv("LLM_CACHE_TTL_S", "86400"))

    # Batch runs
    results_dir: str = os.getenv("RESULTS_DIR", "results")
    run_id: str = os.getenv("RUN_ID", "RUN-LOCAL-001")

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"


settings = Settings()


def configure_logging(cfg: Settings = settings) -> None:
    """Configures root logging from the given settings."""
    logging.basicConfig(
        level=getattr(logging, cfg.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
