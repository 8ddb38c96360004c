"""Application configuration."""

import os
from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from plancompare.utils.logging import get_logger

LOGGER = get_logger(__name__)


def find_env_file() -> Optional[Path]:
    """Find .env file in multiple possible locations."""
    current_dir = os.path.dirname(os.path.abspath(__file__))

    possible_paths = [
        os.path.join(os.getcwd(), ".env"),
        os.path.join(os.path.dirname(current_dir), ".env"),
        os.path.join(os.path.dirname(os.path.dirname(current_dir)), ".env"),
    ]

    for path_str in possible_paths:
        if os.path.exists(path_str):
            path = Path(path_str)
            LOGGER.info(f"Found .env file at: {path}")
            return path

    LOGGER.debug("No .env file found in expected locations")
    return None


ENV_FILE = find_env_file()

_SETTINGS_CONFIG = SettingsConfigDict(
    env_file=str(ENV_FILE) if ENV_FILE else None,
    env_file_encoding="utf-8",
    case_sensitive=False,
    extra="ignore",
    env_prefix="",
)


class LLMSettings(BaseSettings):
    """Generative model provider settings."""

    provider: str = Field(default="gemini", validation_alias="LLM_PROVIDER")

    gemini_api_key: str = Field(default="", validation_alias="GEMINI_API_KEY")
    gemini_model: str = Field(default="gemini-2.5-pro", validation_alias="GEMINI_MODEL")

    openrouter_api_key: str = Field(default="", validation_alias="OPENROUTER_API_KEY")
    openrouter_api_url: str = Field(
        default="https://openrouter.ai/api/v1/chat/completions", validation_alias="OPENROUTER_API_URL"
    )
    openrouter_model: str = Field(default="google/gemini-2.5-pro", validation_alias="OPENROUTER_MODEL")

    # Generation parameters
    temperature: float = Field(default=0.1, validation_alias="LLM_TEMPERATURE")
    top_k: int = Field(default=40, validation_alias="LLM_TOP_K")
    top_p: float = Field(default=0.95, validation_alias="LLM_TOP_P")
    max_output_tokens: int = Field(default=58192, validation_alias="LLM_MAX_OUTPUT_TOKENS")

    timeout_seconds: int = Field(default=300, validation_alias="LLM_TIMEOUT_SECONDS")
    # A single attempt unless explicitly configured
    max_retries: int = Field(default=1, validation_alias="LLM_MAX_RETRIES")

    model_config = _SETTINGS_CONFIG

    @property
    def api_key(self) -> str:
        return self.gemini_api_key if self.provider == "gemini" else self.openrouter_api_key


class OCRSettings(BaseSettings):
    """Text extraction service settings."""

    provider: str = Field(default="pdfco", validation_alias="OCR_PROVIDER")

    pdfco_api_key: str = Field(
        default="", validation_alias=AliasChoices("PDFCO_API_KEY", "PDF_UPLOAD_SECRET")
    )
    pdfco_base_url: str = Field(default="https://api.pdf.co", validation_alias="PDFCO_BASE_URL")

    mistral_api_key: str = Field(default="", validation_alias="MISTRAL_API_KEY")
    mistral_ocr_url: str = Field(default="https://api.mistral.ai/v1/ocr", validation_alias="MISTRAL_OCR_URL")
    mistral_ocr_model: str = Field(default="mistral-ocr-latest", validation_alias="MISTRAL_OCR_MODEL")

    timeout_seconds: int = Field(default=180, validation_alias="OCR_TIMEOUT_SECONDS")
    poll_interval_seconds: float = Field(default=2.0, validation_alias="OCR_POLL_INTERVAL_SECONDS")
    max_poll_attempts: int = Field(default=30, validation_alias="OCR_MAX_POLL_ATTEMPTS")

    model_config = _SETTINGS_CONFIG


class PipelineSettings(BaseSettings):
    """Upload limits, validation thresholds and selection session settings."""

    max_upload_bytes: int = Field(default=10 * 1024 * 1024, validation_alias="MAX_UPLOAD_BYTES")
    min_coverage_survival_ratio: float = Field(default=0.5, validation_alias="MIN_COVERAGE_SURVIVAL_RATIO")

    selection_ttl_seconds: int = Field(default=8 * 3600, validation_alias="SELECTION_TTL_SECONDS")
    selection_max_users: int = Field(default=1000, validation_alias="SELECTION_MAX_USERS")

    store_documents: bool = Field(default=False, validation_alias="STORE_DOCUMENTS")
    storage_max_objects: int = Field(default=200, validation_alias="STORAGE_MAX_OBJECTS")

    model_config = _SETTINGS_CONFIG


class Settings(BaseSettings):
    """Unified application settings with nested models."""

    app_name: str = Field(default="PlanCompare", validation_alias="APP_NAME")
    app_version: str = "0.1.0"
    environment: str = Field(default="development", validation_alias="ENVIRONMENT")
    debug: bool = Field(default=False, validation_alias="DEBUG")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    cors_origins: list[str] = Field(
        default=["http://localhost:3000", "http://127.0.0.1:3000"],
        validation_alias="CORS_ORIGINS",
    )

    # API Settings
    api_v1_prefix: str = "/api/v1"
    host: str = Field(default="0.0.0.0", validation_alias="HOST")
    port: int = Field(default=8000, validation_alias="PORT")

    llm: LLMSettings = Field(default_factory=lambda: LLMSettings())
    ocr: OCRSettings = Field(default_factory=lambda: OCRSettings())
    pipeline: PipelineSettings = Field(default_factory=lambda: PipelineSettings())

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE) if ENV_FILE else None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def llm_provider(self) -> str:
        return self.llm.provider

    @property
    def ocr_provider(self) -> str:
        return self.ocr.provider


settings = Settings()

LOGGER.info(f"Settings initialized with environment: {settings.environment}")
LOGGER.info(
    f"Providers: llm={settings.llm_provider} (key loaded: {bool(settings.llm.api_key)}), "
    f"ocr={settings.ocr_provider}"
)
