"""
Configuration for Adjudicator
=============================

Environment variables:
- LLM_MODE: none|gemini|openrouter|deepseek (default: gemini)
- GEMINI_API_KEY: API key for Gemini
- GEMINI_MODEL: Model to use (default: gemini-2.5-flash)
- OPENROUTER_API_KEY / OPENROUTER_MODEL: OpenRouter alternative
- DEEPSEEK_API_KEY / DEEPSEEK_MODEL: DeepSeek alternative
- DATABASE_URL: SQLAlchemy URL (default: sqlite:///./adjudicator.db)
- STORAGE_PATH: Directory for raw uploaded originals
- MAX_FILE_SIZE: Max bytes per uploaded file (default: 10 MiB)
- MAX_FILES_PER_UPLOAD: Max files per upload request (default: 10)
- MAX_ARGUMENTS_PER_SIDE: Follow-up argument quota (default: 5)
- AUTO_CREATE_CASES_ON_UPLOAD: Create placeholder cases for unknown ids (default: false)
- HOST / PORT: Bind address for the runner (default: 0.0.0.0:3001)
"""

from typing import Optional, List
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache

from .schemas import LLMMode


class Settings(BaseSettings):
    """Application settings from environment variables"""

    model_config = SettingsConfigDict(
        env_prefix="",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Reasoning engine
    llm_mode: LLMMode = LLMMode.GEMINI

    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.5-flash"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"

    openrouter_api_key: Optional[str] = None
    openrouter_model: str = "anthropic/claude-3-haiku"
    openrouter_base_url: str = "https://openrouter.ai/api/v1"

    deepseek_api_key: Optional[str] = None
    deepseek_model: str = "deepseek-chat"
    deepseek_base_url: str = "https://api.deepseek.com/v1"

    llm_temperature: float = 0.7
    llm_top_p: float = 0.8
    llm_max_tokens: int = 8192
    llm_timeout: int = 60

    # Database
    database_url: str = "sqlite:///./adjudicator.db"
    sql_echo: bool = False

    # Raw file storage
    storage_path: str = "./storage"
    storage_bucket: str = "pdfbucket"
    storage_public_base_url: Optional[str] = None

    # Upload limits
    max_file_size: int = 10 * 1024 * 1024
    max_files_per_upload: int = 10

    # Workflow
    max_arguments_per_side: int = 5
    document_preview_chars: int = 2000
    auto_create_cases_on_upload: bool = False

    # Notifications
    notification_queue_size: int = 100

    # Service
    host: str = "0.0.0.0"
    port: int = 3001
    reload: bool = False
    cors_allow_origins: str = "http://localhost:5173,http://localhost:3000"
    log_level: str = "INFO"
    service_version: str = "1.0.0"

    def validate_llm_config(self) -> List[str]:
        """Validate reasoning engine configuration, return list of warnings"""
        warnings = []

        if self.llm_mode == LLMMode.NONE:
            warnings.append("LLM_MODE=none, verdicts and argument responses are disabled")

        elif self.llm_mode == LLMMode.GEMINI:
            if not self.gemini_api_key:
                warnings.append("LLM_MODE=gemini but GEMINI_API_KEY not set")

        elif self.llm_mode == LLMMode.OPENROUTER:
            if not self.openrouter_api_key:
                warnings.append("LLM_MODE=openrouter but OPENROUTER_API_KEY not set")

        elif self.llm_mode == LLMMode.DEEPSEEK:
            if not self.deepseek_api_key:
                warnings.append("LLM_MODE=deepseek but DEEPSEEK_API_KEY not set")

        return warnings

    @property
    def cors_origins(self) -> List[str]:
        origins: List[str] = []
        for item in self.cors_allow_origins.split(","):
            origin = item.strip().strip('"').strip("'").rstrip("/")
            if origin:
                origins.append(origin)
        return origins


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
