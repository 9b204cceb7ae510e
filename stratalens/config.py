"""Configuration management for StrataLens."""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings from environment variables."""

    # NVIDIA API
    nvidia_api_key: str = ""
    openai_base_url: str = "https://integrate.api.nvidia.com/v1"

    # LLM Configuration
    llm_model: str = "qwen/qwen3-coder-480b-a35b-instruct"
    llm_max_tokens: int = 4096
    llm_temperature: float = 0.7
    llm_timeout: int = 90

    # Database (saved sampling configurations, upload log)
    database_url: str = "sqlite:///./data/stratalens.db"

    # Logging
    log_level: str = "INFO"
    log_file: str = "logs/app.log"

    # Application
    max_upload_size_mb: int = 50
    export_dir: str = "data/exports"

    # Undo history: 1 current state + 5 undo steps
    history_size: int = 6
    sample_history_size: int = 4

    # Sampling
    max_stratification_levels: int = 4
    numeric_inference_threshold: float = 0.8
    random_seed: Optional[int] = None

    # Views
    default_preview_size: int = 10

    # Rows handed to the LLM
    ai_sample_rows: int = 50
    chat_sample_rows: int = 100

    class Config:
        env_file = ".env"
        case_sensitive = False


# Global settings instance
settings = Settings()
