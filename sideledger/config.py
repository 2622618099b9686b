"""Configuration module.

This file centralizes runtime configuration for local development and production
deployments. Values can be provided via environment variables or a local `.env`
file, including credentials for the OCR and narrative (LLM) collaborators.
"""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


PROJECT_ROOT = Path(__file__).resolve().parent.parent
ENV_FILE_PATH = PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    app_name: str = "SideLedger"
    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"
    secret_key: str = "change-me-in-production"
    database_url: str = "sqlite:///./sideledger.db"
    host: str = "0.0.0.0"
    port: int = 8000
    secure_cookies: bool = False
    session_hours: int = 24 * 7
    cors_origins: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]
    bootstrap_admin_email: str = "admin@change.me"
    bootstrap_admin_password: str = "ChangeMeNow!123"
    bootstrap_admin_name: str = "System Admin"

    # Narrative generator (Gemini generateContent REST API).
    llm_api_key: str | None = None
    llm_model: str = "gemini-2.5-flash"
    llm_base_url: str = "https://generativelanguage.googleapis.com/v1beta"

    # Invoice OCR (OpenAI-compatible chat completions with image input).
    ocr_api_key: str | None = None
    ocr_model: str = "gpt-4o"
    ocr_base_url: str = "https://api.openai.com/v1"

    external_timeout_seconds: float = 20.0

    # Use an absolute path so `.env` is consistently discovered regardless of
    # the process working directory used to start uvicorn.
    model_config = SettingsConfigDict(env_file=ENV_FILE_PATH, env_file_encoding="utf-8", extra="ignore")


settings = Settings()
