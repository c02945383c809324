from typing import List, Optional

from dotenv import load_dotenv
from pydantic_settings import BaseSettings

load_dotenv()


# Logical model name -> env vars holding the Azure OpenAI deployment details
AZURE_CONFIG = {
    "gpt-4o": {
        "endpoint_env": "AZURE_OPENAI_URL",
        "key_env": "AZURE_OPENAI_4O_API_KEY",
        "version_env": "AZURE_OPENAI_4O_API_VERSION",
        "default_version": "2024-12-01-preview",
        "deployment_name": "gpt-4o",
    },
}

OPENROUTER_KEY_ENV = "OPENROUTER_API_KEY"


class Settings(BaseSettings):
    app_name: str = "Bill Split API"
    app_version: str = "1.0.0"
    debug: bool = False

    # API settings
    api_v1_str: str = "/api/v1"
    max_file_size: int = 10 * 1024 * 1024  # 10MB
    allowed_file_types: List[str] = ["image/jpeg", "image/jpg", "image/png", "image/webp"]

    # CORS settings
    backend_cors_origins: List[str] = [
        "http://localhost:3000",
        "http://localhost:8501",
        "http://127.0.0.1:8501",
    ]

    # LLM settings
    llm_provider: str = "openrouter"  # "openrouter" or "azure_openai"
    llm_model_name: str = "google/gemini-2.5-flash"
    openrouter_base_url: str = "https://openrouter.ai/api/v1"

    # Logging
    log_file: Optional[str] = None
    log_level: str = "INFO"

    # Bill editing limits
    default_currency: str = "USD"
    max_name_length: int = 50
    max_description_length: int = 200
    max_label_length: int = 50
    max_note_length: int = 150

    class Config:
        env_file = ".env"
        # Allow extra fields so LLM env vars don't cause validation errors
        extra = "ignore"


settings = Settings()
