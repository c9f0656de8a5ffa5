from functools import lru_cache

from pydantic import EmailStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_env: str = "local"
    app_name: str = "Sehat Rakshak"
    api_v1_prefix: str = "/api/v1"
    log_level: str = "INFO"

    # Auth platform (tokens are issued by the hosted auth service, we only verify them)
    jwt_secret: str = "changeme"  # override in .env
    jwt_algorithm: str = "HS256"
    jwt_audience: str | None = "authenticated"

    # Database
    database_url: str

    # Redis
    redis_url: str | None = None
    prescription_lock_timeout_seconds: float = 10.0

    # Email (EmailJS). Missing keys mean "not configured", not an error.
    emailjs_public_key: str | None = None
    emailjs_service_id: str | None = None
    emailjs_template_id: str | None = None
    emailjs_api_url: str = "https://api.emailjs.com/api/v1.0/email/send"
    email_sandbox_mode: bool = False
    email_test_recipient: EmailStr | None = None
    notification_timeout_seconds: float = 10.0

    # AI assistant (OpenAI-compatible chat completions)
    openai_api_key: str | None = None
    openai_api_url: str = "https://api.openai.com/v1/chat/completions"
    openai_model: str = "gpt-3.5-turbo"
    openai_temperature: float = 0.7
    openai_max_tokens: int = 500
    assistant_timeout_seconds: float = 30.0

    # Contact details printed on prescriptions
    support_email: str = "support@sehatrakshak.com"
    support_phone: str = "+91-XXXXXXXXXX"

    # File storage
    file_storage_root: str = "uploads"

    # Pydantic v2 style config
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Cached settings instance so the .env is parsed once.
    """
    return Settings()
