from typing import List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Database Configuration
    DB_USER: str = "root"
    DB_PASSWORD: str = "root"
    DB_HOST: str = "localhost"
    DB_PORT: int = 3306
    DB_NAME: str = "form_plant"
    DATABASE_URL: Optional[str] = None  # full URL, overrides the DB_* parts
    DB_ECHO: bool = False

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"

    @property
    def database_url(self) -> str:
        """Construct database URL from individual components"""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"mysql+pymysql://{self.DB_USER}:{self.DB_PASSWORD}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"

    # JWT Configuration
    ACCESS_TOKEN_EXP_TIME: int = 15
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    CONFIRMATION_TOKEN_EXP_TIME: int = 30  # minutes a preview stays finalizable

    # Site identity used in email tags
    SITE_NAME: str = "Form Plant"
    SITE_URL: str = "http://localhost:8000"

    # File uploads
    UPLOAD_DIR: str = "uploads"
    UPLOAD_BASE_URL: str = "http://localhost:8000/uploads"

    # form.css / form.js for the embed page, served outside this app
    ASSET_BASE_URL: str = "http://localhost:8000/static/form_plant"
    FILE_MAX_SIZE_MB: float = 5.0  # render hint and validation share this default

    # reCAPTCHA
    RECAPTCHA_SITE_KEY: str = ""
    RECAPTCHA_SECRET_KEY: str = ""
    RECAPTCHA_VERIFY_URL: str = "https://www.google.com/recaptcha/api/siteverify"
    RECAPTCHA_V3_THRESHOLD: float = 0.5
    RECAPTCHA_TIMEOUT: float = 10.0

    # Mail delivery webhook (n8n or any HTTP mail relay)
    MAIL_WEBHOOK_URL: str = ""
    MAIL_TIMEOUT: float = 10.0

    # Spam protection counters: memory:// per process, redis://host:6379 to share
    RATE_LIMIT_STORAGE_URI: str = "memory://"

    # Admin frontend origins; embed routes handle CORS per form
    CORS_ORIGINS: List[str] = ["*"]

    # Logging Configuration
    LOG_LEVEL: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    LOG_TO_FILE: bool = True


# Global settings instance
settings = Settings()
