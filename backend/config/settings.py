from pydantic_settings import BaseSettings
import os
import subprocess
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv

# Determine environment before loading any dotenv files.
# In deployment, set ENVIRONMENT=production; locally it defaults to dev.
_backend_dir = Path(__file__).resolve().parent.parent
_is_production = os.environ.get("ENVIRONMENT") == "production"

if _is_production:
    load_dotenv(_backend_dir / ".env.production", override=True)
else:
    load_dotenv(_backend_dir / ".env", override=False)


def _get_git_version() -> str:
    """Get version from BUILD_VERSION file, git tag, or fallback."""
    # 1. Check BUILD_VERSION file (written by deploy script)
    version_file = _backend_dir / "BUILD_VERSION"
    if version_file.exists():
        v = version_file.read_text().strip()
        if v:
            return v
    # 2. Try git describe (gets latest tag like "v1.0.3")
    try:
        tag = subprocess.check_output(
            ["git", "describe", "--tags", "--abbrev=0"],
            stderr=subprocess.DEVNULL,
            cwd=str(_backend_dir),
            timeout=5,
        ).decode().strip()
        if tag:
            return tag
    except Exception:
        pass
    return "0.1.0"


class Settings(BaseSettings):
    APP_NAME: str = "regintel"
    SETTING_VERSION: str = _get_git_version()

    # Database settings. DB_HOST selects MySQL; otherwise DATABASE_URL (SQLite by default).
    DB_HOST: Optional[str] = os.getenv("DB_HOST")
    DB_PORT: str = os.getenv("DB_PORT", "3306")
    DB_USER: Optional[str] = os.getenv("DB_USER")
    DB_PASSWORD: Optional[str] = os.getenv("DB_PASSWORD")
    DB_NAME: Optional[str] = os.getenv("DB_NAME")
    SQLITE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./regintel.db")

    # LLM gateway settings
    LLM_PROVIDER: str = os.getenv("LLM_PROVIDER", "openai")  # Options: "openai" or "anthropic"
    AI_GATEWAY_URL: str = os.getenv("AI_GATEWAY_URL", "https://api.openai.com/v1")
    AI_GATEWAY_API_KEY: Optional[str] = os.getenv("AI_GATEWAY_API_KEY")
    AI_MODEL: str = os.getenv("AI_MODEL", "gpt-4.1")
    ANTHROPIC_API_KEY: Optional[str] = os.getenv("ANTHROPIC_API_KEY")
    ANTHROPIC_MODEL: str = os.getenv("ANTHROPIC_MODEL", "claude-sonnet-4-20250514")

    # Regulatory data sources
    FIRECRAWL_API_KEY: Optional[str] = os.getenv("FIRECRAWL_API_KEY")
    FIRECRAWL_API_URL: str = "https://api.firecrawl.dev/v1/scrape"
    FRED_API_KEY: Optional[str] = os.getenv("FRED_API_KEY")
    SEC_USER_AGENT: str = os.getenv("SEC_USER_AGENT", "regintel admin@example.com")
    DEFAULT_RSSD_ID: str = "623806"

    # Uploaded report storage
    UPLOAD_DIR: str = os.getenv("UPLOAD_DIR", "uploads")

    # Environment
    IS_PRODUCTION: bool = _is_production

    # CORS settings
    CORS_ORIGINS: list[str] = ["*"]  # In production, specify exact origins
    CORS_ALLOW_CREDENTIALS: bool = True
    CORS_ALLOW_METHODS: list[str] = ["*"]
    CORS_ALLOW_HEADERS: list[str] = ["*", "Authorization"]
    CORS_EXPOSE_HEADERS: list[str] = ["X-Request-ID"]

    # Logging settings
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    LOG_FILENAME_PREFIX: str = "regintel"
    LOG_BACKUP_COUNT: int = 10
    LOG_FORMAT: str = "standard"  # Options: "standard" or "json"
    LOG_REQUEST_BODY: bool = False  # Whether to log request bodies
    LOG_RESPONSE_BODY: bool = False  # Whether to log response bodies
    LOG_SENSITIVE_FIELDS: list[str] = ["password", "token", "secret", "key", "authorization", "credentials"]
    LOG_PERFORMANCE_THRESHOLD_MS: int = 500  # Log slow operations above this threshold

    @property
    def DATABASE_URL(self) -> str:
        if self.DB_HOST:
            return f"mysql+pymysql://{self.DB_USER}:{self.DB_PASSWORD}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        return self.SQLITE_URL

    @property
    def llm_api_key(self) -> Optional[str]:
        """API key for the configured LLM provider"""
        if self.LLM_PROVIDER == "anthropic":
            return self.ANTHROPIC_API_KEY
        return self.AI_GATEWAY_API_KEY

    @property
    def llm_model(self) -> str:
        """Model name for the configured LLM provider"""
        if self.LLM_PROVIDER == "anthropic":
            return self.ANTHROPIC_MODEL
        return self.AI_MODEL

    class Config:
        env_file = ".env"
        case_sensitive = True
        env_file_encoding = 'utf-8'
        extra = "ignore"


settings = Settings()
