from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

BACKEND_DIR = Path(__file__).resolve().parents[2]
REPO_ROOT = BACKEND_DIR.parent
ENV_FILES = [REPO_ROOT / ".env", BACKEND_DIR / ".env"]

for env_path in ENV_FILES:
    if env_path.exists():
        load_dotenv(env_path, override=False)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(case_sensitive=False, extra="allow")

    app_name: str = Field(default="Formula Contract", alias="APP_NAME")
    app_env: str = Field(default="dev", alias="APP_ENV")
    api_prefix: str = Field(default="/api", alias="API_PREFIX")

    database_url: str = Field(default="sqlite:///./formula_contract.db", alias="DATABASE_URL")
    media_root: str = Field(default="media", alias="MEDIA_ROOT")
    media_base_url: str = Field(default="http://localhost:8000/media", alias="MEDIA_BASE_URL")

    jwt_secret: str = Field(default="", alias="JWT_SECRET")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    jwt_expires_minutes: int = Field(default=60, alias="JWT_EXPIRES_MINUTES")
    password_reset_expires_minutes: int = Field(default=60, alias="PASSWORD_RESET_EXPIRES_MINUTES")

    # Session cookies
    session_cookie_name: str = Field(default="fc_session", alias="SESSION_COOKIE_NAME")
    session_cookie_secure: bool = Field(default=False, alias="SESSION_COOKIE_SECURE")
    activity_cookie_name: str = Field(default="last_activity_update", alias="ACTIVITY_COOKIE_NAME")
    activity_update_interval_seconds: int = Field(default=300, alias="ACTIVITY_UPDATE_INTERVAL_SECONDS")

    # Redirect targets used by the authorization middleware
    login_path: str = Field(default="/login", alias="LOGIN_PATH")
    landing_path: str = Field(default="/dashboard", alias="LANDING_PATH")

    # Rate limiting
    rate_limit_backend: str = Field(default="memory", alias="RATE_LIMIT_BACKEND")
    redis_url: str = Field(default="redis://localhost:6379/0", alias="REDIS_URL")
    rate_limit_key_prefix: str = Field(default="ratelimit", alias="RATE_LIMIT_KEY_PREFIX")

    # Bootstrap admin created on startup when no admin exists yet
    admin_email: Optional[str] = Field(default=None, alias="ADMIN_EMAIL")
    admin_password: Optional[str] = Field(default=None, alias="ADMIN_PASSWORD")

    backend_cors_origins_raw: str = Field(default="http://localhost:3000", alias="BACKEND_CORS_ORIGINS")

    @property
    def backend_cors_origins(self) -> List[str]:
        return [origin.strip() for origin in self.backend_cors_origins_raw.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    settings = Settings()
    if not settings.jwt_secret:
        raise RuntimeError("JWT_SECRET is required in environment or .env")
    return settings
