# ================================
# file: studyhall/core/config.py
# ================================
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # Default is MySQL; override with the DB_URL env var or a .env file
    DB_URL: str = "mysql+pymysql://root:@localhost:3306/studyhall?charset=utf8mb4"
    FALLBACK_SQLITE: bool = False

    # Session cookie
    SESSION_SECRET: str = "change-me-please"
    SESSION_MAX_AGE: int = 60 * 60 * 24 * 7  # 7 days
    IDLE_TIMEOUT_SEC: int = 60 * 60

    # Library-local day for attendance when a library has no timezone of its own
    DEFAULT_TIMEZONE: str = "Asia/Kolkata"

    LOG_LEVEL: str = "INFO"

    AUDIT_HMAC_SECRET: str = "audit-dev"
    BCRYPT_ROUNDS: int = 12
    PASSWORD_PEPPER: str = ""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

settings = Settings()
