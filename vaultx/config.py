from dotenv import load_dotenv
from pydantic import BaseModel
from typing import List
import os

VERSION = "0.1.0"

# Load .env before reading any value
load_dotenv()


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


class Settings(BaseModel):
    environment: str = os.getenv("ENVIRONMENT", "development")
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./data/vaultx.db")
    db_pool_size: int = int(os.getenv("DB_POOL_SIZE", "3"))
    db_busy_timeout_ms: int = int(os.getenv("DB_BUSY_TIMEOUT_MS", "5000"))
    sql_echo: bool = _env_bool("SQL_ECHO")

    jwt_secret: str = os.getenv("JWT_SECRET", "change-me-in-production-please")
    jwt_algorithm: str = os.getenv("JWT_ALGORITHM", "HS256")
    access_token_expire_minutes: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "15"))
    refresh_token_expire_days: int = int(os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", "7"))
    password_hash_iterations: int = int(os.getenv("PASSWORD_HASH_ITERATIONS", "100000"))

    allowed_origins: str = os.getenv(
        "ALLOWED_ORIGINS", "http://localhost:5173,http://localhost:3000"
    )
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    def origins(self) -> List[str]:
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]


# Default settings; create_app() accepts an explicit instance instead
settings = Settings()
