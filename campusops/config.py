from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    PROJECT_NAME: str = "Campus Operations API"
    STORE_BACKEND: Literal["sql", "memory"] = "sql"
    SQLALCHEMY_DATABASE_URI: str = "sqlite:///./campusops.db"
    STORE_TIMEOUT_SECONDS: float = 5.0
    STORE_READ_RETRIES: int = 2
    STORE_RETRY_BACKOFF_SECONDS: float = 0.1
    SECRET_KEY: str = "change-this-secret-in-prod"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    TOKEN_URL: str = "/auth/token"  # issued by the external identity provider
    BACKEND_CORS_ORIGINS: list[str] = ["*"]
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"

settings = Settings()
