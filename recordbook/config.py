"""Application configuration using Pydantic Settings."""
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # App
    app_name: str = "Recordbook"
    debug: bool = False
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000

    # MongoDB
    mongodb_url: str = "mongodb://localhost:27017"
    mongodb_db_name: str = "recordbook"
    # Needs a replica set; standalone servers reject multi-document transactions.
    mongodb_transactions: bool = False

    # Recording rules
    enforce_section_mappings: bool = True
    default_semester_start: str = "2000-01-01"
    default_semester_end: str = "2099-12-31"
    default_course_credits: int = 4

    # JWT (issued by the auth service, only decoded here)
    jwt_secret_key: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"

    # CORS (comma-separated origins)
    cors_origins: str = "http://localhost:5173"

    @model_validator(mode="after")
    def _validate_production_secrets(self):
        if not self.debug:
            if self.jwt_secret_key in ("change-me-in-production", ""):
                raise ValueError(
                    "JWT_SECRET_KEY must be set to the auth service's signing secret when DEBUG is not enabled."
                )
        return self


settings = Settings()
