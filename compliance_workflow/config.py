from pathlib import Path
from typing import Annotated

from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

# Load env values for components that read os.environ directly.
_project_root = Path(__file__).resolve().parents[1]
load_dotenv(_project_root / ".env", override=False)


class Settings(BaseSettings):
    ENVIRONMENT: str = "development"

    DATABASE_URL: str = "sqlite:///./compliance_workflow.db"
    DB_POOL_SIZE: int = 20
    DB_POOL_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30

    BACKEND_CORS_ORIGINS: Annotated[list[str], NoDecode] = ["http://localhost:5173"]

    AUTH_JWT_ISSUER: str | None = None
    AUTH_JWKS_URL: str | None = None
    AUTH_AUDIENCE: str = "backend"

    # Debounce window for draft autosave; edits closer together than this coalesce.
    AUTOSAVE_QUIET_PERIOD_SECONDS: float = 1.0

    COMPLIANCE_API_BASE_URL: str | None = None
    COMPLIANCE_API_TIMEOUT_SECONDS: float = 10.0

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def split_origins(cls, value: str | list[str]) -> list[str]:
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @field_validator("AUTOSAVE_QUIET_PERIOD_SECONDS", "COMPLIANCE_API_TIMEOUT_SECONDS")
    @classmethod
    def positive_seconds(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("must be greater than zero")
        return value

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
