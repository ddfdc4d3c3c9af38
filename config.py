import os
from functools import lru_cache
from pathlib import Path
from typing import List

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError


class Settings(BaseModel):
    mongodb_uri: str = Field(default="mongodb://127.0.0.1:27017", alias="MONGODB_URI")
    database_name: str = Field(default="exportHub", alias="DATABASE_NAME")
    mongodb_timeout_ms: int = Field(default=5000, ge=1, alias="MONGODB_TIMEOUT_MS")
    env: str = Field(default="local", alias="APP_ENV")
    port: int = Field(default=8000, alias="PORT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    # Conditional stock decrement; False keeps the read-check-then-decrement sequence
    stock_guard: bool = Field(default=True, alias="STOCK_GUARD")
    seed_demo_data: bool = Field(default=False, alias="SEED_DEMO_DATA")
    cors_origins: str = Field(default="*", alias="CORS_ORIGINS")

    @property
    def cors_origin_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


def _load_dotenv():
    # Load from project root if present, otherwise rely on environment variables.
    root_env = Path(__file__).resolve().parent / ".env"
    if root_env.exists():
        load_dotenv(root_env)
    else:
        load_dotenv()


@lru_cache()
def get_settings() -> Settings:
    _load_dotenv()
    try:
        return Settings(**os.environ)
    except ValidationError as exc:
        invalid = [str(e["loc"][0]) for e in exc.errors()]
        detail = f"Invalid environment variables: {', '.join(invalid)}"
        raise RuntimeError(detail) from exc
