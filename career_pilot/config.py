"""
config.py: environment-driven settings.

Everything is read from environment variables (a `.env` file is loaded
first). Call `get_settings()` anywhere; the result is cached per process.
"""
import os
from functools import lru_cache
from typing import Optional, Tuple

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

load_dotenv()

DEFAULT_STAGE_WEIGHTS = (0.3, 0.3, 0.4)


def _parse_weights(raw: Optional[str]) -> Tuple[float, float, float]:
    """Parse "0.3,0.3,0.4" into a 3-tuple. Falls back to the default split."""
    if not raw:
        return DEFAULT_STAGE_WEIGHTS
    parts = [p.strip() for p in raw.split(",") if p.strip()]
    if len(parts) != 3:
        raise ValueError(f"STAGE_WEIGHTS needs exactly 3 values, got {raw!r}")
    return tuple(float(p) for p in parts)


class Settings(BaseModel):
    store_backend: str = "mongo"
    mongo_uri: str = ""
    mongo_db: str = "career_pilot"
    json_store_dir: str = Field(
        default_factory=lambda: os.path.join(os.getcwd(), "data", "journeys")
    )

    groq_api_key: str = ""
    llm_model: str = "openai/gpt-oss-120b"
    # total budget per generation call, retries included
    llm_timeout_seconds: float = Field(default=60.0, gt=0)
    llm_max_retries: int = Field(default=1, ge=0)

    # short / mid / long term share of the overall journey progress
    stage_weights: Tuple[float, float, float] = DEFAULT_STAGE_WEIGHTS
    aggregator_workers: int = 8

    frontend_url: str = "http://localhost:3000"
    log_level: str = "INFO"

    @field_validator("store_backend")
    @classmethod
    def _known_backend(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in ("mongo", "json"):
            raise ValueError(f"STORE_BACKEND must be 'mongo' or 'json', got {value!r}")
        return value

    @field_validator("stage_weights")
    @classmethod
    def _non_negative(cls, value: Tuple[float, float, float]) -> Tuple[float, float, float]:
        if any(w < 0 for w in value):
            raise ValueError("STAGE_WEIGHTS must be non-negative")
        return value


def _from_env() -> Settings:
    env = os.environ
    data = {
        "store_backend": env.get("STORE_BACKEND", "mongo"),
        "mongo_uri": env.get("MONGO_URI", "").strip(),
        "mongo_db": env.get("MONGO_DB", "career_pilot"),
        "groq_api_key": env.get("GROQ_API_KEY", "").strip(),
        "llm_model": env.get("LLM_MODEL", "openai/gpt-oss-120b"),
        "llm_timeout_seconds": env.get("LLM_TIMEOUT_SECONDS", "60"),
        "llm_max_retries": env.get("LLM_MAX_RETRIES", "1"),
        "stage_weights": _parse_weights(env.get("STAGE_WEIGHTS")),
        "aggregator_workers": env.get("AGGREGATOR_WORKERS", "8"),
        "frontend_url": env.get("FRONTEND_URL", "http://localhost:3000"),
        "log_level": env.get("LOG_LEVEL", "INFO").upper(),
    }
    if env.get("JSON_STORE_DIR"):
        data["json_store_dir"] = env["JSON_STORE_DIR"]
    return Settings(**data)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return _from_env()
