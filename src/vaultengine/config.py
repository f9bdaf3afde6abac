"""
Runtime configuration.

Values come from the process environment, with a `.env` file (searched
upwards from the working directory) filling in anything unset.
"""

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List, Optional

from dotenv import find_dotenv, load_dotenv


DEFAULT_MODEL = "gpt-4o"
DEFAULT_NETWORK = "testnet"


def load_env() -> None:
    """Load the nearest .env file without overriding existing variables."""
    load_dotenv(find_dotenv(usecwd=True), override=False)


def _split_csv(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass
class Settings:
    openai_api_key: Optional[str] = None
    openai_model: str = DEFAULT_MODEL
    network: str = DEFAULT_NETWORK
    environment: str = "development"
    futurenet_usdc_address: Optional[str] = None
    host: str = "0.0.0.0"
    port: int = 3001
    log_level: str = "INFO"
    token_limit: int = 100_000
    token_threshold: float = 0.8
    cors_origins: List[str] = field(default_factory=lambda: ["*"])

    @classmethod
    def from_env(cls) -> "Settings":
        load_env()
        env = os.environ
        return cls(
            openai_api_key=env.get("OPENAI_API_KEY") or None,
            openai_model=env.get("OPENAI_MODEL", DEFAULT_MODEL),
            network=env.get("STELLAR_NETWORK", DEFAULT_NETWORK).lower(),
            environment=env.get("APP_ENV", "development"),
            futurenet_usdc_address=env.get("FUTURENET_USDC_ADDRESS") or None,
            host=env.get("HOST", "0.0.0.0"),
            port=int(env.get("PORT", "3001")),
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
            token_limit=int(env.get("TOKEN_LIMIT", "100000")),
            token_threshold=float(env.get("TOKEN_THRESHOLD", "0.8")),
            cors_origins=_split_csv(env.get("CORS_ORIGINS", "*")),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
