"""Application configuration loaded from the environment."""

import os
from dataclasses import dataclass
from typing import Optional
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class AppConfig:
    """Application-wide configuration."""

    # Database
    database_url: str

    # Flask
    flask_secret_key: str
    flask_debug: bool
    flask_port: int

    # Wall-clock seconds between two scheduled ticks (0 disables auto ticking)
    tick_interval_seconds: float

    # Seed for session random sources; None means true entropy
    rng_seed: Optional[int] = None

    @classmethod
    def load(cls) -> "AppConfig":
        """Load configuration from environment variables."""
        raw_seed = os.getenv("RNG_SEED")
        try:
            rng_seed = int(raw_seed) if raw_seed not in (None, "") else None
        except ValueError:
            raise ValueError(f"RNG_SEED must be an integer, got {raw_seed!r}")

        tick_interval = float(os.getenv("TICK_INTERVAL_SECONDS", "1.0"))
        if tick_interval < 0:
            raise ValueError(f"TICK_INTERVAL_SECONDS must be >= 0, got {tick_interval}")

        return cls(
            database_url=os.getenv("DATABASE_URL", "sqlite:///./seat_market.db"),
            flask_secret_key=os.getenv("FLASK_SECRET_KEY", "dev-secret-key"),
            flask_debug=_env_bool("FLASK_DEBUG", "False"),
            flask_port=int(os.getenv("FLASK_PORT", "5000")),
            tick_interval_seconds=tick_interval,
            rng_seed=rng_seed
        )


# Global configuration instance
config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get the global configuration instance."""
    global config
    if config is None:
        config = AppConfig.load()
    return config


def reset_config() -> None:
    """Drop the cached configuration so the next access re-reads the environment."""
    global config
    config = None
