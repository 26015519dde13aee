"""
Configuration management for plinko-fair.
Supports config.json with environment variable overrides.
All paths are resolved relative to the project root.
"""

import json
import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()

# Project root directory (parent of 'plinko_fair' folder)
PROJECT_ROOT = Path(__file__).parent.parent


def get_env(key: str, default: str = None) -> Optional[str]:
    """Get environment variable with optional default."""
    return os.environ.get(key, default)


def get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean environment variable."""
    val = os.environ.get(key)
    if val is None:
        return default
    return val.lower() in ("true", "1", "yes", "on")


def get_env_int(key: str, default: int = 0) -> int:
    """Get integer environment variable."""
    val = os.environ.get(key)
    if val is None:
        return default
    try:
        return int(val)
    except ValueError:
        return default


def get_env_float(key: str, default: float = 0.0) -> float:
    """Get float environment variable."""
    val = os.environ.get(key)
    if val is None:
        return default
    try:
        return float(val)
    except ValueError:
        return default


# ==================== Configuration Models ====================

class ServerConfig(BaseModel):
    host: str = "127.0.0.1"
    port: int = 8000
    debug: bool = True
    name: str = "Plinko Fair"


class PlinkoConfig(BaseModel):
    """House settings for the plinko game. Seed and salt are root secrets."""
    edge: float = 2.0
    lightning_edge: float = 4.0
    reference_edge: float = 1.0  # edge the canonical payout curves were tuned for
    game_count: int = 10000
    min_bet: float = 0.01
    max_bet: float = 1000.0
    max_profit: float = 100000.0
    seed: str = "CHANGE_THIS_PLINKO_SEED"
    salt: str = "CHANGE_THIS_PLINKO_SALT"
    rows_min: int = 8
    rows_max: int = 16
    lightning_rows: int = 16


class LightningConfig(BaseModel):
    """Tuning of the lightning board generator."""
    epoch_minutes: int = 15
    max_attempts: int = 10
    multiplier_pegs_min: int = 3
    multiplier_pegs_max: int = 3
    multiplier_peg_values: List[float] = Field(
        default_factory=lambda: [
            2, 5, 5, 7, 7, 8, 8, 9, 9, 10, 10, 12, 12, 20, 25, 30, 35, 40, 50,
        ]
    )
    min_peg_row: int = 4
    peg_row_range: int = 11
    min_peg_distance: int = 4
    peg_placement_retries: int = 100
    zero_payout_holes: List[int] = Field(default_factory=lambda: [6, 8, 10])
    max_hole_payout: float = 1000.0
    rtp_tolerance: float = 0.005
    random_pool_size: int = 100


class HashChainConfig(BaseModel):
    batch_size: int = 1000
    batch_pause_seconds: float = 0.2
    insert_retry_seconds: float = 2.0
    check_interval_minutes: int = 60


class RateLimitConfig(BaseModel):
    enabled: bool = True
    game_requests: str = "30/minute"  # rolls
    end_round_requests: str = "10/minute"


class LoggingConfig(BaseModel):
    level: str = "INFO"
    log_to_file: bool = False
    formatter: str = "color"


class PathsConfig(BaseModel):
    """All paths are relative to PROJECT_ROOT."""
    config_file: str = "config.json"
    database: str = "data/plinko.db"
    log_file: str = "data/app.log"

    def get_config_path(self) -> Path:
        return PROJECT_ROOT / self.config_file

    def get_db_path(self) -> Path:
        return PROJECT_ROOT / self.database

    def get_log_path(self) -> Path:
        return PROJECT_ROOT / self.log_file


class AppConfig(BaseModel):
    """Main application configuration."""
    server: ServerConfig = Field(default_factory=ServerConfig)
    plinko: PlinkoConfig = Field(default_factory=PlinkoConfig)
    lightning: LightningConfig = Field(default_factory=LightningConfig)
    hash_chain: HashChainConfig = Field(default_factory=HashChainConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)


# ==================== Configuration Loading ====================

def _apply_env_overrides(data: dict) -> dict:
    if get_env("SERVER_HOST"):
        data.setdefault("server", {})["host"] = get_env("SERVER_HOST")
    if get_env("SERVER_PORT"):
        data.setdefault("server", {})["port"] = get_env_int("SERVER_PORT", 8000)
    if get_env("DEBUG"):
        data.setdefault("server", {})["debug"] = get_env_bool("DEBUG")

    plinko = data.setdefault("plinko", {})
    if get_env("PLINKO_HOUSE_EDGE"):
        plinko["edge"] = get_env_float("PLINKO_HOUSE_EDGE", 2.0)
    if get_env("PLINKO_LIGHTNING_HOUSE_EDGE"):
        plinko["lightning_edge"] = get_env_float("PLINKO_LIGHTNING_HOUSE_EDGE", 4.0)
    if get_env("PLINKO_GAME_COUNT"):
        plinko["game_count"] = get_env_int("PLINKO_GAME_COUNT", 10000)
    if get_env("PLINKO_MAX_BET"):
        plinko["max_bet"] = get_env_float("PLINKO_MAX_BET", 1000.0)
    if get_env("PLINKO_MAX_PROFIT"):
        plinko["max_profit"] = get_env_float("PLINKO_MAX_PROFIT", 100000.0)
    if get_env("PLINKO_SEED"):
        plinko["seed"] = get_env("PLINKO_SEED")
    if get_env("PLINKO_SALT"):
        plinko["salt"] = get_env("PLINKO_SALT")

    if get_env("DB_PATH"):
        data.setdefault("paths", {})["database"] = get_env("DB_PATH")

    if get_env("LOG_LEVEL"):
        data.setdefault("logging", {})["level"] = get_env("LOG_LEVEL")
    if get_env("LOG_TO_FILE"):
        data.setdefault("logging", {})["log_to_file"] = get_env_bool("LOG_TO_FILE")
    if get_env("LOG_FORMATTER"):
        data.setdefault("logging", {})["formatter"] = get_env("LOG_FORMATTER")

    if get_env("RATE_LIMIT_ENABLED"):
        data.setdefault("rate_limit", {})["enabled"] = get_env_bool("RATE_LIMIT_ENABLED", True)
    if get_env("RATE_LIMIT_GAME_REQUESTS"):
        data.setdefault("rate_limit", {})["game_requests"] = get_env("RATE_LIMIT_GAME_REQUESTS")
    if get_env("RATE_LIMIT_END_ROUND_REQUESTS"):
        data.setdefault("rate_limit", {})["end_round_requests"] = get_env("RATE_LIMIT_END_ROUND_REQUESTS")
    return data


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """
    Load configuration from config.json with environment variable overrides.
    Environment variables take precedence over config.json values.
    """
    if config_path is None:
        config_path = PROJECT_ROOT / "config.json"

    data = {}
    if config_path.exists():
        with open(config_path, "r") as f:
            data = json.load(f)

    return AppConfig(**_apply_env_overrides(data))


def save_config(config: AppConfig, config_path: Optional[Path] = None):
    """Save configuration to config.json."""
    if config_path is None:
        config_path = PROJECT_ROOT / "config.json"

    # Convert to dict, excluding paths (they're computed)
    data = config.model_dump(exclude={"paths"})

    with open(config_path, "w") as f:
        json.dump(data, f, indent=4)


# Global config instance
settings = load_config()
