"""
Engine configuration parameters for Gavel.

Defines platform defaults, oracle trust parameters and logging settings.
Values come from, in increasing precedence: defaults, a JSON or TOML file,
a `.env` file, and `GAVEL_*` environment variables.
"""

import json
import os
import tomllib
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import dotenv_values, find_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from gavel.core.errors import ValidationError

# Prefix of environment variables that override file values
ENV_PREFIX = "GAVEL_"

LOG_LEVEL_NAMES = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class EngineConfig:
    """Engine-wide configuration parameters"""

    # Platform economics
    fee_percent: int = 2  # Platform fee on settled auctions (whole percent)
    min_auction_duration: int = 60  # Shortest accepted auction in seconds

    # Oracle
    staleness_bound: int = 3600  # Maximum price age in seconds

    # Ledger
    chain_id: int = 1

    # Logging
    log_level: str = "INFO"
    log_to_file: bool = False
    log_dir: Path = Path("logs")
    # Per-subsystem overrides, e.g. {"auction": "DEBUG"}
    log_levels: Dict[str, str] = field(default_factory=dict)


class _ConfigModel(BaseModel):
    """Schema for configuration files and environment overrides."""

    model_config = ConfigDict(extra="forbid")

    fee_percent: int = Field(2, ge=0, le=100)
    min_auction_duration: int = Field(60, gt=0)
    staleness_bound: int = Field(3600, gt=0)
    chain_id: int = Field(1, ge=0)
    log_level: str = Field("INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")
    log_to_file: bool = False
    log_dir: Path = Path("logs")
    log_levels: Dict[str, str] = Field(default_factory=dict)

    @field_validator("log_levels", mode="before")
    @classmethod
    def parse_log_levels(cls, v):
        # Environment form: "auction=debug, bridge=WARNING"
        if isinstance(v, str):
            pairs = [item.split("=", 1) for item in v.split(",") if item.strip()]
            if any(len(pair) != 2 for pair in pairs):
                raise ValueError("log_levels must look like 'name=LEVEL,name=LEVEL'")
            v = {name.strip(): level.strip() for name, level in pairs}
        if not isinstance(v, dict):
            raise ValueError("log_levels must be a table of subsystem to level")

        levels = {}
        for name, level in v.items():
            level = str(level).upper()
            if not name or level not in LOG_LEVEL_NAMES:
                raise ValueError(f"Invalid log level for {name!r}: {level}")
            levels[name] = level
        return levels


def _read_file(path: Path) -> Dict[str, Any]:
    if path.suffix == ".json":
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    elif path.suffix == ".toml":
        with open(path, "rb") as f:
            data = tomllib.load(f)
        # Accept either top-level keys or a [gavel] table
        data = data.get("gavel", data)
    else:
        raise ValidationError(f"Unsupported config format: {path.suffix or path.name}")

    if not isinstance(data, dict):
        raise ValidationError(f"Config file {path} must contain a table/object")
    return data


def _read_env(env_file: Optional[str]) -> Dict[str, str]:
    if env_file is None:
        env_file = find_dotenv(usecwd=True)
    env: Dict[str, Optional[str]] = dict(dotenv_values(env_file)) if env_file else {}
    env.update(os.environ)

    overrides = {}
    for name in _ConfigModel.model_fields:
        value = env.get(ENV_PREFIX + name.upper())
        if value is not None:
            overrides[name] = value
    return overrides


def load_config(config_path: Optional[str] = None, env_file: Optional[str] = None) -> EngineConfig:
    """
    Load configuration from file and environment, or use defaults.

    Args:
        config_path: Optional path to a .json or .toml config file
        env_file: Optional .env file (default: nearest .env from the cwd)

    Returns:
        EngineConfig instance

    Raises:
        ValidationError: Unreadable file, unknown key or out-of-range value
    """
    values: Dict[str, Any] = {}
    if config_path:
        path = Path(config_path)
        if not path.is_file():
            raise ValidationError(f"Config file not found: {config_path}")
        values.update(_read_file(path))

    values.update(_read_env(env_file))

    try:
        model = _ConfigModel(**values)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid configuration: {e}") from e

    return EngineConfig(**model.model_dump())


def config_to_dict(cfg: EngineConfig) -> Dict[str, Any]:
    """JSON-friendly view of a config."""
    data = asdict(cfg)
    data["log_dir"] = str(cfg.log_dir)
    return data
