"""Configuration settings and models for the sync application."""

import os
from enum import Enum
from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import BaseModel, Field, field_validator


class FallbackPolicy(str, Enum):
    """What to do when the previous snapshot cannot be rotated."""
    SCRATCH = "scratch"  # sync into a fresh snapshot, discard the diff
    FAIL = "fail"


class SyncOptions(BaseModel):
    """Synchronization options."""
    max_concurrency: int = 32
    fallback: FallbackPolicy = FallbackPolicy.SCRATCH
    scratch_dir: Optional[Path] = None  # parent of scratch backup directories

    @field_validator('max_concurrency')
    @classmethod
    def validate_max_concurrency(cls, v):
        if v < 1:
            raise ValueError('max_concurrency must be at least 1')
        return v


class LoggingOptions(BaseModel):
    """Logging options."""
    level: str = "INFO"
    file: Optional[Path] = None
    console: bool = True
    max_file_size: int = 10 * 1024 * 1024  # 10MB
    backup_count: int = 5

    @field_validator('level')
    @classmethod
    def validate_level(cls, v):
        level = v.upper()
        if level not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
            raise ValueError(f'invalid log level: {v}')
        return level


class RevsyncConfig(BaseModel):
    """Main configuration class."""
    sync_options: SyncOptions = Field(default_factory=SyncOptions)
    logging: LoggingOptions = Field(default_factory=LoggingOptions)

    @classmethod
    def from_yaml(cls, config_path: Union[str, Path]) -> "RevsyncConfig":
        """Load configuration from YAML file."""
        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, 'r', encoding='utf-8') as f:
            config_data = yaml.safe_load(f) or {}

        return cls(**config_data)

    def to_yaml(self, config_path: Union[str, Path]) -> None:
        """Save configuration to YAML file."""
        config_path = Path(config_path)
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, 'w', encoding='utf-8') as f:
            yaml.dump(self.model_dump(mode='json', exclude_none=True), f,
                      default_flow_style=False, indent=2)

    @classmethod
    def from_env(cls, base: Optional["RevsyncConfig"] = None) -> "RevsyncConfig":
        """Overlay settings from environment variables onto ``base``."""
        config = base.model_copy(deep=True) if base else cls()
        sync_options = config.sync_options.model_dump()
        logging_options = config.logging.model_dump()

        if os.getenv('REVSYNC_MAX_CONCURRENCY'):
            sync_options['max_concurrency'] = int(os.environ['REVSYNC_MAX_CONCURRENCY'])
        if os.getenv('REVSYNC_FALLBACK'):
            sync_options['fallback'] = os.environ['REVSYNC_FALLBACK']
        if os.getenv('REVSYNC_LOG_LEVEL'):
            logging_options['level'] = os.environ['REVSYNC_LOG_LEVEL']

        return cls(
            sync_options=SyncOptions(**sync_options),
            logging=LoggingOptions(**logging_options)
        )
