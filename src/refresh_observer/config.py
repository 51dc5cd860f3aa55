import logging
import os
import sys
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ValidationError, field_validator

from .errors import ConfigurationError

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class Settings(BaseModel):
    aws_region: str = 'us-west-2'
    aws_endpoint_url: Optional[str] = None
    ttl_log_interval: float = 30.0
    refresh_on_expiry_change: bool = False
    log_level: str = 'INFO'
    api_key: Optional[str] = None
    secret_name: Optional[str] = None
    role_arn: Optional[str] = None

    @field_validator('ttl_log_interval')
    @classmethod
    def _positive_interval(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("TTL_LOG_INTERVAL must be positive")
        return value

    @field_validator('log_level')
    @classmethod
    def _known_level(cls, value: str) -> str:
        value = value.upper()
        if not isinstance(logging.getLevelName(value), int):
            raise ValueError(f"Unknown LOG_LEVEL {value}")
        return value


def load_settings(env_file: Optional[str] = None) -> Settings:
    """
    Build Settings from the environment, after loading a .env file.

    Existing environment variables win over values in the .env file.
    """
    load_dotenv(env_file)
    values = {}
    for field in Settings.model_fields:
        raw = os.getenv(field.upper())
        if raw not in (None, ''):
            values[field] = raw
    try:
        return Settings(**values)
    except ValidationError as e:
        raise ConfigurationError(str(e)) from e


def configure_logging(level: str = 'INFO') -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )
