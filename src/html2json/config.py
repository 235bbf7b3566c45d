"""
Configuration module for html2json.

Uses Pydantic models for validation and parsing of configuration files.
"""

import json
import logging
from pathlib import Path
from typing import Union

from pydantic import BaseModel, ConfigDict, Field

from .pipes import DEFAULT_MAX_REGEX_SIZE

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"


class LimitsConfig(BaseModel):
    """Size limits for inputs and regex patterns."""
    max_html_size: int = Field(100_000_000, alias="maxHtmlSize")  # bytes
    max_spec_size: int = Field(1_048_576, alias="maxSpecSize")  # bytes
    max_regex_size: int = Field(DEFAULT_MAX_REGEX_SIZE, alias="maxRegexSize")

    model_config = ConfigDict(populate_by_name=True)


class HttpConfig(BaseModel):
    """Settings for fetching documents over HTTP."""
    timeout: float = 30.0
    user_agent: str = Field(DEFAULT_USER_AGENT, alias="userAgent")
    render: bool = False  # fetch through a headless browser

    model_config = ConfigDict(populate_by_name=True)


class Config(BaseModel):
    """Main configuration class."""
    parser: str = "html.parser"  # BeautifulSoup tree builder
    pretty: bool = True
    limits: LimitsConfig = Field(default_factory=LimitsConfig)
    http: HttpConfig = Field(default_factory=HttpConfig)

    model_config = ConfigDict(populate_by_name=True)


def load_config(config_path: Union[str, Path]) -> Config:
    """
    Load configuration from JSON file.

    Args:
        config_path: Path to configuration file

    Returns:
        Validated configuration object
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    logger.info(f"Loading configuration from: {config_path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        data = json.load(f)

    return Config.model_validate(data)
