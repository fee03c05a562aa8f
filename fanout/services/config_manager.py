import os
from pathlib import Path
from string import Template
from typing import Optional

import structlog
import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from fanout.models.config import FanoutConfig
from fanout.utils.exceptions import ConfigValidationError

logger = structlog.get_logger()

DEFAULT_CONFIG_PATH = "config/fanout.yaml"


class ConfigManager:
    """Loads the fan-out configuration document

    YAML is read from disk, `${VAR}` references are substituted from the
    environment (after loading a .env file), and the result is validated
    into a FanoutConfig.
    """

    def __init__(self, config_path: str = DEFAULT_CONFIG_PATH):
        self.config_path = Path(config_path)
        self.env_loaded = False
        self._config: Optional[FanoutConfig] = None

    def load_config(self) -> FanoutConfig:
        """Load and validate configuration

        Raises:
            FileNotFoundError: If the config file does not exist
            ConfigValidationError: If the file is unreadable, not valid
                YAML, or fails validation
        """
        if self._config:
            return self._config

        # 1. Load environment
        if not self.env_loaded:
            load_dotenv()
            self.env_loaded = True

        # 2. Check file existence
        if not self.config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        # 3. Read YAML
        try:
            raw_content = self.config_path.read_text()
        except OSError as e:
            raise ConfigValidationError(f"Failed to read config file: {e}")

        # 4. Substitute env vars
        try:
            substituted = Template(raw_content).safe_substitute(os.environ)
            config_data = yaml.safe_load(substituted) or {}
        except yaml.YAMLError as e:
            raise ConfigValidationError(f"Failed to parse YAML: {e}")

        if not isinstance(config_data, dict):
            raise ConfigValidationError("Configuration root must be a mapping")

        # 5. Validate with Pydantic
        try:
            self._config = FanoutConfig(**config_data)
        except ValidationError as e:
            raise ConfigValidationError(f"Invalid configuration: {e}")

        logger.info(
            "config_loaded",
            path=str(self.config_path),
            sources=len(self._config.sources),
            http_providers=len(self._config.http_providers),
        )
        return self._config

    def load_or_default(self) -> FanoutConfig:
        """Load the config file if it exists, else built-in defaults"""
        if not self.config_path.exists():
            logger.info("config_default_used", path=str(self.config_path))
            self._config = FanoutConfig()
            return self._config
        return self.load_config()
