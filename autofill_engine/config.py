"""Configuration module for the autofill engine."""

import copy
import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Environment variables consulted for the API key, per provider, after AUTOFILL_API_KEY
PROVIDER_KEY_ENV = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "dashscope": "DASHSCOPE_API_KEY",
    "deepseek": "DEEPSEEK_API_KEY",
    "zhipu": "ZHIPU_API_KEY",
}


@dataclass
class ClassifierSettings:
    """Settings for the statistical classifier transport."""
    enabled: bool = True
    use_custom_api: bool = False
    provider: str = "openai"
    api_key: str = ""
    endpoint: Optional[str] = None
    model: Optional[str] = None
    temperature: float = 0.0
    max_tokens: int = 800


class Config:
    """
    Configuration manager for the autofill engine.
    """

    # Default configuration values
    DEFAULTS = {
        "classifier": {
            "enabled": True,
            "use_custom_api": False,
            "provider": "openai",
            "api_key": "",
            "endpoint": None,
            "model": None,
            "temperature": 0.0,
            "max_tokens": 800
        },
        "backend": {
            "base_url": "http://localhost:3000/api",
            "session_token": "",
            "timeout": 30.0
        },
        "logging": {
            "level": "INFO",
            "log_file": None,
            "console_output": True
        },
        "diagnostics": {
            "output_dir": None
        }
    }

    def __init__(self, config_path: Optional[str] = None, load_env: bool = True):
        """
        Initialize configuration.

        Args:
            config_path: Path to configuration file. If None, uses default location.
            load_env: Whether to read a .env file into the environment first
        """
        if load_env:
            load_dotenv()

        if config_path:
            self.config_path = config_path
        else:
            self.config_path = os.path.expanduser("~/.autofill_engine/config.json")

        self.config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """
        Load configuration from file, falling back to defaults.

        Returns:
            Dictionary with configuration
        """
        if not os.path.exists(self.config_path):
            logger.debug(f"No configuration file at {self.config_path}; using defaults")
            return copy.deepcopy(self.DEFAULTS)

        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                config = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error loading configuration from {self.config_path}: {e}")
            return copy.deepcopy(self.DEFAULTS)

        logger.info(f"Loaded configuration from {self.config_path}")
        return self._merge_with_defaults(config)

    def _merge_with_defaults(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge user configuration with defaults to ensure all required fields exist.

        Args:
            config: User configuration

        Returns:
            Merged configuration
        """
        merged = copy.deepcopy(self.DEFAULTS)

        def deep_merge(target, source):
            for key, value in source.items():
                if key in target and isinstance(target[key], dict) and isinstance(value, dict):
                    deep_merge(target[key], value)
                else:
                    target[key] = value

        deep_merge(merged, config)
        return merged

    def save(self) -> bool:
        """
        Save configuration to file.

        Returns:
            True if successful, False otherwise
        """
        try:
            directory = os.path.dirname(self.config_path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(self.config_path, 'w', encoding='utf-8') as f:
                json.dump(self.config, f, indent=2)
        except OSError as e:
            logger.error(f"Error saving configuration: {e}")
            return False

        logger.info(f"Saved configuration to {self.config_path}")
        return True

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value.

        Args:
            key: Configuration key (dotted notation, e.g. 'classifier.model')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        value = self.config
        for part in key.split('.'):
            if not isinstance(value, dict) or part not in value:
                return default
            value = value[part]
        return value

    def set(self, key: str, value: Any, persist: bool = False) -> bool:
        """
        Set a configuration value.

        Args:
            key: Configuration key (dotted notation, e.g. 'classifier.provider')
            value: Value to set
            persist: Also write the configuration file

        Returns:
            True if successful, False otherwise
        """
        parts = key.split('.')
        config = self.config
        for part in parts[:-1]:
            config = config.setdefault(part, {})
        config[parts[-1]] = value
        return self.save() if persist else True

    def get_api_key(self) -> str:
        """
        Get the classifier API key, with environment variable fallback.

        Returns:
            API key ('' when none is configured)
        """
        api_key = self.get('classifier.api_key')
        if not api_key:
            api_key = os.environ.get('AUTOFILL_API_KEY', '')
        if not api_key:
            provider = (self.get('classifier.provider') or 'openai').lower()
            env_name = PROVIDER_KEY_ENV.get(provider)
            api_key = os.environ.get(env_name, '') if env_name else ''
        return api_key

    def get_classifier_options(self) -> ClassifierSettings:
        """
        Get classifier configuration options.

        Returns:
            ClassifierSettings
        """
        return ClassifierSettings(
            enabled=bool(self.get('classifier.enabled', True)),
            use_custom_api=bool(self.get('classifier.use_custom_api', False)),
            provider=(self.get('classifier.provider') or 'openai').lower(),
            api_key=self.get_api_key(),
            endpoint=self.get('classifier.endpoint'),
            model=self.get('classifier.model'),
            temperature=float(self.get('classifier.temperature', 0.0)),
            max_tokens=int(self.get('classifier.max_tokens', 800)),
        )

    def configure_logging(self, level: Optional[str] = None):
        """Configure logging based on configuration."""
        log_level = getattr(logging, (level or self.get('logging.level', 'INFO')).upper(), logging.INFO)
        log_file = self.get('logging.log_file')
        console_output = self.get('logging.console_output', True)

        handlers = []

        # File handler
        if log_file:
            handlers.append(logging.FileHandler(log_file))

        # Console handler
        if console_output:
            handlers.append(logging.StreamHandler())

        logging.basicConfig(
            level=log_level,
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            handlers=handlers or None,
            force=True
        )
