"""Configuration management with multiple sources."""

import os
import yaml
from pathlib import Path
from typing import Any, Callable, Dict, Optional
from dataclasses import dataclass, asdict

from .logger import get_logger
from .exceptions import ConfigError, InvalidConfigError, MissingConfigError

logger = get_logger(__name__)

NVD_API_URL = "https://services.nvd.nist.gov/rest/json/cves/2.0"

# Published NVD quota tiers (requests per 30 seconds)
PUBLIC_RATE_LIMIT = 5
API_KEY_RATE_LIMIT = 50


@dataclass
class NVDConfig:
    """Remote registry options."""
    base_url: str = NVD_API_URL
    api_key: Optional[str] = None
    timeout: float = 10.0
    requests_per_window: Optional[int] = None
    window_seconds: float = 30.0
    rate_limit_strategy: str = "fixed"

    @property
    def effective_rate_limit(self) -> int:
        """Explicit limit if configured, else the quota tier for the key."""
        if self.requests_per_window is not None:
            return self.requests_per_window
        return API_KEY_RATE_LIMIT if self.api_key else PUBLIC_RATE_LIMIT


@dataclass
class CacheConfig:
    """In-memory cache options."""
    ttl_seconds: float = 3600.0
    check_period_seconds: float = 600.0


@dataclass
class RetryConfig:
    """Backoff options."""
    max_retries: int = 3
    base_delay_seconds: float = 1.0


@dataclass
class LookupConfig:
    """Orchestrator options."""
    batch_workers: int = 3
    single_flight: bool = False


@dataclass
class OutputConfig:
    """Output configuration."""
    format: str = "console"
    verbose: bool = False


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.lower() in ("true", "1", "yes")
    return bool(value)


def _optional_int(value: Any) -> Optional[int]:
    if value is None or (isinstance(value, str) and value.lower() in ("", "none", "auto")):
        return None
    return int(value)


def _optional_str(value: Any) -> Optional[str]:
    return str(value) if value else None


# section -> key -> converter; shared by file and env loading
_SCHEMA: Dict[str, Dict[str, Callable[[Any], Any]]] = {
    "nvd": {
        "base_url": str,
        "api_key": _optional_str,
        "timeout": float,
        "requests_per_window": _optional_int,
        "window_seconds": float,
        "rate_limit_strategy": str,
    },
    "cache": {
        "ttl_seconds": float,
        "check_period_seconds": float,
    },
    "retry": {
        "max_retries": int,
        "base_delay_seconds": float,
    },
    "lookup": {
        "batch_workers": int,
        "single_flight": _to_bool,
    },
    "output": {
        "format": str,
        "verbose": _to_bool,
    },
}


class Config:
    """
    Configuration manager.

    Priority (highest to lowest):
    1. Environment variables (CVELOOKUP_<SECTION>_<KEY>, NVD_API_KEY)
    2. Explicit config file (init_config / --config)
    3. Project config (.cvelookup.yml)
    4. User config (~/.cvelookup/config.yml)
    5. Default values
    """

    CONFIG_FILENAME = ".cvelookup.yml"
    USER_CONFIG_DIR = Path.home() / ".cvelookup"
    USER_CONFIG_FILE = USER_CONFIG_DIR / "config.yml"

    SECTIONS = tuple(_SCHEMA)

    def __init__(self, load_files: bool = True):
        """
        Initialize configuration manager.

        Args:
            load_files: Read user/project YAML files (tests pass False)
        """
        self.nvd = NVDConfig()
        self.cache = CacheConfig()
        self.retry = RetryConfig()
        self.lookup = LookupConfig()
        self.output = OutputConfig()

        if load_files:
            self._load_user_config()
            self._load_project_config()
        self._load_env_config()

        logger.debug("Configuration initialized")

    def _load_user_config(self) -> None:
        """Load user-level configuration."""
        if not self.USER_CONFIG_FILE.exists():
            logger.debug("No user config found")
            return

        try:
            config = self._read_yaml(self.USER_CONFIG_FILE)
            if config:
                self._apply_config(config)
                logger.info(f"Loaded user config: {self.USER_CONFIG_FILE}")
        except ConfigError as e:
            logger.warning(f"Failed to load user config: {e}")

    def _load_project_config(self) -> None:
        """Load project-level configuration from cwd or its parents."""
        current = Path.cwd()

        for parent in [current] + list(current.parents):
            config_file = parent / self.CONFIG_FILENAME

            if config_file.exists():
                try:
                    config = self._read_yaml(config_file)
                    if config:
                        self._apply_config(config)
                        logger.info(f"Loaded project config: {config_file}")
                except ConfigError as e:
                    logger.warning(f"Failed to load project config: {e}")
                return

        logger.debug("No project config found")

    def _load_env_config(self) -> None:
        """Load configuration from environment variables."""
        api_key = os.getenv("NVD_API_KEY")
        if api_key:
            self.nvd.api_key = api_key
            logger.debug("Loaded NVD API key from environment")

        for section, keys in _SCHEMA.items():
            for key, converter in keys.items():
                env_var = f"CVELOOKUP_{section.upper()}_{key.upper()}"
                value = os.getenv(env_var)
                if not value:
                    continue
                try:
                    converted = converter(value)
                except (TypeError, ValueError) as e:
                    logger.warning(f"Invalid env var {env_var}={value}: {e}")
                    continue
                setattr(getattr(self, section), key, converted)
                if key != "api_key":
                    logger.debug(f"Loaded from env: {env_var}={converted}")

    @staticmethod
    def _read_yaml(path: Path) -> Optional[Dict[str, Any]]:
        try:
            with open(path) as f:
                config = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(
                f"Failed to load config: {path}",
                details={"error": str(e)}
            )

        if config is not None and not isinstance(config, dict):
            raise InvalidConfigError(
                f"Config file must contain a mapping: {path}",
                suggestion="Use sections like 'nvd:', 'cache:', 'retry:'"
            )
        return config

    def _apply_config(self, config: Dict[str, Any]) -> None:
        """Apply configuration dictionary."""
        for section, values in config.items():
            if section not in _SCHEMA:
                logger.warning(f"Unknown config section ignored: {section}")
                continue
            if not isinstance(values, dict):
                raise InvalidConfigError(f"Config section '{section}' must be a mapping")

            for key, value in values.items():
                converter = _SCHEMA[section].get(key)
                if converter is None:
                    logger.warning(f"Unknown config key ignored: {section}.{key}")
                    continue
                try:
                    setattr(getattr(self, section), key, converter(value))
                except (TypeError, ValueError) as e:
                    raise InvalidConfigError(
                        f"Invalid value for {section}.{key}: {value!r}",
                        details={"error": str(e)}
                    )

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value by dot-notation key."""
        parts = key.split(".")

        if len(parts) != 2:
            raise InvalidConfigError(
                f"Invalid config key: {key}",
                suggestion="Use format: section.key (e.g., nvd.timeout)"
            )

        section, attr = parts

        if section not in self.SECTIONS:
            return default

        return getattr(getattr(self, section), attr, default)

    def validate(self) -> None:
        """Validate configuration values."""
        errors = []

        if self.nvd.timeout <= 0:
            errors.append("nvd.timeout must be > 0")
        if self.nvd.requests_per_window is not None and self.nvd.requests_per_window < 1:
            errors.append("nvd.requests_per_window must be >= 1")
        if self.nvd.window_seconds <= 0:
            errors.append("nvd.window_seconds must be > 0")
        if self.nvd.rate_limit_strategy not in ("fixed", "sliding"):
            errors.append(f"Invalid nvd.rate_limit_strategy: {self.nvd.rate_limit_strategy}")

        if self.cache.ttl_seconds <= 0:
            errors.append("cache.ttl_seconds must be > 0")
        if self.cache.check_period_seconds < 0:
            errors.append("cache.check_period_seconds must be >= 0")

        if self.retry.max_retries < 0:
            errors.append("retry.max_retries must be >= 0")
        if self.retry.base_delay_seconds < 0:
            errors.append("retry.base_delay_seconds must be >= 0")

        if self.lookup.batch_workers < 1:
            errors.append("lookup.batch_workers must be >= 1")

        if self.output.format not in ("console", "json"):
            errors.append(f"Invalid output.format: {self.output.format}")

        if errors:
            raise InvalidConfigError(
                "Configuration validation failed",
                details={"errors": errors},
                suggestion="Check your .cvelookup.yml file"
            )

    def to_dict(self, include_secrets: bool = False) -> Dict[str, Any]:
        """Export configuration as dictionary."""
        data = {section: asdict(getattr(self, section)) for section in self.SECTIONS}
        if not include_secrets and data["nvd"]["api_key"]:
            data["nvd"]["api_key"] = "***"
        return data

    @classmethod
    def create_user_config(cls, overwrite: bool = False) -> Path:
        """Create default user configuration file."""
        if cls.USER_CONFIG_FILE.exists() and not overwrite:
            raise ConfigError(
                f"User config already exists: {cls.USER_CONFIG_FILE}",
                suggestion="Use --overwrite to replace it"
            )

        cls.USER_CONFIG_DIR.mkdir(parents=True, exist_ok=True)

        # Defaults only; the API key belongs in the environment
        defaults = {
            section: asdict(obj)
            for section, obj in (
                ("nvd", NVDConfig()),
                ("cache", CacheConfig()),
                ("retry", RetryConfig()),
                ("lookup", LookupConfig()),
                ("output", OutputConfig()),
            )
        }
        defaults["nvd"].pop("api_key")

        with open(cls.USER_CONFIG_FILE, "w") as f:
            yaml.dump(defaults, f, default_flow_style=False, sort_keys=False)

        logger.info(f"Created user config: {cls.USER_CONFIG_FILE}")
        return cls.USER_CONFIG_FILE


def init_config(config_path: Optional[Path] = None, load_files: bool = True) -> Config:
    """
    Initialize configuration.

    Args:
        config_path: Optional explicit config file path
        load_files: Read user/project YAML files

    Returns:
        Validated Config object
    """
    config = Config(load_files=load_files)

    if config_path:
        if not config_path.exists():
            raise MissingConfigError(
                f"Config file not found: {config_path}",
                suggestion="Check the file path or create a new config"
            )

        explicit_config = Config._read_yaml(config_path)
        if explicit_config:
            config._apply_config(explicit_config)
            logger.info(f"Loaded explicit config: {config_path}")

        # Environment still wins over the explicit file
        config._load_env_config()

    config.validate()

    return config
