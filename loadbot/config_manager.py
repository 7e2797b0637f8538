#!/usr/bin/env python3
"""
Configuration Manager for the Bot Load Tester

Handles loading configuration from:
1. Default values (hardcoded)
2. YAML config file (if provided)
3. Environment variables
4. Command-line arguments (override everything, applied by the caller via set())

Environment variable naming convention:
- LOADBOT_TARGET_API
- LOADBOT_BOTS_COUNT
- LOADBOT_BOTS_INTERVAL
- etc.
"""

import copy
import logging
import os
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised for invalid or missing settings"""


@dataclass
class RunConfig:
    """Resolved settings for one load test run"""
    api: str
    bots: int
    interval: float
    data_path: str
    request_timeout: Optional[float]
    max_in_flight: int
    one_in_flight: bool
    drain_timeout: float
    duration: float
    seed: Optional[int]
    ui_enabled: bool
    refresh_interval: float
    log_size: int
    save_responses: bool
    results_dir: str
    log_file: Optional[str]

    def to_dict(self) -> dict:
        """Convert to dictionary"""
        return asdict(self)


class ConfigManager:
    """Manages configuration from multiple sources with priority"""

    DEFAULTS = {
        "target": {
            "api": None,              # Must be set via CLI, config file or env var
            "request_timeout": None,  # None keeps the HTTP client default
        },
        "bots": {
            "count": 1,
            "interval": 1.0,
            "max_in_flight": 0,       # 0 = unbounded
            "one_in_flight": False,
            "drain_timeout": 0.0,     # 0 = don't wait for in-flight requests on shutdown
            "duration": 0.0,          # 0 = run until stopped
        },
        "data": {
            "path": "./Assets/Data/data.json",
            "seed": None,
        },
        "ui": {
            "enabled": True,
            "refresh_interval": 1.0,
            "log_size": 10,
        },
        "output": {
            "save_responses": False,
            "results_dir": "./results",
            "log_file": "bot_load_tester.log",
        },
    }

    # Mapping of environment variables to config paths
    ENV_VAR_MAP = {
        "LOADBOT_TARGET_API": "target.api",
        "LOADBOT_TARGET_REQUEST_TIMEOUT": "target.request_timeout",
        "LOADBOT_BOTS_COUNT": "bots.count",
        "LOADBOT_BOTS_INTERVAL": "bots.interval",
        "LOADBOT_BOTS_MAX_IN_FLIGHT": "bots.max_in_flight",
        "LOADBOT_BOTS_ONE_IN_FLIGHT": "bots.one_in_flight",
        "LOADBOT_BOTS_DRAIN_TIMEOUT": "bots.drain_timeout",
        "LOADBOT_BOTS_DURATION": "bots.duration",
        "LOADBOT_DATA_PATH": "data.path",
        "LOADBOT_DATA_SEED": "data.seed",
        "LOADBOT_UI_ENABLED": "ui.enabled",
        "LOADBOT_UI_REFRESH_INTERVAL": "ui.refresh_interval",
        "LOADBOT_UI_LOG_SIZE": "ui.log_size",
        "LOADBOT_OUTPUT_SAVE_RESPONSES": "output.save_responses",
        "LOADBOT_OUTPUT_RESULTS_DIR": "output.results_dir",
        "LOADBOT_OUTPUT_LOG_FILE": "output.log_file",
    }

    def __init__(self, config_file: Optional[str] = None, environ: Optional[Dict[str, str]] = None):
        """
        Initialize configuration manager

        Args:
            config_file: Path to YAML config file (optional)
            environ: Environment mapping (defaults to os.environ)
        """
        self.config = copy.deepcopy(self.DEFAULTS)

        if config_file:
            self._load_from_file(config_file)

        self._load_from_env(os.environ if environ is None else environ)

    def _load_from_file(self, config_file: str):
        """Load configuration from YAML file"""
        config_path = Path(config_file).expanduser()
        if not config_path.exists():
            raise ConfigError(f"Config file not found: {config_path}")

        try:
            with open(config_path, 'r') as f:
                file_config = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Error loading config file {config_path}: {e}") from e

        if file_config:
            if not isinstance(file_config, dict):
                raise ConfigError(f"Config file {config_path} must contain a mapping")
            self._merge_configs(self.config, file_config)
            logger.info(f"Loaded configuration from {config_path}")

    def _merge_configs(self, base: Dict, override: Dict):
        """Recursively merge override config into base config"""
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._merge_configs(base[key], value)
            else:
                base[key] = value

    def _load_from_env(self, environ):
        """Load configuration from environment variables"""
        for env_var, config_path in self.ENV_VAR_MAP.items():
            value = environ.get(env_var)
            if value is not None:
                try:
                    self._set_nested_value(config_path, value)
                except ValueError as e:
                    raise ConfigError(f"Invalid value for {env_var}: {value!r}") from e
                logger.debug(f"Set {config_path} from {env_var}={value}")

    def _set_nested_value(self, path: str, value: str):
        """Set a nested dictionary value using dot notation"""
        keys = path.split('.')
        current = self.config

        for key in keys[:-1]:
            if key not in current:
                current[key] = {}
            current = current[key]

        final_key = keys[-1]
        current[final_key] = self._convert_type(value, current.get(final_key))

    def _convert_type(self, value: str, reference: Any) -> Any:
        """Convert string value to appropriate type based on reference value"""
        if reference is None:
            # Try to infer type
            if value.lower() in ('true', 'false'):
                return value.lower() == 'true'
            try:
                return int(value)
            except ValueError:
                try:
                    return float(value)
                except ValueError:
                    return value
        elif isinstance(reference, bool):
            return value.lower() in ('true', '1', 'yes')
        elif isinstance(reference, int):
            return int(value)
        elif isinstance(reference, float):
            return float(value)
        else:
            return value

    def get(self, path: str, default: Any = None) -> Any:
        """
        Get a configuration value using dot notation

        Args:
            path: Dot-separated path (e.g., "bots.interval")
            default: Default value if path not found

        Returns:
            Configuration value
        """
        keys = path.split('.')
        current = self.config

        for key in keys:
            if isinstance(current, dict) and key in current:
                current = current[key]
            else:
                return default

        return current

    def set(self, path: str, value: Any):
        """Set a configuration value using dot notation"""
        keys = path.split('.')
        current = self.config

        for key in keys[:-1]:
            if key not in current:
                current[key] = {}
            current = current[key]

        current[keys[-1]] = value

    def _get_bool(self, path: str) -> bool:
        """Read a flag; strings from YAML or CLI go through the env-var conversion"""
        value = self.get(path)
        if value is None or isinstance(value, bool):
            return bool(value)
        return self._convert_type(str(value), False)

    def build_run_config(self) -> RunConfig:
        """Validate the merged settings and return a RunConfig"""
        api = self.get("target.api")
        if not api:
            raise ConfigError("API endpoint is required (--api, target.api or LOADBOT_TARGET_API)")

        try:
            bots = int(self.get("bots.count"))
            interval = float(self.get("bots.interval"))
            log_size = int(self.get("ui.log_size"))
            refresh_interval = float(self.get("ui.refresh_interval"))
            max_in_flight = int(self.get("bots.max_in_flight") or 0)
            drain_timeout = float(self.get("bots.drain_timeout") or 0.0)
            duration = float(self.get("bots.duration") or 0.0)
            timeout = self.get("target.request_timeout")
            timeout = float(timeout) if timeout is not None else None
            seed = self.get("data.seed")
            seed = int(seed) if seed is not None else None
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid configuration value: {e}") from e

        if bots < 1:
            raise ConfigError(f"Number of bots must be >= 1, got {bots}")
        if interval <= 0:
            raise ConfigError(f"Interval must be > 0 seconds, got {interval:g}")
        if log_size < 1:
            raise ConfigError(f"Log size must be >= 1, got {log_size}")
        if refresh_interval <= 0:
            raise ConfigError(f"Refresh interval must be > 0 seconds, got {refresh_interval:g}")
        if max_in_flight < 0:
            raise ConfigError(f"Max in-flight must be >= 0, got {max_in_flight}")
        if drain_timeout < 0:
            raise ConfigError(f"Drain timeout must be >= 0, got {drain_timeout:g}")
        if duration < 0:
            raise ConfigError(f"Duration must be >= 0 seconds, got {duration:g}")
        if timeout is not None and timeout <= 0:
            raise ConfigError(f"Request timeout must be > 0 seconds, got {timeout:g}")

        return RunConfig(
            api=str(api),
            bots=bots,
            interval=interval,
            data_path=str(Path(str(self.get("data.path"))).expanduser()),
            request_timeout=timeout,
            max_in_flight=max_in_flight,
            one_in_flight=self._get_bool("bots.one_in_flight"),
            drain_timeout=drain_timeout,
            duration=duration,
            seed=seed,
            ui_enabled=self._get_bool("ui.enabled"),
            refresh_interval=refresh_interval,
            log_size=log_size,
            save_responses=self._get_bool("output.save_responses"),
            results_dir=str(self.get("output.results_dir")),
            log_file=self.get("output.log_file") or None,
        )
