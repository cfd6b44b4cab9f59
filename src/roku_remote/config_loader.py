"""
Configuration loader for the Roku Remote Local Server
Loads and validates configuration from YAML files
"""

import yaml
import logging
from typing import Dict, Any
from pathlib import Path
from datetime import datetime
import pytz

from .discovery.address_space import DEFAULT_FALLBACK_PREFIXES, is_valid_prefix

logger = logging.getLogger(__name__)

REGISTRY_BACKENDS = ('memory', 'file', 'postgres')


def load_config(config_path: str = "config/config.yaml") -> Dict[str, Any]:
    """
    Load configuration from YAML file with validation
    """
    try:
        config_file = Path(config_path)
        if not config_file.exists():
            logger.error(f"Configuration file not found: {config_path}")
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_file, 'r') as f:
            config = yaml.safe_load(f) or {}

        # Apply defaults first so validation sees a complete tree
        config = _apply_defaults(config)
        _validate_config(config)

        logger.info(f"Configuration loaded from {config_path}")
        return config

    except Exception as e:
        logger.error(f"Failed to load configuration: {e}")
        raise


def _validate_config(config: Dict) -> None:
    """Validate configuration values"""
    device = config['device']
    if not 1 <= int(device['control_port']) <= 65535:
        raise ValueError("device.control_port must be between 1 and 65535")
    for field in ('probe_timeout', 'command_timeout'):
        if float(device[field]) <= 0:
            raise ValueError(f"device.{field} must be positive")
    if float(device['min_command_interval']) < 0:
        raise ValueError("device.min_command_interval must not be negative")

    discovery = config['discovery']
    if int(discovery['batch_size']) < 1:
        raise ValueError("discovery.batch_size must be at least 1")
    if float(discovery['batch_timeout']) <= 0:
        raise ValueError("discovery.batch_timeout must be positive")
    for prefix in discovery['fallback_prefixes']:
        if not is_valid_prefix(str(prefix)):
            raise ValueError(f"Invalid discovery.fallback_prefixes entry: {prefix}")

    registry = config['registry']
    if registry['backend'] not in REGISTRY_BACKENDS:
        raise ValueError(f"registry.backend must be one of {', '.join(REGISTRY_BACKENDS)}")
    if registry['backend'] == 'postgres':
        db = registry.get('database') or {}
        required_db_fields = ['host', 'port', 'database', 'username', 'password']
        for field in required_db_fields:
            if field not in db:
                raise ValueError(f"Missing required registry.database field: {field}")

    relay = config['relay']
    if relay['enabled'] and not relay.get('url'):
        raise ValueError("relay.url is required when relay.enabled is true")
    if relay.get('url') and not str(relay['url']).startswith(('http://', 'https://')):
        raise ValueError("relay.url must start with http:// or https://")


def _section_defaults(config: Dict, section: str, defaults: Dict) -> None:
    if not isinstance(config.get(section), dict):
        config[section] = {}
    for key, default_value in defaults.items():
        if key not in config[section]:
            config[section][key] = default_value


def _apply_defaults(config: Dict) -> Dict:
    """Apply default values to configuration"""

    # Device defaults
    _section_defaults(config, 'device', {
        'control_port': 8060,
        'probe_timeout': 2.0,
        'command_timeout': 5.0,
        'min_command_interval': 0.1,
        'pairing_path': 'pair'
    })

    # Discovery defaults
    _section_defaults(config, 'discovery', {
        'batch_size': 25,
        'batch_timeout': 2.0,
        'subnet_timeout': 1.0,
        'detect_subnet': True,
        'fallback_prefixes': list(DEFAULT_FALLBACK_PREFIXES),
        'discover_on_startup': False
    })

    # Registry defaults
    _section_defaults(config, 'registry', {
        'backend': 'file',
        'path': 'data/device.json'
    })

    # Relay defaults
    _section_defaults(config, 'relay', {
        'enabled': False,
        'url': None,
        'private_only': True
    })

    # API defaults
    _section_defaults(config, 'api', {
        'host': '0.0.0.0',
        'port': 8000,
        'cors_origins': ['*']
    })

    # Logging defaults
    _section_defaults(config, 'logging', {
        'level': 'INFO',
        'file': 'logs/roku_remote.log',
        'console_output': True,
        'timezone': 'UTC'
    })

    return config


class TimezoneFormatter(logging.Formatter):
    """Formatter that renders timestamps in a configured time zone"""

    def __init__(self, fmt=None, timezone: str = 'UTC'):
        super().__init__(fmt)
        try:
            self.tz = pytz.timezone(timezone)
        except pytz.UnknownTimeZoneError:
            self.tz = pytz.utc

    def formatTime(self, record, datefmt=None):
        dt = datetime.fromtimestamp(record.created, tz=self.tz)
        if datefmt:
            return dt.strftime(datefmt)
        else:
            # Default format: YYYY-MM-DD HH:MM:SS TZ
            return dt.strftime('%Y-%m-%d %H:%M:%S %Z')


def setup_logging(config: Dict) -> None:
    """Setup logging based on configuration with time-zone aware timestamps"""
    log_config = config.get('logging', {})
    level = log_config.get('level', 'INFO')
    timezone = log_config.get('timezone', 'UTC')

    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    formatter = TimezoneFormatter(log_format, timezone)

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper()))
    for handler in list(root.handlers):
        root.removeHandler(handler)

    # Console handler
    if log_config.get('console_output', True):
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)

    # File handler
    log_file = log_config.get('file')
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    if timezone != formatter.tz.zone:
        logger.warning(f"Unknown logging timezone {timezone}, using UTC")
    logger.info(f"Logging configured: level={level}, timezone={formatter.tz.zone}, "
                f"console={log_config.get('console_output', True)}, file={log_file}")


def get_sample_config() -> Dict:
    """Return a sample configuration for reference"""
    return {
        "device": {
            "control_port": 8060,
            "probe_timeout": 2.0,
            "command_timeout": 5.0,
            "min_command_interval": 0.1,
            "pairing_path": "pair"
        },
        "discovery": {
            "batch_size": 25,
            "batch_timeout": 2.0,
            "subnet_timeout": 1.0,
            "detect_subnet": True,
            "fallback_prefixes": list(DEFAULT_FALLBACK_PREFIXES),
            "discover_on_startup": True
        },
        "registry": {
            "backend": "file",
            "path": "data/device.json"
        },
        "relay": {
            "enabled": False,
            "url": "https://your-relay.example.com",
            "private_only": True
        },
        "api": {
            "host": "0.0.0.0",
            "port": 8000,
            "cors_origins": ["*"]
        },
        "logging": {
            "level": "INFO",
            "file": "logs/roku_remote.log",
            "console_output": True,
            "timezone": "America/New_York"
        }
    }
