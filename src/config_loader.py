"""
Configuration loader for the RouterOS Hotspot Manager server
Loads and validates configuration from YAML files
"""

import yaml
import logging
from typing import Dict, Any
from pathlib import Path
from datetime import datetime
import pytz

logger = logging.getLogger(__name__)

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

        # Validate required sections
        _validate_config(config)

        # Apply defaults
        config = _apply_defaults(config)

        logger.info(f"Configuration loaded from {config_path}")
        return config

    except Exception as e:
        logger.error(f"Failed to load configuration: {e}")
        raise

def _validate_config(config: Dict) -> None:
    """Validate configuration sections that are present"""
    if not isinstance(config, dict):
        raise ValueError("Configuration root must be a mapping")

    for section in ['discovery', 'routers', 'monitoring', 'database', 'api', 'logging']:
        if config.get(section) is not None and not isinstance(config[section], dict):
            raise ValueError(f"Configuration section '{section}' must be a mapping")

    # Database fields are only required when persistence is enabled
    db = config.get('database') or {}
    if db.get('enabled', False):
        required_db_fields = ['host', 'port', 'database', 'username', 'password']
        for field in required_db_fields:
            if field not in db:
                raise ValueError(f"Missing required database field: {field}")

    discovery = config.get('discovery') or {}
    if 'port' in discovery and not 0 <= int(discovery['port']) <= 65535:
        raise ValueError("discovery.port must be between 0 and 65535")
    if 'scan_timeout_seconds' in discovery and discovery['scan_timeout_seconds'] <= 0:
        raise ValueError("discovery.scan_timeout_seconds must be positive")
    if 'max_known_devices' in discovery and int(discovery['max_known_devices']) < 1:
        raise ValueError("discovery.max_known_devices must be at least 1")

    routers = config.get('routers') or {}
    for key in ('connect_timeout_seconds', 'command_timeout_seconds'):
        if key in routers and routers[key] <= 0:
            raise ValueError(f"routers.{key} must be positive")

    log_tz = (config.get('logging') or {}).get('timezone')
    if log_tz and log_tz not in pytz.all_timezones_set:
        raise ValueError(f"Unknown logging.timezone: {log_tz}")

def _apply_section_defaults(config: Dict, section: str, defaults: Dict) -> None:
    if section not in config or config[section] is None:
        config[section] = {}
    for key, default_value in defaults.items():
        if key not in config[section]:
            config[section][key] = default_value

def _apply_defaults(config: Dict) -> Dict:
    """Apply default values to configuration"""

    # MNDP discovery defaults
    _apply_section_defaults(config, 'discovery', {
        'port': 5678,
        'bind_address': '0.0.0.0',
        'scan_timeout_seconds': 5,
        'send_interval_seconds': 1,
        'queue_size': 256,
        'passive_listener': False,
        'neighbor_ttl_minutes': 30,
        'max_known_devices': 1024
    })

    # RouterOS API defaults
    _apply_section_defaults(config, 'routers', {
        'default_port': 8728,
        'connect_timeout_seconds': 10,
        'command_timeout_seconds': 10,
        'use_ssl': False,
        'ssl_verify': False,
        'plaintext_login': True,
        'reconnect_on_startup': False
    })

    # Session liveness sweep
    _apply_section_defaults(config, 'monitoring', {
        'health_check_interval_minutes': 5,
        'max_missed_health_checks': 3
    })

    # Database is optional; disabled means in-memory only
    _apply_section_defaults(config, 'database', {
        'enabled': False
    })

    # API defaults
    _apply_section_defaults(config, 'api', {
        'host': '0.0.0.0',
        'port': 3001,
        'cors_origins': ['http://localhost:8080', 'http://localhost:5173']
    })

    # Logging defaults
    _apply_section_defaults(config, 'logging', {
        'level': 'INFO',
        'file': 'logs/hotspot_server.log',
        'console_output': True,
        'timezone': 'UTC'
    })

    return config


class TimezoneFormatter(logging.Formatter):
    """Formatter that renders timestamps in the configured timezone"""

    def __init__(self, fmt=None, tz_name: str = 'UTC'):
        super().__init__(fmt)
        self.tz = pytz.timezone(tz_name)

    def formatTime(self, record, datefmt=None):
        dt = datetime.fromtimestamp(record.created, tz=self.tz)
        if datefmt:
            return dt.strftime(datefmt)
        else:
            # Default format: YYYY-MM-DD HH:MM:SS TZ
            return dt.strftime('%Y-%m-%d %H:%M:%S %Z')

def setup_logging(config: Dict) -> None:
    """Setup logging based on configuration"""
    log_config = config.get('logging', {})
    level = log_config.get('level', 'INFO')
    tz_name = log_config.get('timezone', 'UTC')

    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    formatter = TimezoneFormatter(log_format, tz_name)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    if log_config.get('console_output', True):
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    log_file = log_config.get('file')
    if log_file:
        # Create logs directory if it doesn't exist
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    logger.info(f"Logging configured: level={level}, timezone={tz_name}, "
                f"console={log_config.get('console_output', True)}, file={log_file}")

def get_sample_config() -> Dict:
    """Return a sample configuration for reference"""
    return {
        "discovery": {
            "port": 5678,
            "bind_address": "0.0.0.0",
            "scan_timeout_seconds": 5,
            "send_interval_seconds": 1,
            "passive_listener": False,
            "neighbor_ttl_minutes": 30
        },
        "routers": {
            "default_port": 8728,
            "connect_timeout_seconds": 10,
            "command_timeout_seconds": 10,
            "use_ssl": False,
            "ssl_verify": False,
            "plaintext_login": True,
            "reconnect_on_startup": True
        },
        "monitoring": {
            "health_check_interval_minutes": 5,
            "max_missed_health_checks": 3
        },
        "database": {
            "enabled": True,
            "host": "localhost",
            "port": 5432,
            "database": "hotspot_db",
            "username": "postgres",
            "password": "postgres"
        },
        "api": {
            "host": "0.0.0.0",
            "port": 3001,
            "cors_origins": ["http://localhost:8080", "http://localhost:5173"]
        },
        "logging": {
            "level": "INFO",
            "file": "logs/hotspot_server.log",
            "console_output": True,
            "timezone": "UTC"
        }
    }
