"""
Configuration Management

Unified configuration for the clinic reporting service. Settings are grouped
into dataclass sections, loaded from an optional .config.json file and
overridden by CLINIC_* environment variables.

Copyright: © 2025 Clinic Reports contributors
"""

import os
import json
import logging
import logging.handlers
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Any
from dataclasses import dataclass, field
from enum import Enum


class Environment(Enum):
    """Supported environments"""
    DEVELOPMENT = "development"
    TESTING = "testing"
    PRODUCTION = "production"


class LogLevel(Enum):
    """Supported log levels"""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


@dataclass
class DatabaseConfig:
    """SQLite source database settings"""
    path: Path = field(default_factory=lambda: Path("data/database/clinic.db"))
    journal_mode: str = "WAL"
    connection_timeout: int = 30
    max_connections: int = 10


@dataclass
class LoggingConfig:
    """Logging configuration"""
    level: LogLevel = LogLevel.INFO
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"
    logs_dir: Path = field(default_factory=lambda: Path("data/logs"))
    file_rotation_size: int = 10 * 1024 * 1024  # 10MB
    file_retention_count: int = 5
    enable_console: bool = True
    enable_file: bool = False


@dataclass
class ReportsConfig:
    """Report engine settings"""
    default_report_type: str = "sales"
    default_date_range: str = "month"
    # Upper bound for the comprehensive fan-out; a slower source fails the report
    fetch_timeout_seconds: float = 30.0
    max_workers: int = 7
    low_stock_threshold: int = 10


@dataclass
class WebConfig:
    """Web interface configuration"""
    host: str = "0.0.0.0"
    port: int = 8000
    reload: bool = False
    log_level: str = "info"
    cors_origins: List[str] = field(default_factory=lambda: ["*"])


class UnifiedConfig:
    """
    Central configuration management system
    Implements singleton pattern and environment-aware configuration
    Loads from .config.json file with environment variable overrides
    """

    _instance: Optional['UnifiedConfig'] = None
    _initialized: bool = False
    _config_file = Path(".config.json")
    _json_config: Optional[Dict[str, Any]] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self._load_json_config()

        env_mode = self._get_config_value('environment', 'mode', default='development')
        if not env_mode or not isinstance(env_mode, str):
            env_mode = 'development'
        env_var = os.getenv('CLINIC_ENVIRONMENT')
        if env_var:
            env_mode = env_var
        try:
            self.environment = Environment(env_mode.lower())
        except ValueError:
            logging.getLogger(__name__).warning(
                f"Unknown environment '{env_mode}', falling back to development"
            )
            self.environment = Environment.DEVELOPMENT

        self.database = self._load_database_config()
        self.logging = self._load_logging_config()
        self.reports = self._load_reports_config()
        self.web = self._load_web_config()

        self._initialized = True

    def _load_json_config(self):
        """Load configuration from .config.json file"""
        if self._config_file.exists():
            try:
                with open(self._config_file, 'r', encoding='utf-8') as f:
                    self._json_config = json.load(f)
                logging.getLogger(__name__).info(f"Loaded configuration from {self._config_file}")
            except (json.JSONDecodeError, IOError) as e:
                logging.getLogger(__name__).warning(f"Error loading {self._config_file}: {e}. Using defaults.")
                self._json_config = None
        else:
            logging.getLogger(__name__).debug(f"Config file {self._config_file} not found. Using defaults.")
            self._json_config = None

    def _get_config_value(self, *keys, default=None):
        """
        Get a value from JSON config using nested keys
        Example: _get_config_value('database', 'path', default='data/database/clinic.db')
        """
        if not self._json_config:
            return default

        value = self._json_config
        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        # Skip documentation keys (keys starting with _)
        if isinstance(value, dict):
            return {k: v for k, v in value.items() if not k.startswith('_')} if value else default

        return value if value is not None else default

    def _load_database_config(self) -> DatabaseConfig:
        """Load database configuration from JSON and environment overrides"""
        db_config = self._get_config_value('database', default={})
        config = DatabaseConfig()

        config.path = Path(os.getenv('CLINIC_DATABASE_PATH', db_config.get('path', str(config.path))))
        config.journal_mode = db_config.get('journal_mode', config.journal_mode)
        config.connection_timeout = int(os.getenv('CLINIC_DATABASE_TIMEOUT', str(db_config.get('connection_timeout', 30))))
        config.max_connections = int(os.getenv('CLINIC_DATABASE_MAX_CONNECTIONS', str(db_config.get('max_connections', 10))))

        return config

    def _load_logging_config(self) -> LoggingConfig:
        """Load logging configuration from JSON and environment overrides"""
        log_config = self._get_config_value('logging', default={})
        config = LoggingConfig()

        log_level = os.getenv('CLINIC_LOG_LEVEL', log_config.get('level', 'INFO'))
        try:
            config.level = LogLevel(log_level.upper())
        except ValueError:
            config.level = LogLevel.INFO

        config.format = os.getenv('CLINIC_LOG_FORMAT', log_config.get('format', config.format))
        config.date_format = log_config.get('date_format', config.date_format)
        config.logs_dir = Path(os.getenv('CLINIC_LOGS_DIR', log_config.get('logs_dir', str(config.logs_dir))))
        rotation_mb = log_config.get('file_rotation_size_mb', 10)
        config.file_rotation_size = rotation_mb * 1024 * 1024
        config.file_retention_count = log_config.get('file_retention_count', 5)
        config.enable_console = log_config.get('enable_console', True)
        config.enable_file = log_config.get('enable_file', False)

        if self.environment == Environment.PRODUCTION:
            config.enable_file = True

        return config

    def _load_reports_config(self) -> ReportsConfig:
        """Load report engine configuration from JSON and environment overrides"""
        reports_config = self._get_config_value('reports', default={})
        config = ReportsConfig()

        config.default_report_type = reports_config.get('default_report_type', config.default_report_type)
        config.default_date_range = reports_config.get('default_date_range', config.default_date_range)
        config.fetch_timeout_seconds = float(os.getenv(
            'CLINIC_REPORT_TIMEOUT', str(reports_config.get('fetch_timeout_seconds', 30))
        ))
        config.max_workers = int(os.getenv('CLINIC_REPORT_MAX_WORKERS', str(reports_config.get('max_workers', 7))))
        config.low_stock_threshold = reports_config.get('low_stock_threshold', config.low_stock_threshold)

        return config

    def _load_web_config(self) -> WebConfig:
        """Load web configuration from JSON and environment overrides"""
        web_config = self._get_config_value('web', default={})
        config = WebConfig()

        config.host = os.getenv('WEB_HOST', web_config.get('host', '0.0.0.0'))
        config.port = int(os.getenv('WEB_PORT', str(web_config.get('port', 8000))))
        config.reload = web_config.get('reload', False)
        config.log_level = os.getenv('WEB_LOG_LEVEL', web_config.get('log_level', 'info'))
        config.cors_origins = web_config.get('cors_origins', ['*'])

        if self.is_development():
            config.reload = True
            config.log_level = "debug"

        return config

    def is_development(self) -> bool:
        """Check if running in development mode"""
        return self.environment == Environment.DEVELOPMENT

    def is_production(self) -> bool:
        """Check if running in production mode"""
        return self.environment == Environment.PRODUCTION

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary for serialization"""
        return {
            'environment': self.environment.value,
            'database': {
                'path': str(self.database.path),
                'connection_timeout': self.database.connection_timeout,
                'max_connections': self.database.max_connections
            },
            'reports': {
                'default_report_type': self.reports.default_report_type,
                'default_date_range': self.reports.default_date_range,
                'fetch_timeout_seconds': self.reports.fetch_timeout_seconds,
                'max_workers': self.reports.max_workers
            },
            'web': {
                'host': self.web.host,
                'port': self.web.port,
                'reload': self.web.reload
            }
        }


# Global configuration instance (singleton)
config = UnifiedConfig()


def get_config() -> UnifiedConfig:
    """Get the global configuration instance"""
    return config


def setup_logging():
    """Setup logging configuration based on current config"""
    log_config = config.logging
    root_logger = logging.getLogger()

    logging.basicConfig(
        level=getattr(logging, log_config.level.value),
        format=log_config.format,
        datefmt=log_config.date_format,
        force=True
    )

    if log_config.enable_file:
        log_config.logs_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_config.logs_dir / f"clinic_reports_{datetime.now().strftime('%Y%m%d')}.log"

        existing_file_handler = None
        for handler in root_logger.handlers:
            if isinstance(handler, logging.handlers.RotatingFileHandler):
                if handler.baseFilename == str(log_file.resolve()):
                    existing_file_handler = handler
                    break

        if existing_file_handler is None:
            file_handler = logging.handlers.RotatingFileHandler(
                log_file,
                maxBytes=log_config.file_rotation_size,
                backupCount=log_config.file_retention_count
            )
            file_handler.setFormatter(logging.Formatter(log_config.format, log_config.date_format))
            root_logger.addHandler(file_handler)

    # Console output stays on unless production explicitly disables it
    if not log_config.enable_console and config.is_production():
        root_logger.handlers = [h for h in root_logger.handlers
                                if not isinstance(h, logging.StreamHandler)
                                or isinstance(h, logging.FileHandler)]
