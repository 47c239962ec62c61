"""
Configuration Management Module
Loads and validates configuration from config.yaml
"""

import re
import yaml
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Any, Optional, List

from registry_db.models import EntityCategory, RegistryStatus

logger = logging.getLogger(__name__)


@dataclass
class DatabaseConfig:
    """Database configuration"""
    host: str = "localhost"
    port: int = 5432
    user: str = "namecheck_user"
    password: str = "namecheck_password"
    name: str = "namecheck_database"
    url: Optional[str] = None


@dataclass
class IngestionConfig:
    """Bulk feed ingestion settings"""
    batch_size: int = 500
    progress_interval: int = 1000
    max_logged_errors: int = 10
    encoding: str = "latin-1"
    retry_attempts: int = 3
    retry_min_wait: float = 1.0
    retry_max_wait: float = 10.0


@dataclass
class FeedConfig:
    """Per-category overrides of a fixed-width feed layout.

    Anything left as None/empty falls back to the built-in layout
    in record_parser.DEFAULT_LAYOUTS.
    """
    file_pattern: Optional[str] = None
    min_record_length: Optional[int] = None
    fields: Dict[str, List[int]] = field(default_factory=dict)
    status_codes: Dict[str, str] = field(default_factory=dict)
    default_status: Optional[str] = None
    default_entity_type: Optional[str] = None


@dataclass
class AvailabilityConfig:
    """Availability resolution parameters"""
    category_limits: Dict[str, int] = field(default_factory=lambda: {
        'corporate': 30,
        'fictitious': 10,
        'partnership': 10
    })
    merged_limit: int = 50
    status_holds_name: Dict[str, bool] = field(default_factory=dict)


@dataclass
class SuggestionConfig:
    """Alternative name suggestion settings"""
    jurisdiction_name: str = "Florida"
    jurisdiction_abbreviation: str = "FL"
    generic_qualifiers: List[str] = field(default_factory=lambda: [
        'Group', 'Solutions', 'Services', 'Enterprises'
    ])
    type_qualifiers: Dict[str, List[str]] = field(default_factory=lambda: {
        'LLC': ['Ventures', 'Holdings'],
        'CORPORATION': ['Corporation', 'International']
    })
    include_year: bool = True
    max_suggestions: int = 5


@dataclass
class InputValidationConfig:
    """Input validation configuration for user-provided business names"""
    name_min_length: int = 3
    name_max_length: int = 100
    blocked_characters: str = "<>{}[]\\/"
    prohibited_words: List[str] = field(default_factory=lambda: [
        'fbi', 'cia', 'treasury', 'federal reserve', 'united states'
    ])


@dataclass
class LoggingConfig:
    """Logging configuration"""
    level: str = "INFO"
    file: Optional[str] = "logs/namecheck.log"
    console: bool = True
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class ConfigurationError(Exception):
    """Raised when configuration is invalid"""
    pass


def _status_key(label) -> Optional[str]:
    """Canonical status value for a config label ("ACT" -> "ACTIVE").

    Unrecognized labels are returned unchanged so validation can name them.
    """
    if label is None:
        return None
    label = str(label)
    status = RegistryStatus.from_label(label)
    if status is RegistryStatus.UNKNOWN and label.strip().upper() != RegistryStatus.UNKNOWN.value:
        return label
    return status.value


class ConfigManager:
    """Manages system configuration"""

    _instance: Optional['ConfigManager'] = None

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration manager

        Args:
            config_path: Path to config.yaml file
        """
        self.config_path = Path(config_path) if config_path else self._find_config()
        self._raw_config: Dict[str, Any] = {}
        self.database: DatabaseConfig = DatabaseConfig()
        self.ingestion: IngestionConfig = IngestionConfig()
        self.feeds: Dict[str, FeedConfig] = {}
        self.availability: AvailabilityConfig = AvailabilityConfig()
        self.suggestions: SuggestionConfig = SuggestionConfig()
        self.input_validation: InputValidationConfig = InputValidationConfig()
        self.logging: LoggingConfig = LoggingConfig()

        if self.config_path and self.config_path.exists():
            self.load()
        else:
            logger.warning(f"Config file not found at {self.config_path}, using defaults")

    def _find_config(self) -> Path:
        """Find config.yaml in common locations"""
        search_paths = [
            Path(__file__).parent / "config.yaml",
            Path.cwd() / "config.yaml",
        ]

        for path in search_paths:
            if path.exists():
                return path

        return search_paths[0]

    def load(self) -> None:
        """Load configuration from YAML file"""
        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                self._raw_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in config file: {e}")
        except FileNotFoundError:
            raise ConfigurationError(f"Config file not found: {self.config_path}")

        if not isinstance(self._raw_config, dict):
            raise ConfigurationError("Config file must contain a mapping at the top level")

        self._parse_database()
        self._parse_ingestion()
        self._parse_feeds()
        self._parse_availability()
        self._parse_suggestions()
        self._parse_input_validation()
        self._parse_logging()
        self._validate()

    def _parse_database(self) -> None:
        """Parse database configuration"""
        cfg = self._raw_config.get('database', {})
        self.database = DatabaseConfig(
            host=cfg.get('host', self.database.host),
            port=cfg.get('port', self.database.port),
            user=cfg.get('user', self.database.user),
            password=cfg.get('password', self.database.password),
            name=cfg.get('name', self.database.name),
            url=cfg.get('url', self.database.url)
        )

    def _parse_ingestion(self) -> None:
        """Parse ingestion configuration"""
        cfg = self._raw_config.get('ingestion', {})
        defaults = IngestionConfig()
        self.ingestion = IngestionConfig(
            batch_size=cfg.get('batch_size', defaults.batch_size),
            progress_interval=cfg.get('progress_interval', defaults.progress_interval),
            max_logged_errors=cfg.get('max_logged_errors', defaults.max_logged_errors),
            encoding=cfg.get('encoding', defaults.encoding),
            retry_attempts=cfg.get('retry_attempts', defaults.retry_attempts),
            retry_min_wait=cfg.get('retry_min_wait', defaults.retry_min_wait),
            retry_max_wait=cfg.get('retry_max_wait', defaults.retry_max_wait)
        )

    def _parse_feeds(self) -> None:
        """Parse per-category feed layout overrides"""
        cfg = self._raw_config.get('feeds', {}) or {}
        feeds = {}
        for category, feed_cfg in cfg.items():
            feed_cfg = feed_cfg or {}
            feeds[str(category)] = FeedConfig(
                file_pattern=feed_cfg.get('file_pattern'),
                min_record_length=feed_cfg.get('min_record_length'),
                fields={
                    str(name): list(span)
                    for name, span in (feed_cfg.get('fields') or {}).items()
                },
                status_codes={
                    str(code): _status_key(status)
                    for code, status in (feed_cfg.get('status_codes') or {}).items()
                },
                default_status=_status_key(feed_cfg.get('default_status')),
                default_entity_type=feed_cfg.get('default_entity_type')
            )
        self.feeds = feeds

    def _parse_availability(self) -> None:
        """Parse availability configuration"""
        cfg = self._raw_config.get('availability', {})
        defaults = AvailabilityConfig()
        limits = dict(defaults.category_limits)
        limits.update(cfg.get('category_limits', {}) or {})
        self.availability = AvailabilityConfig(
            category_limits=limits,
            merged_limit=cfg.get('merged_limit', defaults.merged_limit),
            status_holds_name={
                _status_key(status): holds
                for status, holds in (cfg.get('status_holds_name', {}) or {}).items()
            }
        )

    def _parse_suggestions(self) -> None:
        """Parse suggestion configuration"""
        cfg = self._raw_config.get('suggestions', {})
        defaults = SuggestionConfig()
        self.suggestions = SuggestionConfig(
            jurisdiction_name=cfg.get('jurisdiction_name', defaults.jurisdiction_name),
            jurisdiction_abbreviation=cfg.get(
                'jurisdiction_abbreviation', defaults.jurisdiction_abbreviation
            ),
            generic_qualifiers=cfg.get('generic_qualifiers', defaults.generic_qualifiers),
            type_qualifiers=cfg.get('type_qualifiers', defaults.type_qualifiers),
            include_year=cfg.get('include_year', defaults.include_year),
            max_suggestions=cfg.get('max_suggestions', defaults.max_suggestions)
        )

    def _parse_input_validation(self) -> None:
        """Parse input validation configuration"""
        cfg = self._raw_config.get('input_validation', {})
        defaults = InputValidationConfig()
        self.input_validation = InputValidationConfig(
            name_min_length=cfg.get('name_min_length', defaults.name_min_length),
            name_max_length=cfg.get('name_max_length', defaults.name_max_length),
            blocked_characters=cfg.get('blocked_characters', defaults.blocked_characters),
            prohibited_words=cfg.get('prohibited_words', defaults.prohibited_words)
        )

    def _parse_logging(self) -> None:
        """Parse logging configuration"""
        cfg = self._raw_config.get('logging', {})
        self.logging = LoggingConfig(
            level=cfg.get('level', 'INFO'),
            file=cfg.get('file', self.logging.file),
            console=cfg.get('console', True),
            format=cfg.get('format', self.logging.format)
        )

    @classmethod
    def get_instance(cls, config_path: Optional[str] = None) -> 'ConfigManager':
        """Get singleton instance of ConfigManager"""
        if cls._instance is None:
            cls._instance = ConfigManager(config_path)
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Reset singleton instance (useful for testing)"""
        cls._instance = None

    def to_dict(self) -> Dict[str, Any]:
        """Export configuration as dictionary"""
        return {
            'database': {
                'host': self.database.host,
                'port': self.database.port,
                'user': self.database.user,
                'name': self.database.name
            },
            'ingestion': {
                'batch_size': self.ingestion.batch_size,
                'progress_interval': self.ingestion.progress_interval,
                'max_logged_errors': self.ingestion.max_logged_errors,
                'encoding': self.ingestion.encoding,
                'retry_attempts': self.ingestion.retry_attempts
            },
            'feeds': {
                category: {
                    'file_pattern': feed.file_pattern,
                    'min_record_length': feed.min_record_length,
                    'fields': feed.fields,
                    'status_codes': feed.status_codes,
                    'default_status': feed.default_status,
                    'default_entity_type': feed.default_entity_type
                }
                for category, feed in self.feeds.items()
            },
            'availability': {
                'category_limits': self.availability.category_limits,
                'merged_limit': self.availability.merged_limit,
                'status_holds_name': self.availability.status_holds_name
            },
            'suggestions': {
                'jurisdiction_name': self.suggestions.jurisdiction_name,
                'jurisdiction_abbreviation': self.suggestions.jurisdiction_abbreviation,
                'generic_qualifiers': self.suggestions.generic_qualifiers,
                'type_qualifiers': self.suggestions.type_qualifiers,
                'max_suggestions': self.suggestions.max_suggestions
            },
            'input_validation': {
                'name_min_length': self.input_validation.name_min_length,
                'name_max_length': self.input_validation.name_max_length,
                'prohibited_words': self.input_validation.prohibited_words
            },
            'logging': {
                'level': self.logging.level,
                'file': self.logging.file,
                'console': self.logging.console
            }
        }

    def _validate(self) -> None:
        """Validate configuration values

        Raises:
            ConfigurationError: If any value is out of range or unknown
        """
        errors: List[str] = []
        categories = {c.value for c in EntityCategory}
        statuses = {s.value for s in RegistryStatus}

        ing = self.ingestion
        for name in ('batch_size', 'progress_interval', 'retry_attempts'):
            if not isinstance(getattr(ing, name), int) or getattr(ing, name) < 1:
                errors.append(f"ingestion.{name} must be a positive integer")
        if ing.max_logged_errors < 0:
            errors.append("ingestion.max_logged_errors cannot be negative")
        if ing.retry_min_wait < 0 or ing.retry_max_wait < ing.retry_min_wait:
            errors.append("ingestion.retry_min_wait/retry_max_wait must satisfy 0 <= min <= max")

        for category, feed in self.feeds.items():
            if category not in categories:
                errors.append(f"feeds.{category}: unknown category")
            if feed.min_record_length is not None and feed.min_record_length < 1:
                errors.append(f"feeds.{category}.min_record_length must be positive")
            for name, span in feed.fields.items():
                if (len(span) != 2 or not all(isinstance(v, int) for v in span)
                        or not 0 <= span[0] < span[1]):
                    errors.append(f"feeds.{category}.fields.{name} must be [start, end] with 0 <= start < end")
            for code, status in feed.status_codes.items():
                if status not in statuses:
                    errors.append(f"feeds.{category}.status_codes.{code}: unknown status {status}")
            if feed.default_status is not None and feed.default_status not in statuses:
                errors.append(f"feeds.{category}.default_status: unknown status {feed.default_status}")
            if feed.file_pattern is not None:
                try:
                    re.compile(feed.file_pattern)
                except re.error as e:
                    errors.append(f"feeds.{category}.file_pattern is not a valid regex: {e}")

        avail = self.availability
        for category, limit in avail.category_limits.items():
            if category not in categories:
                errors.append(f"availability.category_limits.{category}: unknown category")
            elif not isinstance(limit, int) or limit < 1:
                errors.append(f"availability.category_limits.{category} must be a positive integer")
        if not isinstance(avail.merged_limit, int) or avail.merged_limit < 1:
            errors.append("availability.merged_limit must be a positive integer")
        for status in avail.status_holds_name:
            if status not in statuses:
                errors.append(f"availability.status_holds_name.{status}: unknown status")

        if self.suggestions.max_suggestions < 0:
            errors.append("suggestions.max_suggestions cannot be negative")

        iv = self.input_validation
        if iv.name_min_length < 1 or iv.name_max_length < iv.name_min_length:
            errors.append("input_validation name lengths must satisfy 1 <= min <= max")

        if errors:
            raise ConfigurationError("Invalid configuration: " + "; ".join(errors))


def get_config(config_path: Optional[str] = None) -> ConfigManager:
    """Convenience function to get configuration instance"""
    return ConfigManager.get_instance(config_path)
