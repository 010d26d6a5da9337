"""
Configuration Management Module

Handles the YAML settings file including:
- Default settings merged under the user's file
- Dotted-key access and updates
- Schema validation and type coercion for values typed on the command line
"""

import copy
import yaml
from typing import Dict, Any, Optional, List
from pathlib import Path
from dataclasses import dataclass

from .env import env
from .common.utils import ensure_directory, parse_bool


@dataclass
class ConfigSchema:
    """Configuration schema definition"""
    name: str
    type: str  # 'string', 'integer', 'number', 'boolean', 'list'
    default: Any
    description: str
    nullable: bool = False
    min_value: Optional[float] = None


class ConfigurationError(Exception):
    """Configuration-related errors"""
    pass


DEFAULT_CONFIG: Dict[str, Any] = {
    'scan': {
        'directories': ['/Applications'],
    },
    'restore': {
        'refresh_finder': True,
        'rollback_on_failure': True,
        'tool_timeout': None,
    },
    'refresh': {
        'quit_delay': 2,
        'activate_delay': 1,
    },
}

CONFIG_SCHEMA: List[ConfigSchema] = [
    ConfigSchema('scan.directories', 'list', ['/Applications'],
                 'Directories scanned for application bundles'),
    ConfigSchema('restore.refresh_finder', 'boolean', True,
                 'Restart the Finder after restoring so the change shows immediately'),
    ConfigSchema('restore.rollback_on_failure', 'boolean', True,
                 'Remove a half-written icon override when a restore step fails'),
    ConfigSchema('restore.tool_timeout', 'number', None,
                 'Seconds allowed for each external utility (empty waits forever)',
                 nullable=True, min_value=0),
    ConfigSchema('refresh.quit_delay', 'number', 2,
                 'Seconds to wait after quitting the Finder', min_value=0),
    ConfigSchema('refresh.activate_delay', 'number', 1,
                 'Seconds to wait after relaunching the Finder', min_value=0),
]


def _merge(target: Dict[str, Any], source: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge source into target and return target"""
    for key, value in source.items():
        if key in target and isinstance(target[key], dict) and isinstance(value, dict):
            _merge(target[key], value)
        else:
            target[key] = value
    return target


class ConfigManager:
    """Configuration management system"""

    def __init__(self, home: Optional[str] = None):
        """Initialize configuration manager"""
        self.home = Path(home) if home else Path(env.home_dir)
        self.data_dir = self.home / 'data'
        self.config_file = self.data_dir / 'iconrestore.yaml'

        self.config = self._load()

    def _load_yaml_file(self, file_path: Path) -> Dict[str, Any]:
        """Load and parse a YAML file"""
        if not file_path.exists():
            return {}
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML syntax in {file_path}: {e}")
        except OSError as e:
            raise ConfigurationError(f"Error reading config file {file_path}: {e}")

        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {file_path} must contain a mapping")
        return data

    def _save_yaml_file(self, file_path: Path, data: Dict[str, Any]) -> None:
        """Save data to a YAML file"""
        try:
            ensure_directory(file_path.parent)
            with open(file_path, 'w', encoding='utf-8') as f:
                yaml.dump(data, f, default_flow_style=False, indent=2,
                          allow_unicode=True, sort_keys=False)
        except OSError as e:
            raise ConfigurationError(f"Error saving config file {file_path}: {e}")

    def _load(self) -> Dict[str, Any]:
        """Load user settings on top of the defaults"""
        return _merge(copy.deepcopy(DEFAULT_CONFIG), self._load_yaml_file(self.config_file))

    def save(self) -> None:
        self._save_yaml_file(self.config_file, self.config)

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation

        Args:
            key: Configuration key (e.g., 'restore.refresh_finder')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        value = self.config
        for k in key.split('.'):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return value

    def set(self, key: str, value: Any, save: bool = True) -> None:
        """
        Set configuration value using dot notation

        Args:
            key: Configuration key (e.g., 'refresh.quit_delay')
            value: Value to set
            save: Whether to save to file immediately
        """
        keys = key.split('.')
        current = self.config

        for k in keys[:-1]:
            if not isinstance(current.get(k), dict):
                current[k] = {}
            current = current[k]

        current[keys[-1]] = value

        if save:
            self.save()

    def get_schema(self, key: str) -> Optional[ConfigSchema]:
        for field in CONFIG_SCHEMA:
            if field.name == key:
                return field
        return None

    def coerce(self, key: str, raw: str) -> Any:
        """
        Convert a value typed on the command line to the type its schema declares

        Raises:
            ConfigurationError: If the key is unknown or the value does not parse
        """
        field = self.get_schema(key)
        if field is None:
            raise ConfigurationError(f"Unknown setting '{key}'")

        text = raw.strip()
        if field.nullable and text.lower() in ('', 'none', 'null'):
            return None

        try:
            if field.type == 'boolean':
                return parse_bool(text)
            if field.type == 'integer':
                return int(text)
            if field.type == 'number':
                number = float(text)
                return int(number) if number.is_integer() else number
            if field.type == 'list':
                return [item.strip() for item in text.split(',') if item.strip()]
        except ValueError as e:
            raise ConfigurationError(f"Invalid value for '{key}': {e}")

        return text

    def validate(self) -> List[str]:
        """
        Validate the loaded configuration against the schema

        Returns:
            List of validation error messages
        """
        errors = []

        for field in CONFIG_SCHEMA:
            value = self.get(field.name)

            if value is None:
                if not field.nullable:
                    errors.append(f"Field '{field.name}' must not be empty")
                continue

            if field.type == 'boolean' and not isinstance(value, bool):
                errors.append(f"Field '{field.name}' must be a boolean")
            elif field.type == 'integer' and (isinstance(value, bool) or not isinstance(value, int)):
                errors.append(f"Field '{field.name}' must be an integer")
            elif field.type == 'number' and (isinstance(value, bool) or not isinstance(value, (int, float))):
                errors.append(f"Field '{field.name}' must be a number")
            elif field.type == 'list' and not isinstance(value, list):
                errors.append(f"Field '{field.name}' must be a list")
            elif field.type == 'string' and not isinstance(value, str):
                errors.append(f"Field '{field.name}' must be a string")
            elif field.min_value is not None and isinstance(value, (int, float)) and value < field.min_value:
                errors.append(f"Field '{field.name}' must be >= {field.min_value}")

        return errors

    def reset(self) -> None:
        """Reset configuration to defaults"""
        if self.config_file.exists():
            self.config_file.unlink()
        self.config = copy.deepcopy(DEFAULT_CONFIG)

    def summary(self) -> Dict[str, Any]:
        """Get a summary of current configuration"""
        return {
            'config_file': str(self.config_file),
            'config_exists': self.config_file.exists(),
            'scan_directories': self.get('scan.directories', []),
            'refresh_finder': self.get('restore.refresh_finder', True),
            'rollback_on_failure': self.get('restore.rollback_on_failure', True),
            'tool_timeout': self.get('restore.tool_timeout'),
        }
