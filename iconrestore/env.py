"""
Environment Management Module for IconRestore

Uses python-dotenv for environment variable management.

Usage:
    from iconrestore.env import env, get_scratch_dir

    print(env.cache_dir)
    print(env.logs_dir)
    print(env.log_level)
"""

import os
from pathlib import Path
from dotenv import load_dotenv


# Global constants
ICONRESTORE_VERSION = '0.1.0'


def _resolve_home() -> Path:
    return Path(os.getenv('ICONRESTORE_HOME', '~/.iconrestore')).expanduser()


# Load environment variables from the user's .env file
env_file = _resolve_home() / 'data' / '.env'
if env_file.exists():
    load_dotenv(env_file)


class EnvConfig:
    """Environment configuration object"""

    @property
    def home_dir(self) -> str:
        return str(_resolve_home())

    @property
    def data_dir(self) -> str:
        return str(_resolve_home() / 'data')

    @property
    def env_file(self) -> str:
        return str(_resolve_home() / 'data' / '.env')

    @property
    def cache_dir(self) -> str:
        cache_dir = os.getenv('ICONRESTORE_PATHS_CACHE_DIR', 'cache')
        if not os.path.isabs(cache_dir):
            cache_dir = str(_resolve_home() / cache_dir)
        return cache_dir

    @property
    def logs_dir(self) -> str:
        logs_dir = os.getenv('ICONRESTORE_PATHS_LOGS_DIR', 'logs')
        if not os.path.isabs(logs_dir):
            logs_dir = str(_resolve_home() / logs_dir)
        return logs_dir

    @property
    def log_level(self) -> str:
        return os.getenv('ICONRESTORE_LOGGING_CONSOLE_LEVEL', 'INFO')

    @property
    def log_file_enabled(self) -> bool:
        return os.getenv('ICONRESTORE_LOGGING_FILE_ENABLED', 'false').lower() == 'true'

    @property
    def log_file_level(self) -> str:
        return os.getenv('ICONRESTORE_LOGGING_FILE_LEVEL', 'DEBUG')

    @property
    def log_simple_format(self) -> bool:
        return os.getenv('ICONRESTORE_LOGGING_CONSOLE_SIMPLE_FORMAT', 'true').lower() == 'true'

    @property
    def log_max_files(self) -> int:
        return int(os.getenv('ICONRESTORE_LOGGING_MAX_FILES', '5'))

    @property
    def log_max_size(self) -> str:
        return os.getenv('ICONRESTORE_LOGGING_MAX_SIZE', '10MB')

    @property
    def version(self) -> str:
        return ICONRESTORE_VERSION


# Global env object
env = EnvConfig()


def get_scratch_dir() -> str:
    """Get the directory under which per-call scratch directories are created"""
    scratch_dir = Path(env.cache_dir) / 'scratch'
    scratch_dir.mkdir(parents=True, exist_ok=True)
    return str(scratch_dir)


def get_config_summary() -> dict:
    """Get configuration summary"""
    iconrestore_vars = {k: v for k, v in os.environ.items() if k.startswith('ICONRESTORE_')}

    return {
        'env_file_exists': Path(env.env_file).exists(),
        'env_vars_count': len(iconrestore_vars),
        'paths': {
            'home_dir': env.home_dir,
            'cache_dir': env.cache_dir,
            'logs_dir': env.logs_dir
        }
    }


def is_first_run() -> bool:
    """Check if this is the first run (no .env file exists)"""
    return not Path(env.env_file).exists()


def initialize_env_file(log_to_file: bool = False) -> bool:
    """
    Initialize the .env file with basic configuration

    Args:
        log_to_file: Whether to enable file logging

    Returns:
        True if initialization was successful, False otherwise
    """
    target = Path(env.env_file)
    try:
        target.parent.mkdir(parents=True, exist_ok=True)

        config_content = f"""# IconRestore Configuration File
# This file contains environment variables for IconRestore configuration

# Logging Configuration
ICONRESTORE_LOGGING_FILE_ENABLED={str(log_to_file).lower()}
ICONRESTORE_LOGGING_CONSOLE_LEVEL=INFO
ICONRESTORE_LOGGING_FILE_LEVEL=DEBUG
ICONRESTORE_LOGGING_CONSOLE_SIMPLE_FORMAT=true
ICONRESTORE_LOGGING_MAX_FILES=5
ICONRESTORE_LOGGING_MAX_SIZE=10MB

# Path Configuration (relative to ICONRESTORE_HOME)
ICONRESTORE_PATHS_CACHE_DIR=cache
ICONRESTORE_PATHS_LOGS_DIR=logs
"""

        with open(target, 'w', encoding='utf-8') as f:
            f.write(config_content)

        # Reload the environment variables (override existing ones)
        load_dotenv(target, override=True)

        return True

    except OSError:
        return False
