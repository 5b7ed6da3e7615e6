"""Configuration management for the snapshot installer."""
import os
import sys
from pathlib import Path
from typing import Dict, Any, Optional, List, Union
import yaml
from dataclasses import dataclass, field, asdict

from snapshot_restore.core.exceptions import ConfigError

# Set up the default configuration locations
DEFAULT_CONFIG_FILE = "config/config.yaml"
DEFAULT_CONFIG_DIRS = [
    ".",
    "~/.snapshot-restore",
    "/etc/snapshot-restore",
]

# Archive discovery order; a later match replaces an earlier one
DEFAULT_ARCHIVE_PATTERNS = [
    "[0-9a-f]" * 12 + ".zip",
    "full_*.zip",
    "build/data/*.zip",
]

SESSION_BACKENDS = ("file", "memory", "none")


@dataclass
class InstallerConfig:
    """Installer paths and chunking configuration."""
    archive: str = ""
    search_dir: str = "."
    archive_patterns: List[str] = field(default_factory=lambda: list(DEFAULT_ARCHIVE_PATTERNS))
    target_dir: str = "."
    target_url: str = "http://localhost/"
    temp_root: str = ""  # Empty means the system temp directory
    temp_dir: str = "snapshot-restore-temp"
    files_chunk_size: int = 250
    tables_chunk_size: int = 1


@dataclass
class SessionConfig:
    """Override session configuration."""
    backend: str = "file"
    path: str = ".snapshot-restore-session.yaml"


@dataclass
class DatabaseOptions:
    """Connection options shared by every database the installer opens."""
    port: int = 3306
    use_pure: bool = True
    connect_timeout: int = 10
    connect_retries: int = 2
    retry_backoff_factor: float = 1.5
    ssl: bool = False
    ssl_ca: Optional[str] = None
    ssl_cert: Optional[str] = None
    ssl_key: Optional[str] = None
    ssl_verify_cert: bool = False
    ssl_verify_identity: bool = False


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    file: str = ""
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    error_log: str = "si-error.log"  # Warnings and errors only, removed by cleanup


@dataclass
class UIConfig:
    """Console interface configuration."""
    interface: str = "rich"
    show_checks: bool = True


@dataclass
class Config:
    """Main configuration class."""
    installer: InstallerConfig = field(default_factory=InstallerConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    database: DatabaseOptions = field(default_factory=DatabaseOptions)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    ui: UIConfig = field(default_factory=UIConfig)


def get_default_config_path() -> Path:
    """Get the default configuration file path.

    First checks for a config file next to the executable,
    then falls back to the one shipped with the sources.
    """
    if getattr(sys, 'frozen', False):
        exe_dir = Path(sys.executable).parent
    else:
        exe_dir = Path(__file__).parent.parent.parent

    return exe_dir / "config" / "config.yaml"


def load_config(config_file: Optional[Union[Path, str]] = None) -> Config:
    """Load configuration from a file.

    Args:
        config_file: Path to the configuration file. When omitted the default
            locations are searched and built-in defaults are used if nothing
            is found.

    Returns:
        Config object with loaded settings

    Raises:
        ConfigError: If configuration is invalid or an explicit file is missing
    """
    if config_file is None:
        config_file = _find_config_file()
        if config_file is None:
            return Config()

    # Convert string path to Path object if needed
    if isinstance(config_file, str):
        config_file = Path(config_file)

    if not config_file.exists():
        raise ConfigError(f"Configuration file not found: {config_file}")

    try:
        with open(config_file, 'r') as f:
            config_dict = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid configuration file {config_file}: {str(e)}")

    if not isinstance(config_dict, dict):
        raise ConfigError(f"Invalid configuration file {config_file}: expected a mapping")

    return config_from_dict(config_dict)


def config_from_dict(config_dict: Dict[str, Any]) -> Config:
    """Build a Config from a parsed YAML mapping.

    Raises:
        ConfigError: If a value has the wrong type or is out of range
    """
    installer_config = config_dict.get('installer') or {}
    installer = InstallerConfig(
        archive=installer_config.get('archive') or '',
        search_dir=installer_config.get('search_dir', '.'),
        archive_patterns=installer_config.get('archive_patterns') or list(DEFAULT_ARCHIVE_PATTERNS),
        target_dir=installer_config.get('target_dir', '.'),
        target_url=installer_config.get('target_url', 'http://localhost/'),
        temp_root=installer_config.get('temp_root') or '',
        temp_dir=installer_config.get('temp_dir', 'snapshot-restore-temp'),
        files_chunk_size=_positive_int(installer_config, 'files_chunk_size', 250),
        tables_chunk_size=_positive_int(installer_config, 'tables_chunk_size', 1),
    )

    session_config = config_dict.get('session') or {}
    session = SessionConfig(
        backend=str(session_config.get('backend', 'file')).lower(),
        path=session_config.get('path', '.snapshot-restore-session.yaml'),
    )
    if session.backend not in SESSION_BACKENDS:
        raise ConfigError(
            f"Unknown session backend '{session.backend}', expected one of {', '.join(SESSION_BACKENDS)}"
        )

    db_config = config_dict.get('database') or {}
    database = DatabaseOptions(
        port=db_config.get('port', 3306),
        use_pure=db_config.get('use_pure', True),
        connect_timeout=db_config.get('connect_timeout', 10),
        connect_retries=db_config.get('connect_retries', 2),
        retry_backoff_factor=db_config.get('retry_backoff_factor', 1.5),
        ssl=db_config.get('ssl', False),
        ssl_ca=db_config.get('ssl_ca', None),
        ssl_cert=db_config.get('ssl_cert', None),
        ssl_key=db_config.get('ssl_key', None),
        ssl_verify_cert=db_config.get('ssl_verify_cert', False),
        ssl_verify_identity=db_config.get('ssl_verify_identity', False),
    )

    logging_config = config_dict.get('logging') or {}
    logging = LoggingConfig(
        level=str(logging_config.get('level', 'INFO')).upper(),
        file=logging_config.get('file') or '',
        format=logging_config.get('format', '%(asctime)s - %(name)s - %(levelname)s - %(message)s'),
        error_log=logging_config.get('error_log', 'si-error.log') or '',
    )

    ui_config = config_dict.get('ui') or {}
    ui = UIConfig(
        interface=ui_config.get('interface', 'rich'),
        show_checks=ui_config.get('show_checks', True),
    )

    return Config(
        installer=installer,
        session=session,
        database=database,
        logging=logging,
        ui=ui,
    )


def _positive_int(section: Dict[str, Any], key: str, default: int) -> int:
    value = section.get(key, default)
    try:
        value = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid value for {key}: {value!r}")
    if value < 1:
        raise ConfigError(f"{key} must be a positive integer, got {value}")
    return value


def _find_config_file() -> Optional[Path]:
    """Find the configuration file in the default locations.

    Returns:
        Path to the configuration file, or None if not found
    """
    # First check if the default config file exists
    if os.path.exists(DEFAULT_CONFIG_FILE):
        return Path(DEFAULT_CONFIG_FILE)

    # Check the default directories
    for directory in DEFAULT_CONFIG_DIRS:
        expanded_dir = os.path.expanduser(directory)
        config_path = os.path.join(expanded_dir, "config.yaml")
        if os.path.exists(config_path):
            return Path(config_path)

    shipped = get_default_config_path()
    if shipped.exists():
        return shipped

    return None


def save_config(config: Config, file_path: Union[Path, str]) -> None:
    """Save the configuration to a file.

    Args:
        config: Configuration object
        file_path: Path to the file

    Raises:
        ConfigError: If the configuration cannot be saved
    """
    try:
        file_path = Path(file_path)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        config_dict = _config_to_dict(config)

        with open(file_path, 'w') as f:
            yaml.safe_dump(config_dict, f, default_flow_style=False, sort_keys=False)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to save configuration: {str(e)}")


def _config_to_dict(config: Config) -> Dict[str, Any]:
    """Convert a configuration object to a dictionary.

    Args:
        config: Configuration object

    Returns:
        Dictionary representation of the configuration
    """
    result = {
        'installer': asdict(config.installer),
        'session': asdict(config.session),
        'database': asdict(config.database),
        'logging': asdict(config.logging),
        'ui': asdict(config.ui),
    }

    # Remove None values for cleaner output
    for section in result.values():
        keys_to_remove = [k for k, v in section.items() if v is None]
        for key in keys_to_remove:
            del section[key]

    return result
