"""Logging setup: console output, optional debug file and the installer error log."""
import logging
import sys
from pathlib import Path
from typing import Optional

from snapshot_restore.core.config import Config, LoggingConfig


def setup_logging(config: LoggingConfig, error_log: Optional[str] = None) -> None:
    """Configure the root logger for one installer invocation.

    Args:
        config: Logging section of the installer configuration
        error_log: Optional override for the error log location (the
            installer writes it next to the deployed site so cleanup can
            find and remove it)
    """
    simple_formatter = logging.Formatter(config.format)
    # Debug file entries carry the call site
    detailed_formatter = logging.Formatter(
        config.format + "\n  at %(pathname)s:%(lineno)d in %(funcName)s"
    )

    # stdout is reserved for step output
    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(simple_formatter)
    handlers = [console]

    if config.file:
        debug_file = Path(config.file)
        debug_file.parent.mkdir(parents=True, exist_ok=True)
        debug_handler = logging.FileHandler(debug_file)
        debug_handler.setFormatter(detailed_formatter)
        handlers.append(debug_handler)

    # Error log only keeps warnings and failures
    error_log = error_log if error_log is not None else config.error_log
    if error_log:
        error_file = Path(error_log)
        error_file.parent.mkdir(parents=True, exist_ok=True)
        error_handler = logging.FileHandler(error_file, delay=True)
        error_handler.setLevel(logging.WARNING)
        error_handler.setFormatter(simple_formatter)
        handlers.append(error_handler)

    root_logger = logging.getLogger()
    root_logger.setLevel(config.level)

    # Replaces whatever an earlier call installed
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    for handler in handlers:
        root_logger.addHandler(handler)

    root_logger.debug("Logging system initialized")
    root_logger.debug(f"Log level: {config.level}")
    if config.file:
        root_logger.debug(f"Log file: {config.file}")
    if error_log:
        root_logger.debug(f"Error log: {error_log}")

    # Uncaught exceptions also end up in the error log
    sys.excepthook = _global_exception_handler


def _global_exception_handler(exc_type, exc_value, exc_traceback):
    """Global exception handler to ensure all unhandled exceptions are logged."""
    if not issubclass(exc_type, KeyboardInterrupt):
        logger = get_logger("exception_handler")
        logger.error(
            "Unhandled exception",
            exc_info=(exc_type, exc_value, exc_traceback)
        )

    sys.__excepthook__(exc_type, exc_value, exc_traceback)


def close_error_log(path: Path) -> None:
    """Detach and close any root handler writing to ``path``."""
    root_logger = logging.getLogger()
    resolved = Path(path).resolve()
    for handler in root_logger.handlers[:]:
        if isinstance(handler, logging.FileHandler) and Path(handler.baseFilename) == resolved:
            root_logger.removeHandler(handler)
            handler.close()


def get_logger(name: str = None) -> logging.Logger:
    """Get a logger instance with the specified name.

    This is the preferred way to get a logger in this application.
    The logger will inherit the root logger's configuration.

    Args:
        name: The name for the logger. If None, returns the root logger.

    Returns:
        A configured logger instance
    """
    return logging.getLogger(name) if name else logging.getLogger()


def log_config(config: Config) -> None:
    """Log configuration settings.

    Args:
        config: Loaded configuration
    """
    logger = get_logger(__name__)

    installer = config.installer
    logger.info("Installer Configuration:")
    logger.info(f"  Archive: {installer.archive or '(discover in ' + installer.search_dir + ')'}")
    logger.info(f"  Target Directory: {installer.target_dir}")
    logger.info(f"  Target URL: {installer.target_url}")
    logger.info(f"  Temp Directory: {installer.temp_dir}")
    logger.info(f"  File Chunk Size: {installer.files_chunk_size}")
    logger.info(f"  Table Chunk Size: {installer.tables_chunk_size}")

    logger.info("Session Configuration:")
    logger.info(f"  Backend: {config.session.backend}")
    if config.session.backend == "file":
        logger.info(f"  Path: {config.session.path}")

    # Connection options only, credentials come from the snapshot
    database = config.database
    logger.info("Database Options:")
    logger.info(f"  Default Port: {database.port}")
    logger.info(f"  Use Pure: {database.use_pure}")
    logger.info(f"  Connect Retries: {database.connect_retries}")
    logger.info(f"  SSL: {database.ssl}")
    if database.ssl:
        logger.info(f"  SSL CA: {database.ssl_ca}")
        logger.info(f"  SSL Verify Cert: {database.ssl_verify_cert}")

    logger.info("Logging Configuration:")
    logger.info(f"  Level: {config.logging.level}")
    logger.info(f"  File: {config.logging.file}")
    logger.info(f"  Error Log: {config.logging.error_log}")
