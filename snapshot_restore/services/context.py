"""Per-invocation context handed to every step handler."""
import tempfile
from pathlib import Path
from typing import Callable, Optional
from urllib.parse import urlparse

from ..core.config import Config
from ..core.logging import get_logger
from ..domain.interfaces import ArchiveInterface, DatabaseInterface
from ..domain.models import DatabaseConfig
from ..infrastructure.archive import ZipArchive
from ..infrastructure.mariadb import MariaDB
from ..infrastructure.siteconfig import SiteSettings
from ..infrastructure.storage import FileStorage
from . import overrides as keys
from .overrides import OverrideStore

logger = get_logger(__name__)

ArchiveFactory = Callable[[Optional[Path]], ArchiveInterface]
DatabaseFactory = Callable[[DatabaseConfig], DatabaseInterface]


class InstallerContext:
    """Everything a step needs besides its own parameters.

    Paths are re-derived from configuration and overrides on every
    invocation; nothing here survives between invocations except through
    the override store and the filesystem.
    """

    def __init__(
        self,
        config: Config,
        overrides: OverrideStore,
        storage: Optional[FileStorage] = None,
        archive_factory: ArchiveFactory = ZipArchive,
        database_factory: DatabaseFactory = MariaDB,
    ):
        self.config = config
        self.overrides = overrides
        self.storage = storage or FileStorage()
        self.archive_factory = archive_factory
        self.database_factory = database_factory

    def archive_path(self) -> Optional[Path]:
        """Locate the snapshot archive.

        An explicit path wins; otherwise each discovery pattern is tried in
        order and the last one that matches decides.
        """
        installer = self.config.installer
        if installer.archive:
            return Path(installer.archive).resolve()

        found = None
        for pattern in installer.archive_patterns:
            matches = self.storage.glob(installer.search_dir, pattern)
            if matches:
                found = matches[0]
        if found is None:
            logger.debug(f"No archive found in {installer.search_dir}")
            return None
        return Path(found).resolve()

    def archive(self) -> ArchiveInterface:
        return self.archive_factory(self.archive_path())

    def temp_dir(self) -> Path:
        """The extraction tree, created if missing."""
        installer = self.config.installer
        root = Path(installer.temp_root) if installer.temp_root else Path(tempfile.gettempdir())
        name = self.overrides.get(keys.TEMP_DIR, installer.temp_dir)
        return self.storage.create_directory(root / name)

    def source_root(self) -> Path:
        """Site files inside the extraction tree."""
        return self.temp_dir() / "www"

    def target_dir(self) -> Path:
        return self.storage.create_directory(Path(self.config.installer.target_dir).resolve())

    def target_url(self) -> str:
        return self.overrides.get(keys.TARGET_URL, self.config.installer.target_url)

    def target_path(self) -> str:
        """URL path of the deployed site, with a trailing slash."""
        path = urlparse(self.target_url()).path or "/"
        return path if path.endswith("/") else path + "/"

    def error_log_path(self) -> Optional[Path]:
        name = self.config.logging.error_log
        if not name:
            return None
        path = Path(name)
        if not path.is_absolute():
            path = Path(self.config.installer.target_dir).resolve() / path
        return path

    def database_values(self, settings: SiteSettings) -> dict:
        """Effective database values; overrides win over the settings file."""
        return {
            'name': self.overrides.get(keys.DB_NAME, settings.get('DB_NAME', '')),
            'user': self.overrides.get(keys.DB_USER, settings.get('DB_USER', '')),
            'password': self.overrides.get(keys.DB_PASSWORD, settings.get('DB_PASSWORD', '')),
            'host': self.overrides.get(keys.DB_HOST, settings.get('DB_HOST', '')),
            'table_prefix': self.overrides.get(keys.DB_TABLE_PREFIX, settings.get('$table_prefix', '')),
        }

    def database_config(self, settings: SiteSettings) -> DatabaseConfig:
        """Connection settings for the target database.

        A ``host:port`` value is split when the port part is numeric.
        """
        values = self.database_values(settings)
        options = self.config.database

        host = values['host'] or 'localhost'
        port = options.port
        if ':' in host:
            name, _, maybe_port = host.partition(':')
            if maybe_port.isdigit():
                host, port = name, int(maybe_port)

        return DatabaseConfig(
            host=host,
            port=port,
            user=values['user'],
            password=values['password'],
            database=values['name'],
            table_prefix=values['table_prefix'],
            use_pure=options.use_pure,
            connect_timeout=options.connect_timeout,
            connect_retries=options.connect_retries,
            retry_backoff_factor=options.retry_backoff_factor,
            ssl=options.ssl,
            ssl_ca=options.ssl_ca,
            ssl_cert=options.ssl_cert,
            ssl_key=options.ssl_key,
            ssl_verify_cert=options.ssl_verify_cert,
            ssl_verify_identity=options.ssl_verify_identity,
        )

    def database(self, settings: SiteSettings) -> DatabaseInterface:
        return self.database_factory(self.database_config(settings))
