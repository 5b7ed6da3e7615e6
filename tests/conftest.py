"""Shared fixtures for the snapshot restore tests."""
import zipfile
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from snapshot_restore.core.config import Config, InstallerConfig, LoggingConfig, SessionConfig
from snapshot_restore.domain.interfaces import DatabaseInterface
from snapshot_restore.infrastructure.session import MemorySessionBackend
from snapshot_restore.services.context import InstallerContext
from snapshot_restore.services.overrides import OverrideStore

WP_CONFIG = """<?php
define('DB_NAME', 'shop');
define('DB_USER', 'shop_user');
define('DB_PASSWORD', 'secret');
define('DB_HOST', 'db.internal');
$table_prefix = 'wp_';
require_once ABSPATH . 'wp-settings.php';
"""

HTACCESS = """# BEGIN WordPress
<IfModule mod_rewrite.c>
RewriteEngine On
RewriteBase /old/
RewriteRule ^index\\.php$ - [L]
RewriteRule . /old/index.php [L]
</IfModule>
# END WordPress
"""

MANIFEST = "SNAPSHOT_VERSION:4.1\nSITE_URL:http://old.example.com/old/\n"

POSTS_DUMP = """-- Table structure
DROP TABLE IF EXISTS `wp_posts`;
CREATE TABLE `wp_posts` (
  `ID` bigint(20) NOT NULL,
  `post_title` text
);
INSERT INTO `wp_posts` VALUES (1,'Hello; world'),(2,'It''s here');
"""

OPTIONS_DUMP = """DROP TABLE IF EXISTS `wp_options`;
CREATE TABLE `wp_options` (`option_name` varchar(191), `option_value` longtext);
INSERT INTO `wp_options` VALUES ('siteurl','http://old.example.com/old/');
"""


class FakeDatabase(DatabaseInterface):
    """In-memory stand-in for the MariaDB connection.

    Records every statement; statements containing one of ``fail_on`` are
    rejected with ``error``.
    """

    def __init__(self, fail_on: Optional[List[str]] = None, connect_errno: int = 0,
                 schema_empty: bool = True, error: str = "You have an error in your SQL syntax"):
        self.fail_on = list(fail_on or [])
        self.connect_errno = connect_errno
        self.schema_empty = schema_empty
        self.error = error
        self.queries: List[str] = []
        self.connected = False
        self.connect_calls = 0
        self.configs = []
        self._last_error = ""

    def connect(self) -> bool:
        self.connect_calls += 1
        self.connected = self.connect_errno == 0
        return self.connected

    def disconnect(self) -> None:
        self.connected = False

    def query(self, sql: str) -> bool:
        self.queries.append(sql)
        for marker in self.fail_on:
            if marker in sql:
                self._last_error = self.error
                return False
        self._last_error = ""
        return True

    def last_error(self) -> str:
        return self._last_error

    def connection_error_code(self) -> int:
        return 0 if self.connected else self.connect_errno

    def is_schema_empty(self) -> bool:
        return self.schema_empty if self.connected else True


def build_snapshot(path: Path, files: Optional[Dict[str, str]] = None,
                   dumps: Optional[Dict[str, str]] = None, manifest: bool = True) -> Path:
    """Write a snapshot zip with the usual www/, sql/ and manifest layout."""
    if files is None:
        files = {
            "www/wp-config.php": WP_CONFIG,
            "www/.htaccess": HTACCESS,
            "www/index.php": "<?php // front controller\n",
            "www/wp-content/themes/site/style.css": "body { color: black; }\n",
            "www/wp-content/uploads/2020/01/a.txt": "a\n",
        }
    if dumps is None:
        dumps = {"wp_options": OPTIONS_DUMP, "wp_posts": POSTS_DUMP}

    with zipfile.ZipFile(path, "w") as zf:
        for name, content in files.items():
            zf.writestr(name, content)
        for table, content in dumps.items():
            zf.writestr(f"sql/{table}.sql", content)
        if manifest:
            zf.writestr("snapshot_manifest.txt", MANIFEST)
    return path


@pytest.fixture
def fake_db():
    return FakeDatabase()


@pytest.fixture
def snapshot_zip(tmp_path):
    return build_snapshot(tmp_path / "0123456789ab.zip")


@pytest.fixture
def config(tmp_path, snapshot_zip):
    """Configuration confined to tmp_path."""
    return Config(
        installer=InstallerConfig(
            archive=str(snapshot_zip),
            search_dir=str(tmp_path),
            target_dir=str(tmp_path / "site"),
            target_url="http://new.example.com/blog/",
            temp_root=str(tmp_path / "tmp"),
            temp_dir="restore",
            files_chunk_size=2,
            tables_chunk_size=1,
        ),
        session=SessionConfig(backend="memory"),
        logging=LoggingConfig(error_log=""),
    )


@pytest.fixture
def context(config, fake_db):
    """Installer context wired to the fake database."""
    def database_factory(db_config):
        fake_db.configs.append(db_config)
        return fake_db

    return InstallerContext(
        config,
        OverrideStore(MemorySessionBackend()),
        database_factory=database_factory,
    )
