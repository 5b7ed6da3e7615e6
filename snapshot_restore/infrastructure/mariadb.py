"""MariaDB/MySQL database operations implementation."""
import time
from typing import Any, Dict, Optional

import mysql.connector
from mysql.connector import Error

from snapshot_restore.core.logging import get_logger
from ..core.exceptions import DatabaseError
from ..domain.interfaces import DatabaseInterface
from ..domain.models import DatabaseConfig

logger = get_logger(__name__)

# Client-side errno values start here; anything above means the server was never reached
CLIENT_ERROR_FLOOR = 2000


class MariaDB(DatabaseInterface):
    """Implementation of the database primitive on top of mysql.connector.

    Every method reports failure through its return value and the recorded
    error text so that the restore job can keep going after a bad statement.
    """

    def __init__(self, config: DatabaseConfig):
        """Initialize the MariaDB connection settings.

        Raises:
            DatabaseError: If the port is not a number
        """
        try:
            port = int(config.port)
        except (TypeError, ValueError):
            raise DatabaseError(f"Invalid database port for {config.host}: {config.port!r}")

        self._config: Dict[str, Any] = {
            'host': config.host,
            'port': port,
            'user': config.user,
            'password': config.password,
            'use_pure': config.use_pure,
            'connection_timeout': config.connect_timeout,
        }

        self.logger = logger

        # Only client-side failures are retried
        self.max_retries = max(0, int(config.connect_retries))
        self.retry_backoff_factor = config.retry_backoff_factor

        # An empty name connects without selecting a schema
        if config.database:
            self._config['database'] = config.database
        self.database = config.database
        self.table_prefix = config.table_prefix

        # SSL configuration
        ssl_options = {}
        if config.ssl:
            if config.ssl_ca:
                ssl_options['ssl_ca'] = config.ssl_ca
            if config.ssl_cert:
                ssl_options['ssl_cert'] = config.ssl_cert
            if config.ssl_key:
                ssl_options['ssl_key'] = config.ssl_key
            ssl_options['ssl_verify_cert'] = config.ssl_verify_cert
            ssl_options['ssl_verify_identity'] = config.ssl_verify_identity
            self._config['ssl_disabled'] = False
            self._config.update(ssl_options)
        else:
            self._config['ssl_disabled'] = True
            self.logger.debug("SSL disabled for database connection")

        self._connection = None
        self._cursor = None
        self._connect_errno = 0
        self._connect_error = ""
        self._last_error = ""

    @property
    def connection(self):
        """Get the database connection."""
        return self._connection

    @property
    def connect_error(self) -> str:
        return self._connect_error

    def connect(self) -> bool:
        """Open the connection, retrying while the server is unreachable.

        Uses exponential backoff, but only while the failure is a client-side
        (host or network) one. A refusal from the server is final.

        Returns:
            True when a connection is open
        """
        if self._connection is not None and self._connection.is_connected():
            return True

        self.logger.info(f"Connecting to MariaDB server at {self._config.get('host')}:{self._config.get('port')}")

        retry_count = 0
        while True:
            try:
                self._connection = mysql.connector.connect(**dict(self._config))
                self._connection.autocommit = True
                self._cursor = self._connection.cursor(buffered=True)

                self._connect_errno = 0
                self._connect_error = ""
                if self.database:
                    self.logger.info(f"Connected to MariaDB database: {self.database}")
                else:
                    self.logger.info("Connected to MariaDB server without a default schema")
                return True

            except Error as e:
                self._connection = None
                self._cursor = None
                self._connect_errno = int(getattr(e, 'errno', 0) or 0)
                self._connect_error = str(e)

                retry_count += 1
                if self._connect_errno > CLIENT_ERROR_FLOOR and retry_count <= self.max_retries:
                    wait_time = self.retry_backoff_factor ** (retry_count - 1)
                    self.logger.warning(
                        f"Server at {self._config.get('host')} unreachable ({self._connect_errno}), "
                        f"attempt {retry_count} of {self.max_retries + 1}; next try in {wait_time:.1f}s"
                    )
                    time.sleep(wait_time)
                    continue

                self.logger.error(f"Failed to connect to MariaDB (error code {self._connect_errno}): {str(e)}")
                return False

    def disconnect(self) -> None:
        """Close the cursor and connection; safe to call when not connected."""
        try:
            if self._cursor:
                self._cursor.close()

            if self._connection and self._connection.is_connected():
                self._connection.close()
                logger.debug("Disconnected from MariaDB database")
        except Error as e:
            logger.warning(f"Ignoring error while closing connection: {str(e)}")
        finally:
            self._connection = None
            self._cursor = None

    def query(self, sql: str) -> bool:
        """Execute a single statement.

        Args:
            sql: Statement text, without trailing delimiter; lone surrogates
                from a ``surrogateescape`` decode are sent as the original bytes

        Returns:
            True if the server accepted the statement
        """
        if not self.connect():
            self._last_error = self._connect_error
            return False

        try:
            # Surrogates stand for raw dump bytes and go out unchanged
            self._cursor.execute(sql.encode('utf-8', 'surrogateescape'))
            # Drain result sets so the next statement can run
            if self._cursor.with_rows:
                self._cursor.fetchall()
            self._last_error = ""
            return True
        except Error as e:
            self._last_error = str(getattr(e, 'msg', '') or e)
            return False

    def last_error(self) -> str:
        return self._last_error

    def connection_error_code(self) -> int:
        return self._connect_errno

    def is_schema_empty(self) -> bool:
        """Check whether the selected schema has no tables.

        An unusable connection counts as empty.
        """
        if self._connection is None or self._cursor is None:
            return True
        try:
            self._cursor.execute(
                "SELECT COUNT(*) FROM information_schema.tables WHERE table_schema = %s",
                (self.database,)
            )
            row = self._cursor.fetchone()
            return not row or int(row[0]) == 0
        except Error as e:
            self.logger.warning(f"Could not inspect schema {self.database}: {str(e)}")
            return True
