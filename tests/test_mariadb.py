"""Tests for the MariaDB adapter with the driver patched out."""
from unittest import mock

import pytest
from mysql.connector import Error

from snapshot_restore.core.exceptions import DatabaseError
from snapshot_restore.domain.models import DatabaseConfig
from snapshot_restore.infrastructure.mariadb import MariaDB

CONNECT = "snapshot_restore.infrastructure.mariadb.mysql.connector.connect"
SLEEP = "snapshot_restore.infrastructure.mariadb.time.sleep"


def db_config(**kwargs):
    values = {"host": "db.internal", "port": 3306, "user": "shop", "password": "secret", "database": "shop"}
    values.update(kwargs)
    return DatabaseConfig(**values)


def fake_connection(cursor=None):
    connection = mock.MagicMock()
    connection.is_connected.return_value = True
    connection.cursor.return_value = cursor or mock.MagicMock()
    return connection


@pytest.fixture
def cursor():
    return mock.MagicMock()


@pytest.fixture
def connect(cursor):
    with mock.patch(CONNECT, return_value=fake_connection(cursor)) as patched:
        yield patched


@pytest.fixture
def sleep():
    with mock.patch(SLEEP) as patched:
        yield patched


class TestSettings:

    def test_connection_arguments(self, connect):
        db = MariaDB(db_config(port="3307", ssl=True, ssl_ca="/etc/ca.pem"))

        assert db.connect()

        kwargs = connect.call_args.kwargs
        assert kwargs["host"] == "db.internal"
        assert kwargs["port"] == 3307
        assert kwargs["database"] == "shop"
        assert kwargs["ssl_ca"] == "/etc/ca.pem"
        assert kwargs["ssl_disabled"] is False
        assert "ssl_cert" not in kwargs

    def test_empty_name_selects_no_schema(self, connect):
        MariaDB(db_config(database="")).connect()

        kwargs = connect.call_args.kwargs
        assert "database" not in kwargs
        assert kwargs["ssl_disabled"] is True

    def test_invalid_port(self):
        with pytest.raises(DatabaseError, match="Invalid database port"):
            MariaDB(db_config(port="db"))


class TestConnect:

    def test_unreachable_host_is_retried(self, sleep):
        with mock.patch(CONNECT, side_effect=[Error(msg="Can't connect", errno=2003), fake_connection()]) as connect:
            db = MariaDB(db_config())
            assert db.connect()

        assert connect.call_count == 2
        sleep.assert_called_once_with(1.0)
        assert db.connection_error_code() == 0

    def test_retries_run_out(self, sleep):
        with mock.patch(CONNECT, side_effect=Error(msg="Can't connect", errno=2003)) as connect:
            db = MariaDB(db_config(connect_retries=2, retry_backoff_factor=2))
            assert not db.connect()

        assert connect.call_count == 3
        assert [c.args[0] for c in sleep.call_args_list] == [1, 2]
        assert db.connection_error_code() == 2003

    def test_refused_credentials_are_not_retried(self, sleep):
        with mock.patch(CONNECT, side_effect=Error(msg="Access denied", errno=1045)) as connect:
            db = MariaDB(db_config())
            assert not db.connect()

        assert connect.call_count == 1
        sleep.assert_not_called()
        assert db.connection_error_code() == 1045
        assert "Access denied" in db.connect_error

    def test_open_connection_is_reused(self, connect):
        db = MariaDB(db_config())
        db.connect()
        db.connect()
        assert connect.call_count == 1

    def test_disconnect(self, connect, cursor):
        db = MariaDB(db_config())
        db.connect()
        connection = db.connection

        db.disconnect()

        cursor.close.assert_called_once()
        connection.close.assert_called_once()
        assert db.connection is None


class TestQuery:

    def test_success_drains_rows(self, connect, cursor):
        cursor.with_rows = True
        db = MariaDB(db_config())

        assert db.query("SELECT 1")

        cursor.execute.assert_called_once_with(b"SELECT 1")
        cursor.fetchall.assert_called_once()
        assert db.last_error() == ""

    def test_statement_without_rows(self, connect, cursor):
        cursor.with_rows = False
        assert MariaDB(db_config()).query("SET FOREIGN_KEY_CHECKS=0")
        cursor.fetchall.assert_not_called()

    def test_raw_dump_bytes_are_sent_unchanged(self, connect, cursor):
        raw = b"INSERT INTO `wp_t` VALUES ('\xff\xfe blob')"

        assert MariaDB(db_config()).query(raw.decode('utf-8', 'surrogateescape'))

        cursor.execute.assert_called_once_with(raw)

    def test_rejected_statement_keeps_server_message(self, connect, cursor):
        cursor.execute.side_effect = Error(msg="You have an error in your SQL syntax", errno=1064)
        db = MariaDB(db_config())

        assert not db.query("SELEC 1")
        assert db.last_error() == "You have an error in your SQL syntax"

    def test_failed_connect_is_reported_as_query_error(self, sleep):
        with mock.patch(CONNECT, side_effect=Error(msg="Access denied", errno=1045)):
            db = MariaDB(db_config())
            assert not db.query("SELECT 1")
        assert "Access denied" in db.last_error()


class TestSchemaEmpty:

    def test_without_connection_counts_as_empty(self):
        with mock.patch(CONNECT) as connect:
            assert MariaDB(db_config()).is_schema_empty()
        connect.assert_not_called()

    @pytest.mark.parametrize("count, empty", [(0, True), (12, False)])
    def test_counts_tables(self, connect, cursor, count, empty):
        cursor.fetchone.return_value = (count,)
        db = MariaDB(db_config())
        db.connect()

        assert db.is_schema_empty() is empty
        assert cursor.execute.call_args.args[1] == ("shop",)

    def test_inspection_error_counts_as_empty(self, connect, cursor):
        db = MariaDB(db_config())
        db.connect()
        cursor.execute.side_effect = Error(msg="denied", errno=1142)
        assert db.is_schema_empty()
