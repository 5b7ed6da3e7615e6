"""Restores one table from its SQL dump file."""
import itertools
import re
from pathlib import Path
from typing import IO, Iterator, Union

import sqlparse

from ..core.exceptions import ErrorKind
from ..core.logging import get_logger
from ..domain.interfaces import DatabaseInterface
from ..domain.models import RestoreResult
from .splitter import stream_statements

logger = get_logger(__name__)

# Issued before every dump, whatever the server defaults are
SESSION_SETUP = (
    "SET SQL_MODE='ALLOW_INVALID_DATES';",
    "SET FOREIGN_KEY_CHECKS=0",
    "SET NAMES utf8mb4",
)

# Characters read from a dump at a time
READ_BLOCK_SIZE = 1024 * 1024

# Enough of a statement to classify it without parsing the data rows
DESCRIBE_LIMIT = 1024

_INTO_RX = re.compile(r"\binto\s+(\S+?)\s", re.IGNORECASE)


def rename_table(table: str, source_prefix: str, target_prefix: str) -> str:
    """Name a dumped table gets under the target prefix."""
    if not source_prefix or source_prefix == target_prefix:
        return table
    return table.replace(source_prefix, target_prefix)


def describe_statement(statement: str) -> str:
    """Short form of a statement for the log.

    Bulk INSERTs are reduced to their target table so data rows never end up
    in the log.
    """
    head = printable(statement[:DESCRIBE_LIMIT])
    parsed = sqlparse.parse(head)
    if parsed and parsed[0].get_type() == 'INSERT':
        match = _INTO_RX.search(head)
        target = f" (into {match.group(1)})" if match else ""
        return f"An insert{target} query"
    return printable(statement.strip())


def printable(statement: str) -> str:
    """Statement text with undecodable bytes shown as replacement characters."""
    return statement.encode('utf-8', 'surrogateescape').decode('utf-8', 'replace')


def _read_blocks(handle: IO[str]) -> Iterator[str]:
    while True:
        block = handle.read(READ_BLOCK_SIZE)
        if not block:
            return
        yield block


class TableRestoreService:
    """Feeds the statements of a dump file to the database."""

    def __init__(self, db: DatabaseInterface):
        self.db = db

    def restore(self, dump_path: Union[str, Path], source_prefix: str, target_prefix: str) -> RestoreResult:
        """Restore one table dump.

        A failing statement is recorded and the remaining statements still
        run; the overall status is False if any statement failed.

        Args:
            dump_path: Path to the ``<table>.sql`` file
            source_prefix: Table prefix the dump was taken with
            target_prefix: Table prefix to restore under

        Returns:
            RestoreResult for the table
        """
        dump_path = Path(dump_path)
        source_table = dump_path.stem
        target_table = rename_table(source_table, source_prefix, target_prefix)
        result = RestoreResult(table=target_table, source_path=str(dump_path))
        old_name, new_name = f"`{source_table}`", f"`{target_table}`"

        try:
            # Bytes that are not UTF-8 travel as surrogates; the database layer restores them
            handle = open(dump_path, encoding='utf-8', errors='surrogateescape', newline='')
        except OSError as e:
            logger.error(f"Unable to read dump {dump_path}: {str(e)}")
            return self._malformed(result, f"unable to read dump: {e.strerror or str(e)}")

        with handle:
            blocks = _read_blocks(handle)
            head = ""
            for block in blocks:
                head += block
                if head.strip():
                    break

            if not head.strip():
                logger.error(f"Dump {dump_path} is empty")
                return self._malformed(result, "dump file is empty")

            if old_name != new_name:
                logger.info(f"Restoring {old_name} as {new_name}")

            for statement in SESSION_SETUP:
                if not self.db.query(statement):
                    logger.warning(f"Session setup failed ({statement}): {self.db.last_error()}")

            for statement in stream_statements(itertools.chain([head], blocks)):
                if old_name != new_name:
                    statement = statement.replace(old_name, new_name)
                result.statements_executed += 1
                if self.db.query(statement):
                    continue
                error = self.db.last_error()
                description = describe_statement(statement)
                logger.error(f"[[Query]] {description}")
                logger.error(f"Error: {error}")
                result.overall_status = False
                result.error_kind = ErrorKind.STATEMENT_FAILED
                result.per_statement_errors.append(error)

        if result.overall_status:
            logger.info(f"Restored table {target_table} ({result.statements_executed} statements)")
        else:
            logger.warning(
                f"Table {target_table} restored with {len(result.per_statement_errors)} failed "
                f"of {result.statements_executed} statements"
            )
        return result

    def _malformed(self, result: RestoreResult, reason: str) -> RestoreResult:
        result.overall_status = False
        result.error_kind = ErrorKind.MALFORMED_DUMP
        result.per_statement_errors.append(reason)
        return result
