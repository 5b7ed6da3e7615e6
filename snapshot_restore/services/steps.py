"""Step handlers. Each runs one bounded unit of work and returns a directive."""
import importlib.util
import os
import platform
import sys
from pathlib import Path
from typing import Any, Dict, List

from ..core.exceptions import ErrorKind, ExtractionFailed, StorageError
from ..core.logging import close_error_log, get_logger
from ..domain.models import (
    CheckResult,
    ConnectionFailure,
    Directive,
    ExtractionState,
    ProgressReport,
    Reintake,
    RenderStatus,
    RestoreResult,
    Step,
)
from ..infrastructure.siteconfig import Htaccess, Manifest, SiteSettings
from . import overrides as keys
from .chunking import (
    EXTRACT_PERCENTAGE,
    FILES_BAND,
    FINALIZE_PERCENTAGE,
    TABLES_BAND,
    chunk_progress,
    run_chunk,
)
from .context import InstallerContext
from .resume import CONFIG_MEMBER, MANIFEST_MEMBER, ResumeDetector
from .restore import TableRestoreService

logger = get_logger(__name__)

MIN_PYTHON = (3, 8)

# Form fields accepted by the configuration step
OVERRIDE_FIELDS = ("name", "user", "password", "host", "port", "site_url", "prefix")

REQUIRED_SETTINGS = ("DB_NAME", "DB_USER", "DB_HOST", "$table_prefix")

# Settings-file keys rewritten from overrides after deployment
SETTINGS_OVERRIDES = (
    ("DB_HOST", keys.DB_HOST),
    ("DB_USER", keys.DB_USER),
    ("DB_PASSWORD", keys.DB_PASSWORD),
    ("DB_NAME", keys.DB_NAME),
    ("$table_prefix", keys.DB_TABLE_PREFIX),
)

CLEANUP = Reintake(Step.CLEANUP)


def chunk_index(params: Dict[str, Any]) -> int:
    """Chunk number from the request; anything unusable means 0."""
    value = params.get("chunk")
    try:
        value = int(value)
    except (TypeError, ValueError):
        return 0
    return value if value > 0 else 0


def check(ctx: InstallerContext, params: Dict[str, Any]) -> Directive:
    """Verify the environment; skip straight to configuration when it is fine."""
    archive_path = ctx.archive_path()
    archive_valid = ctx.archive_factory(archive_path).validate() if archive_path else "No archive found"

    checks = [
        CheckResult("PythonVersion", sys.version_info[:2] >= MIN_PYTHON, platform.python_version()),
        CheckResult("MysqlDriver", _driver_available()),
        CheckResult("Archive", archive_path is not None, str(archive_path) if archive_path else None),
        CheckResult("ArchiveValid", archive_valid is True, None if archive_valid is True else str(archive_valid)),
        CheckResult("TempWritable", *_temp_writable(ctx)),
    ]

    all_good = all(c.test for c in checks)
    for c in checks:
        if not c.test:
            logger.warning(f"Check {c.name} failed" + (f": {c.value}" if c.value else ""))

    # Preview always renders the checks
    if all_good and not params.get("preview"):
        return Reintake(Step.CONFIGURE)

    archive_failed = not (checks[2].test and checks[3].test)
    return RenderStatus(
        step=Step.CHECK,
        ok=all_good,
        error=None if all_good else "One or more environment checks failed",
        error_kind=ErrorKind.EXTRACTION_FAILED if archive_failed else (None if all_good else ErrorKind.UNEXPECTED),
        data={"checks": [{"name": c.name, "test": c.test, "value": c.value} for c in checks]},
        next=Reintake(Step.CONFIGURE) if all_good else Reintake(Step.CHECK),
    )


def configure(ctx: InstallerContext, params: Dict[str, Any]) -> Directive:
    """Store operator overrides, or report the discovered configuration."""
    if any(field in params for field in OVERRIDE_FIELDS):
        _apply_overrides(ctx, params)
        remaining = {k: v for k, v in params.items() if k not in OVERRIDE_FIELDS}
        return Reintake(Step.CONFIGURE, remaining)

    tree = ctx.temp_dir()
    if not ctx.archive().extract_named(tree, [CONFIG_MEMBER, MANIFEST_MEMBER]):
        raise ExtractionFailed("Unable to extract the site configuration from the archive")

    manifest = Manifest.load(tree)
    settings = SiteSettings.load(tree / "www")

    config_status = settings.has_file() and all(str(settings.get(k, "")) for k in REQUIRED_SETTINGS)

    database_status = False
    errno = 0
    db_empty = False
    if config_status:
        db = ctx.database(settings)
        try:
            database_status = db.connect()
            errno = db.connection_error_code()
            db_empty = db.is_schema_empty()
        finally:
            db.disconnect()
    failure = ConnectionFailure.from_code(errno)

    values = ctx.database_values(settings)
    error = None
    error_kind = None
    if not config_status:
        error = "Site configuration is missing or incomplete (needs " + ", ".join(REQUIRED_SETTINGS) + ")"
        error_kind = ErrorKind.CONFIG_MISSING
    elif not database_status:
        error = connection_message(errno, values["name"])
        error_kind = ErrorKind.CONNECTION_FAILED

    return RenderStatus(
        step=Step.CONFIGURE,
        ok=config_status and database_status,
        error=error,
        error_kind=error_kind,
        data={
            "has_manifest_file": manifest.has_file(),
            "manifest_version": manifest.version if manifest.has_file() else None,
            "deployment_directory": str(Path(ctx.config.installer.target_dir).resolve()),
            "site_url": ctx.target_url(),
            "can_override": ctx.overrides.can_override(),
            "has_config_file": settings.has_file(),
            "config_status": config_status,
            "database_status": database_status,
            "db_connection_errno": errno,
            "db_connection_failure": failure.value,
            "db_empty": db_empty,
            "database": dict(values, password="********" if values["password"] else ""),
        },
        next=Reintake(Step.EXTRACT),
        cleanup=CLEANUP,
    )


def extract(ctx: InstallerContext, params: Dict[str, Any]) -> Directive:
    """Unpack the archive unless a complete extraction is already there."""
    tree = ctx.temp_dir()
    detector = ResumeDetector(ctx.storage)
    if detector.prepare(tree) is ExtractionState.COMPLETE:
        return Reintake(Step.COPY_FILES)

    progress = ProgressReport(EXTRACT_PERCENTAGE, "Extracting package")
    ok = ctx.archive().extract_all(tree)
    error = None
    if not ok:
        error = "Unable to extract the package archive"
    elif detector.inspect(tree) is not ExtractionState.COMPLETE:
        # Would be mistaken for a partial extraction on the next run
        ok = False
        error = "Package unpacks to fewer than three top-level entries and cannot be told apart from a partial extraction"

    return RenderStatus(
        step=Step.EXTRACT,
        ok=ok,
        progress=progress,
        error=error,
        error_kind=None if ok else ErrorKind.EXTRACTION_FAILED,
        data={"extraction_directory": str(tree)},
        next=Reintake(Step.EXTRACT),
        cleanup=CLEANUP,
    )


def copy_files(ctx: InstallerContext, params: Dict[str, Any]) -> Directive:
    """Copy one chunk of the extracted site files into the target."""
    index = chunk_index(params)
    source = ctx.source_root()
    target = ctx.target_dir()
    files = ctx.storage.list_recursive(source)

    result = run_chunk(
        files,
        index,
        ctx.config.installer.files_chunk_size,
        lambda path: ctx.storage.copy_file(source, target, path),
    )

    error = None
    if not result.status:
        if not files:
            error = f"Nothing to copy: no site files found in {source}"
        else:
            error = f"Unable to copy '{result.failed_item}' to {target}"

    if result.status and result.is_final:
        next_step = Reintake(Step.RESTORE_TABLES)
    elif result.status:
        next_step = Reintake(Step.COPY_FILES, {"chunk": index + 1})
    else:
        next_step = Reintake(Step.COPY_FILES, {"chunk": index})

    return RenderStatus(
        step=Step.COPY_FILES,
        ok=result.status,
        progress=chunk_progress(result, index, FILES_BAND, "Copying files"),
        error=error,
        error_kind=None if result.status else ErrorKind.COPY_FAILED,
        data={
            "chunk": index,
            "copied": len(result.processed),
            "offset": result.offset,
            "total": result.total,
            "is_final": result.is_final,
        },
        next=next_step,
        cleanup=CLEANUP,
    )


def restore_tables(ctx: InstallerContext, params: Dict[str, Any]) -> Directive:
    """Restore one chunk of table dumps."""
    index = chunk_index(params)
    tree = ctx.temp_dir()
    dumps = ctx.storage.glob(tree, "sql/*.sql")
    if not dumps:
        dumps = ctx.storage.glob(tree, "*.sql")

    settings = SiteSettings.load(tree / "www")
    db_config = ctx.database_config(settings)
    source_prefix = settings.get("$table_prefix", "")
    retry = Reintake(Step.RESTORE_TABLES, {"chunk": index})

    db = ctx.database_factory(db_config)
    restored: List[RestoreResult] = []
    try:
        if not db.connect():
            code = db.connection_error_code()
            return RenderStatus(
                step=Step.RESTORE_TABLES,
                ok=False,
                progress=ProgressReport(TABLES_BAND[0], "Restoring tables"),
                error="Unable to connect to database" + (f" error code: {code}" if code else ""),
                error_kind=ErrorKind.CONNECTION_FAILED,
                data={"chunk": index, "db_connection_failure": ConnectionFailure.from_code(code).value},
                next=retry,
                cleanup=CLEANUP,
            )

        service = TableRestoreService(db)

        def apply(path: str) -> bool:
            outcome = service.restore(path, source_prefix, db_config.table_prefix)
            restored.append(outcome)
            return outcome.overall_status

        result = run_chunk(dumps, index, ctx.config.installer.tables_chunk_size, apply)
    finally:
        db.disconnect()

    error = None
    error_kind = None
    if not result.status:
        if not dumps:
            error = "Unable to determine table"
            error_kind = ErrorKind.MALFORMED_DUMP
        else:
            failed = restored[-1]
            error = f"Unable to restore table '{failed.table}' from '{failed.source_path}'"
            if failed.last_error:
                error += f" because {failed.last_error}"
            error_kind = failed.error_kind or ErrorKind.STATEMENT_FAILED

    if result.status and result.is_final:
        next_step = Reintake(Step.FINALIZE)
    elif result.status:
        next_step = Reintake(Step.RESTORE_TABLES, {"chunk": index + 1})
    else:
        next_step = retry

    return RenderStatus(
        step=Step.RESTORE_TABLES,
        ok=result.status,
        progress=chunk_progress(result, index, TABLES_BAND, "Restoring tables"),
        error=error,
        error_kind=error_kind,
        data={
            "chunk": index,
            "tables": [r.table for r in restored],
            "statements": sum(r.statements_executed for r in restored),
            "failed_statements": sum(len(r.per_statement_errors) for r in restored),
            "offset": result.offset,
            "total": result.total,
            "is_final": result.is_final,
        },
        next=next_step,
        cleanup=CLEANUP,
    )


def finalize(ctx: InstallerContext, params: Dict[str, Any]) -> Directive:
    """Point the deployed site at its new location and credentials."""
    target = ctx.target_dir()
    if ctx.overrides.can_override():
        _update_htaccess(ctx, target)
        _update_settings(ctx, target)

    settings = SiteSettings.load(target)
    db_config = ctx.database_config(settings)
    db = ctx.database_factory(db_config)
    progress = ProgressReport(FINALIZE_PERCENTAGE, "Finalizing installation")
    try:
        if not db.connect():
            code = db.connection_error_code()
            return RenderStatus(
                step=Step.FINALIZE,
                ok=False,
                progress=progress,
                error="Unable to connect to database" + (f" error code: {code}" if code else ""),
                error_kind=ErrorKind.CONNECTION_FAILED,
                next=Reintake(Step.FINALIZE),
                cleanup=CLEANUP,
            )
        _update_site_options(db, db_config.table_prefix, ctx.target_url())
    finally:
        db.disconnect()

    return RenderStatus(
        step=Step.FINALIZE,
        ok=True,
        progress=progress,
        data={"site_url": ctx.target_url()},
        next=Reintake(Step.DONE),
        cleanup=CLEANUP,
    )


def done(ctx: InstallerContext, params: Dict[str, Any]) -> Directive:
    return RenderStatus(
        step=Step.DONE,
        ok=True,
        progress=ProgressReport(100, "Installation complete"),
        data={"site_url": ctx.target_url()},
        cleanup=CLEANUP,
    )


def cleanup(ctx: InstallerContext, params: Dict[str, Any]) -> Directive:
    """Remove installer leftovers: extraction tree, archive, error log, session."""
    storage = ctx.storage
    temp = ctx.temp_dir()
    temp_status = storage.remove_tree(temp)

    target = Path(ctx.config.installer.target_dir).resolve()
    archive_path = ctx.archive_path()
    source_status = False
    if archive_path is not None and _is_inside(archive_path, target):
        source_status = storage.remove_file(archive_path)

    log_status = False
    log_path = ctx.error_log_path()
    if log_path is not None and storage.exists(log_path):
        close_error_log(log_path)
        log_status = storage.remove_file(log_path)

    session_status = ctx.overrides.clear()

    return RenderStatus(
        step=Step.CLEANUP,
        ok=temp_status,
        error=None if temp_status else f"Unable to remove {temp}",
        data={
            "temp_status": temp_status,
            "temp_path": str(temp),
            "source_status": source_status,
            "source_path": str(archive_path) if archive_path else None,
            "log_status": log_status,
            "session_status": session_status,
            "view_url": ctx.target_url(),
        },
    )


def connection_message(code: int, database: str = "") -> str:
    """Operator-facing explanation of a failed connection."""
    failure = ConnectionFailure.from_code(code)
    if failure is ConnectionFailure.HOST:
        return f"Unable to reach the database server (error code: {code})"
    if failure is ConnectionFailure.CREDENTIALS:
        return "The database server rejected the user name or password"
    if failure is ConnectionFailure.SCHEMA:
        return f"Database '{database}' does not exist"
    return "Unable to connect to database" + (f" error code: {code}" if code else "")


def sql_quote(value: str) -> str:
    return str(value).replace("\\", "\\\\").replace("'", "\\'")


def _apply_overrides(ctx: InstallerContext, params: Dict[str, Any]) -> None:
    store = ctx.overrides
    if not store.can_override():
        logger.warning("Overrides are unavailable without a session; ignoring submitted values")
        return

    for field, key in (("name", keys.DB_NAME), ("user", keys.DB_USER), ("password", keys.DB_PASSWORD),
                       ("site_url", keys.TARGET_URL), ("prefix", keys.DB_TABLE_PREFIX)):
        value = params.get(field)
        if value:
            store.set(key, str(value))
        else:
            store.drop(key)

    host = params.get("host")
    port = params.get("port")
    if host:
        host = str(host)
        if port and str(port).isdigit():
            host += f":{int(port)}"
        store.set(keys.DB_HOST, host)
    else:
        store.drop(keys.DB_HOST)


def _update_htaccess(ctx: InstallerContext, target: Path) -> None:
    htaccess = Htaccess.load(target)
    if not htaccess.has_file():
        return
    base = htaccess.get(Htaccess.REWRITE_BASE)
    site_path = ctx.target_path()
    if base and base != site_path:
        logger.info(f"Updating RewriteBase from {base} to {site_path}")
        htaccess.update_raw_base(site_path)
        htaccess.write()


def _update_settings(ctx: InstallerContext, target: Path) -> None:
    settings = SiteSettings.load(target)
    if not settings.has_file():
        return
    changed = False
    for setting, key in SETTINGS_OVERRIDES:
        value = ctx.overrides.get(key)
        if value and value != settings.get(setting):
            changed = settings.update_raw(setting, value) or changed
    if changed:
        settings.write()


def _update_site_options(db, prefix: str, site_url: str) -> None:
    url = sql_quote(site_url)
    for option in ("siteurl", "home"):
        if not db.query(f"UPDATE {prefix}options SET option_value='{url}' WHERE option_name='{option}' LIMIT 1"):
            logger.warning(f"Unable to update {option}: {db.last_error()}")

    # Leftover backup state from the source site
    for name in ("snapshot_running_backup", "snapshot_running_backup_status"):
        if not db.query(f"DELETE FROM {prefix}options WHERE option_name='{name}'"):
            logger.warning(f"Unable to clear {name}: {db.last_error()}")
        # sitemeta only exists on multisite installs
        if not db.query(f"DELETE FROM {prefix}sitemeta WHERE meta_key='{name}'"):
            logger.debug(f"Skipped {prefix}sitemeta cleanup: {db.last_error()}")


def _temp_writable(ctx: InstallerContext):
    try:
        path = ctx.temp_dir()
    except StorageError as e:
        return False, str(e)
    return os.access(path, os.W_OK), str(path)


def _is_inside(path: Path, root: Path) -> bool:
    try:
        Path(path).resolve().relative_to(root)
        return True
    except ValueError:
        return False


def _driver_available() -> bool:
    try:
        return importlib.util.find_spec("mysql.connector") is not None
    except ImportError:
        return False
