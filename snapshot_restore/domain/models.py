"""Domain models for the snapshot installer."""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Dict, Any, Optional, Union

from snapshot_restore.core.exceptions import ErrorKind


class Phase(Enum):
    """Wizard phases the steps are grouped into."""
    VERIFY = "verify"
    CONFIGURE = "configure"
    DEPLOY = "deploy"


class Step(Enum):
    """Installer steps, keyed by the identifier the caller passes in."""
    CHECK = "check"
    CONFIGURE = "configuration"
    EXTRACT = "extract"
    COPY_FILES = "files"
    RESTORE_TABLES = "tables"
    FINALIZE = "finalize"
    DONE = "done"
    CLEANUP = "cleanup"

    @classmethod
    def from_id(cls, step_id: Optional[str]) -> "Step":
        """Resolve a caller-supplied identifier, falling back to CHECK."""
        if isinstance(step_id, Step):
            return step_id
        if not step_id:
            return cls.CHECK
        try:
            return cls(str(step_id).strip().lower())
        except ValueError:
            return cls.CHECK

    @property
    def phase(self) -> Phase:
        if self is Step.CHECK:
            return Phase.VERIFY
        if self is Step.CONFIGURE:
            return Phase.CONFIGURE
        return Phase.DEPLOY


class ExtractionState(Enum):
    """Classification of the extraction tree left by earlier invocations."""
    EMPTY = "empty"
    PARTIAL = "partial"
    COMPLETE = "complete"


class ConnectionFailure(Enum):
    """Class of a failed connection attempt, derived from the driver errno."""
    NONE = "none"
    HOST = "host"  # Network or server unreachable
    CREDENTIALS = "credentials"
    SCHEMA = "schema"  # Unknown database
    UNKNOWN = "unknown"

    @classmethod
    def from_code(cls, code: Optional[int]) -> "ConnectionFailure":
        if not code:
            return cls.NONE
        if code > 2000:
            return cls.HOST
        if code == 1045:
            return cls.CREDENTIALS
        if code == 1049:
            return cls.SCHEMA
        return cls.UNKNOWN


@dataclass
class DatabaseConfig:
    """Connection settings for the target database."""
    host: str
    port: int
    user: str
    password: str
    database: str
    table_prefix: str = "wp_"
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
class Chunk:
    """A bounded window over an ordered item list."""
    index: int
    size: int

    def __post_init__(self):
        if self.index < 0:
            raise ValueError(f"Chunk index must be non-negative, got {self.index}")
        if self.size < 1:
            raise ValueError(f"Chunk size must be positive, got {self.size}")

    @property
    def offset(self) -> int:
        return self.index * self.size


@dataclass
class ChunkResult:
    """Outcome of running one chunk."""
    processed: List[Any]
    status: bool
    is_final: bool
    offset: int = 0
    total: int = 0
    failed_item: Optional[Any] = None


@dataclass
class RestoreResult:
    """Result of restoring one table dump."""
    table: str
    overall_status: bool = True
    per_statement_errors: List[str] = field(default_factory=list)
    statements_executed: int = 0
    source_path: str = ""
    error_kind: Optional[ErrorKind] = None

    @property
    def last_error(self) -> str:
        return self.per_statement_errors[-1] if self.per_statement_errors else ""


@dataclass
class ProgressReport:
    """Progress shown to the operator; derived per invocation."""
    percentage: float
    action: str


@dataclass
class CheckResult:
    """One environment check run by the Check step."""
    name: str
    test: bool
    value: Optional[str] = None


@dataclass
class Reintake:
    """Caller must invoke the engine again with these parameters."""
    step: Step
    params: Dict[str, Any] = field(default_factory=dict)

    @property
    def chunk(self) -> int:
        return int(self.params.get("chunk", 0) or 0)


@dataclass
class RenderStatus:
    """Terminal result of one invocation, surfaced to the operator."""
    step: Step
    ok: bool
    progress: Optional[ProgressReport] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    data: Dict[str, Any] = field(default_factory=dict)
    next: Optional[Reintake] = None
    cleanup: Optional[Reintake] = None


Directive = Union[Reintake, RenderStatus]


def directive_to_dict(directive: Directive) -> Dict[str, Any]:
    """Plain mapping of a directive, suitable for YAML output."""
    if isinstance(directive, Reintake):
        return {
            "directive": "reintake",
            "step": directive.step.value,
            "params": dict(directive.params),
        }

    result = {
        "directive": "status",
        "step": directive.step.value,
        "phase": directive.step.phase.value,
        "ok": directive.ok,
    }
    if directive.progress is not None:
        result["progress"] = {
            "percentage": round(directive.progress.percentage, 2),
            "action": directive.progress.action,
        }
    if directive.error:
        result["error"] = directive.error
    if directive.error_kind is not None:
        result["error_kind"] = directive.error_kind.value
    if directive.data:
        result["data"] = directive.data
    if directive.next is not None:
        result["next"] = directive_to_dict(directive.next)
    if directive.cleanup is not None:
        result["cleanup"] = directive_to_dict(directive.cleanup)
    return result
