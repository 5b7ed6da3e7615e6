"""Session-scoped overrides that win over values discovered on disk."""
from typing import Any, Dict, Optional

from ..core.exceptions import SessionError
from ..core.logging import get_logger
from ..domain.interfaces import SessionBackend

logger = get_logger(__name__)

# Override keys
DB_NAME = "_dbname"
DB_USER = "_dbuser"
DB_PASSWORD = "_dbpassword"
DB_HOST = "_dbhost"
DB_TABLE_PREFIX = "_dbtable_prefix"
TARGET_URL = "TARGET_URL"
TEMP_DIR = "TEMP_DIR"


class OverrideStore:
    """Key-value overrides bound to one logical installer session.

    Without a usable backend the store is read-only and empty: writes are
    no-ops and every lookup falls through to its fallback.
    """

    def __init__(self, backend: Optional[SessionBackend] = None):
        self._backend = backend
        self._values: Dict[str, Any] = {}
        self._can_override = False

        if backend is not None:
            try:
                self._values = dict(backend.load())
                self._can_override = True
            except SessionError as e:
                logger.warning(f"Overrides disabled, session unavailable: {str(e)}")

    def can_override(self) -> bool:
        return self._can_override

    def has_overrides(self) -> bool:
        return self._can_override and bool(self._values)

    def get(self, key: str, fallback: Any = None) -> Any:
        """Override for key, or fallback when unset or empty."""
        value = self._values.get(key)
        if value is None or value == "":
            return fallback
        return value

    def set(self, key: str, value: Any) -> bool:
        if not self._can_override:
            return False
        self._values[key] = value
        self._persist()
        logger.debug(f"Override set: {key}")
        return True

    def drop(self, key: str) -> bool:
        if not self._can_override:
            return False
        if self._values.pop(key, None) is not None:
            self._persist()
            logger.debug(f"Override dropped: {key}")
        return True

    def clear(self) -> bool:
        if not self._can_override:
            return False
        self._values = {}
        self._backend.clear()
        return True

    def items(self) -> Dict[str, Any]:
        return dict(self._values)

    def _persist(self) -> None:
        self._backend.save(self._values)
