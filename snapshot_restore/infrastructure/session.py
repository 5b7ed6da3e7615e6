"""Session backends that persist operator overrides between invocations."""
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from ..core.exceptions import SessionError
from ..domain.interfaces import SessionBackend
from snapshot_restore.core.logging import get_logger

logger = get_logger(__name__)


class MemorySessionBackend(SessionBackend):
    """Overrides kept in process memory."""

    def __init__(self, values: Optional[Dict[str, Any]] = None):
        self._values = dict(values or {})

    def load(self) -> Dict[str, Any]:
        return dict(self._values)

    def save(self, values: Dict[str, Any]) -> None:
        self._values = dict(values)

    def clear(self) -> None:
        self._values = {}


class YamlSessionBackend(SessionBackend):
    """Overrides stored in a YAML file shared by separate invocations."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> Dict[str, Any]:
        """Read the session file.

        Raises:
            SessionError: If the file exists but cannot be parsed
        """
        if not self.path.exists():
            return {}
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise SessionError(f"Failed to read session file {self.path}: {str(e)}")
        if not isinstance(data, dict):
            raise SessionError(f"Session file {self.path} does not hold a mapping")
        return data

    def save(self, values: Dict[str, Any]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, 'w', encoding='utf-8') as f:
                yaml.safe_dump(values, f, default_flow_style=False)
            # Passwords end up here
            self.path.chmod(0o600)
        except (OSError, yaml.YAMLError) as e:
            raise SessionError(f"Failed to write session file {self.path}: {str(e)}")

    def clear(self) -> None:
        try:
            self.path.unlink()
            logger.debug(f"Removed session file {self.path}")
        except FileNotFoundError:
            pass
        except OSError as e:
            raise SessionError(f"Failed to remove session file {self.path}: {str(e)}")
