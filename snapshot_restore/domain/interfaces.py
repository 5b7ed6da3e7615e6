"""Abstract interfaces for the snapshot installer."""
from abc import ABC, abstractmethod
from typing import Dict, Any, List, Union
from pathlib import Path


class DatabaseInterface(ABC):
    """Interface for the database primitive the installer drives."""

    @abstractmethod
    def connect(self) -> bool:
        """Connect to the database."""
        # Implementation contract: never raise on refusal, record the errno instead
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    def query(self, sql: str) -> bool:
        """Execute one statement and report whether the server accepted it."""
        pass

    @abstractmethod
    def last_error(self) -> str:
        """Error text of the last failed query, empty if none."""
        pass

    @abstractmethod
    def connection_error_code(self) -> int:
        """Driver errno of the last failed connect, 0 if connected."""
        pass

    @abstractmethod
    def is_schema_empty(self) -> bool:
        """Whether the selected schema holds no tables."""
        pass

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disconnect()


class ArchiveInterface(ABC):
    """Interface for the snapshot archive."""

    @abstractmethod
    def validate(self) -> Union[bool, str]:
        """Return True when the archive can be read, or an error string."""
        pass

    @abstractmethod
    def extract_all(self, destination: Path) -> bool:
        """Unpack every member into ``destination``."""
        pass

    @abstractmethod
    def extract_named(self, destination: Path, names: List[str]) -> bool:
        """Unpack only the listed members that exist in the archive."""
        pass


class SessionBackend(ABC):
    """Key-value persistence behind the override store."""

    @abstractmethod
    def load(self) -> Dict[str, Any]:
        """Return the stored overrides."""
        pass

    @abstractmethod
    def save(self, values: Dict[str, Any]) -> None:
        """Replace the stored overrides."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Forget every stored override."""
        pass
