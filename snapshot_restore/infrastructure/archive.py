"""Zip archive access for snapshot packages."""
import zipfile
from pathlib import Path
from typing import List, Optional, Union

from snapshot_restore.core.logging import get_logger
from ..domain.interfaces import ArchiveInterface

logger = get_logger(__name__)


class ZipArchive(ArchiveInterface):
    """Snapshot package stored as a zip file."""

    def __init__(self, path: Optional[Union[str, Path]]):
        self.path = Path(path) if path else None

    def validate(self) -> Union[bool, str]:
        """Check that the archive exists and opens as a zip file.

        Returns:
            True on success, otherwise a human readable reason
        """
        if self.path is None:
            return "Unable to open archive - no archive found."
        if not self.path.is_file():
            return f"Unable to open archive - {self.path} does not exist."
        try:
            with zipfile.ZipFile(self.path) as zf:
                bad = zf.testzip()
        except zipfile.BadZipFile as e:
            return f"Unable to open archive - {str(e)}"
        except OSError as e:
            return f"Unable to open archive - {e.strerror or str(e)}"
        if bad is not None:
            return f"Archive is corrupt - first bad member: {bad}"
        return True

    def extract_all(self, destination: Path) -> bool:
        """Unpack every member into destination."""
        if self.path is None:
            logger.error("No archive to extract")
            return False
        try:
            Path(destination).mkdir(parents=True, exist_ok=True)
            with zipfile.ZipFile(self.path) as zf:
                zf.extractall(destination)
            logger.info(f"Extracted {self.path.name} into {destination}")
            return True
        except (zipfile.BadZipFile, OSError) as e:
            logger.error(f"Failed to extract {self.path} into {destination}: {str(e)}")
            return False

    def extract_named(self, destination: Path, names: List[str]) -> bool:
        """Unpack selected members; names absent from the archive are skipped.

        Returns:
            True if every member present in the archive was extracted
        """
        if self.path is None:
            logger.error("No archive to extract from")
            return False
        try:
            Path(destination).mkdir(parents=True, exist_ok=True)
            with zipfile.ZipFile(self.path) as zf:
                members = set(zf.namelist())
                for name in names:
                    if name not in members:
                        logger.debug(f"{name} not present in {self.path.name}")
                        continue
                    zf.extract(name, destination)
            return True
        except (zipfile.BadZipFile, OSError) as e:
            logger.error(f"Failed to extract {', '.join(names)} from {self.path}: {str(e)}")
            return False
