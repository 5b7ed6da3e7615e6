"""File storage operations implementation."""
import glob as globlib
import os
import shutil
from pathlib import Path
from typing import List, Union

from ..core.exceptions import StorageError
from snapshot_restore.core.logging import get_logger

logger = get_logger(__name__)

PathLike = Union[str, Path]


class FileStorage:
    """Filesystem primitives used by the installer steps.

    Listings are always sorted so chunk windows computed from an index stay
    stable between invocations.
    """

    def list_recursive(self, root: PathLike) -> List[str]:
        """List every file below root.

        Args:
            root: Directory to walk

        Returns:
            Sorted root-relative POSIX paths of regular files and symlinks
        """
        root = Path(root)
        if not root.is_dir():
            return []

        result = []
        for current, dirs, files in os.walk(root):
            dirs.sort()
            for name in files:
                full = Path(current) / name
                result.append(full.relative_to(root).as_posix())
        return sorted(result)

    def list_entries(self, root: PathLike) -> List[str]:
        """Top-level entry names of a directory, sorted."""
        root = Path(root)
        if not root.is_dir():
            return []
        return sorted(entry.name for entry in root.iterdir())

    def copy_file(self, source_root: PathLike, destination_root: PathLike, relative_path: str) -> bool:
        """Copy one file between two trees, creating parent directories.

        Returns:
            True on success
        """
        source = Path(source_root) / relative_path
        destination = Path(destination_root) / relative_path
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            if source.is_symlink():
                if destination.is_symlink() or destination.exists():
                    destination.unlink()
                os.symlink(os.readlink(source), destination)
            else:
                shutil.copy2(source, destination)
            return True
        except OSError as e:
            logger.error(f"Failed to copy {source} to {destination}: {str(e)}")
            return False

    def exists(self, path: PathLike) -> bool:
        return Path(path).exists()

    def glob(self, root: PathLike, pattern: str) -> List[str]:
        """Sorted absolute matches of pattern below root."""
        return sorted(globlib.glob(os.path.join(str(root), pattern)))

    def create_directory(self, path: PathLike) -> Path:
        """Create a directory and its parents.

        Raises:
            StorageError: If the directory cannot be created
        """
        path = Path(path)
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to create directory {path}: {str(e)}")
        return path

    def remove_file(self, path: PathLike) -> bool:
        path = Path(path)
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning(f"Failed to remove {path}: {str(e)}")
            return False

    def remove_tree(self, path: PathLike) -> bool:
        """Remove a directory and everything below it."""
        path = Path(path)
        if not path.exists():
            return False
        try:
            shutil.rmtree(path)
            return True
        except OSError as e:
            logger.warning(f"Failed to remove directory {path}: {str(e)}")
            return False

    def clear_directory(self, path: PathLike) -> bool:
        """Remove every entry inside path but keep path itself."""
        path = Path(path)
        status = True
        for entry in path.iterdir() if path.is_dir() else []:
            if entry.is_dir() and not entry.is_symlink():
                status = self.remove_tree(entry) and status
            else:
                status = self.remove_file(entry) and status
        return status
