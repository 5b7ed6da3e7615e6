"""Classification and repair of an extraction tree left by earlier runs."""
from pathlib import Path

from ..core.logging import get_logger
from ..domain.models import ExtractionState
from ..infrastructure.siteconfig import Manifest, SiteSettings
from ..infrastructure.storage import FileStorage

logger = get_logger(__name__)

# Members unpacked ahead of time by the configuration step
CONFIG_MEMBER = "www/" + SiteSettings.FILE_NAME
MANIFEST_MEMBER = Manifest.FILE_NAME

# A full extraction always has more top-level entries than the peek does
PARTIAL_MAX_ENTRIES = 2


class ResumeDetector:
    """Decides whether extraction has to run again."""

    def __init__(self, storage: FileStorage):
        self.storage = storage

    def inspect(self, tree: Path) -> ExtractionState:
        """Classify tree by counting its top-level entries.

        Args:
            tree: Extraction directory

        Returns:
            EMPTY for no entries, PARTIAL for one or two, COMPLETE otherwise
        """
        count = len(self.storage.list_entries(tree))
        if count == 0:
            state = ExtractionState.EMPTY
        elif count <= PARTIAL_MAX_ENTRIES:
            state = ExtractionState.PARTIAL
        else:
            state = ExtractionState.COMPLETE
        logger.debug(f"Extraction tree {tree} has {count} entries: {state.value}")
        return state

    def repair(self, tree: Path) -> None:
        """Discard a partial extraction so it can be redone from scratch."""
        tree = Path(tree)
        if self.storage.exists(tree / CONFIG_MEMBER):
            logger.info(f"Discarding configuration peek in {tree}")
            self.storage.clear_directory(tree)

        manifest = tree / MANIFEST_MEMBER
        if self.storage.exists(manifest):
            self.storage.remove_file(manifest)

        # Anything else left over is stale as well
        leftovers = self.storage.list_entries(tree)
        if leftovers:
            logger.warning(f"Removing stale entries from {tree}: {', '.join(leftovers)}")
            self.storage.clear_directory(tree)

    def prepare(self, tree: Path) -> ExtractionState:
        """Inspect tree and repair it when partial.

        Returns:
            EMPTY when extraction must run, COMPLETE when it can be skipped
        """
        state = self.inspect(tree)
        if state is ExtractionState.PARTIAL:
            self.repair(tree)
            return ExtractionState.EMPTY
        return state
