"""Per-root-node state document storage.

Each root node gets one pretty-printed JSON document under the endpoints
directory. The document is rewritten in full after every discovery so an
interrupted run can resume from it.
"""

import json
import logging
import os
from enum import Enum
from pathlib import Path

from .state import ExplorationState

logger = logging.getLogger(__name__)


class LoadStatus(Enum):
    """Outcome of loading a stored state document."""

    COMPLETED = "completed"
    RESUMED = "resumed"
    ABSENT = "absent"


class StateStore:
    """Load and save state documents.

    Provides:
    - Completed / resumed / absent detection
    - Merge of resumed progress into the exploration state
    - Atomic full-snapshot writes
    """

    def __init__(self, output_dir: Path | str = "endpoints", pretty_print: bool = True) -> None:
        """Initialize the store.

        Args:
            output_dir: Directory holding one document per root node
            pretty_print: Indent JSON output
        """
        self.output_dir = Path(output_dir)
        self.pretty_print = pretty_print

    def path_for(self, target_node: str) -> Path:
        """Get the document path for a root node."""
        return self.output_dir / f"{target_node}_endpoints.json"

    def load(self, state: ExplorationState) -> LoadStatus:
        """Load the stored document for ``state.target_node``.

        On RESUMED the stored endpoints, completed paths and counters are
        merged into ``state``. A missing, unreadable or malformed document
        is treated as absent.

        Args:
            state: Freshly reset exploration state

        Returns:
            LoadStatus for the root node
        """
        path = self.path_for(state.target_node)
        if not path.exists():
            return LoadStatus.ABSENT

        try:
            with path.open(encoding="utf-8") as f:
                document = json.load(f)
        except (json.JSONDecodeError, OSError, UnicodeDecodeError) as e:
            logger.warning("Could not load existing results from %s: %s", path, e)
            return LoadStatus.ABSENT

        if not isinstance(document, dict):
            logger.warning("Ignoring %s: expected a JSON object", path)
            return LoadStatus.ABSENT

        if document.get("completed") is True:
            logger.info("%s already completed, skipping", state.target_node)
            return LoadStatus.COMPLETED

        try:
            state.merge_document(document)
        except (TypeError, ValueError) as e:
            state.reset()
            logger.warning("Could not load existing results from %s: %s", path, e)
            return LoadStatus.ABSENT

        logger.info(
            "Resumed %s: %d endpoints, %d completed paths",
            state.target_node,
            state.total_endpoints,
            len(state.completed_paths),
        )
        return LoadStatus.RESUMED

    def save(self, state: ExplorationState, completed: bool = False) -> Path:
        """Write the full current snapshot, replacing any previous one.

        Args:
            state: Exploration state to persist
            completed: Mark the root node as fully explored

        Returns:
            Path of the written document
        """
        path = self.path_for(state.target_node)
        path.parent.mkdir(parents=True, exist_ok=True)

        tmp = path.with_suffix(".json.tmp")
        with tmp.open("w", encoding="utf-8") as f:
            if self.pretty_print:
                json.dump(state.to_document(completed), f, indent=2, default=str)
            else:
                json.dump(state.to_document(completed), f, default=str)
            f.write("\n")
        os.replace(tmp, path)

        return path
