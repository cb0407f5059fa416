"""Lifecycle of a single root node mapping run."""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from .explorer import TreeExplorer
from .persistence import LoadStatus, StateStore
from .report_generator import ReportGenerator
from .state import ExplorationState

logger = logging.getLogger(__name__)


class NodePhase(Enum):
    """Phases a root node passes through."""

    INIT = "init"
    SKIP = "skip"
    RESUME = "resume"
    FRESH = "fresh"
    EXPLORING = "exploring"
    COMPLETED = "completed"
    REPORTING = "reporting"
    DONE = "done"


@dataclass
class NodeResult:
    """Outcome of processing one root node."""

    target_node: str
    skipped: bool = False
    resumed: bool = False
    completed: bool = False
    endpoint_count: int = 0
    completed_paths: int = 0
    total_requests: int = 0
    max_depth_achieved: int = 0
    duration_seconds: float = 0.0
    output_path: Path | None = None
    report_path: Path | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "target_node": self.target_node,
            "skipped": self.skipped,
            "completed": self.completed,
            "resumed": self.resumed,
            "endpoint_count": self.endpoint_count,
            "completed_paths": self.completed_paths,
            "total_requests": self.total_requests,
            "max_depth_achieved": self.max_depth_achieved,
            "duration_seconds": round(self.duration_seconds, 2),
            "output_file": str(self.output_path) if self.output_path else None,
            "report_file": str(self.report_path) if self.report_path else None,
        }


class NodeProcessor:
    """Drive one root node from load to report.

    INIT -> SKIP | RESUME | FRESH -> EXPLORING -> COMPLETED -> REPORTING -> DONE
    """

    def __init__(
        self,
        explorer: TreeExplorer,
        store: StateStore,
        report_generator: ReportGenerator | None = None,
        base_url: str = "",
    ) -> None:
        self.explorer = explorer
        self.store = store
        self.report_generator = report_generator
        self.base_url = base_url
        self.phase = NodePhase.INIT

    def _enter(self, phase: NodePhase, target_node: str) -> None:
        logger.debug("%s: %s -> %s", target_node, self.phase.value, phase.value)
        self.phase = phase

    async def process(self, target_node: str) -> NodeResult:
        """Map a root node, resuming stored progress when present.

        Args:
            target_node: Root node name, e.g. "DriverAid"

        Returns:
            NodeResult for the run
        """
        start = time.monotonic()
        self.phase = NodePhase.INIT

        state = ExplorationState(
            target_node=target_node,
            base_url=self.base_url,
            max_depth=self.explorer.config.max_depth,
        )
        output_path = self.store.path_for(target_node)
        status = self.store.load(state)

        if status is LoadStatus.COMPLETED:
            self._enter(NodePhase.SKIP, target_node)
            return NodeResult(
                target_node=target_node,
                skipped=True,
                completed=True,
                output_path=output_path,
            )

        if status is LoadStatus.RESUMED:
            self._enter(NodePhase.RESUME, target_node)
        else:
            self._enter(NodePhase.FRESH, target_node)
            self.store.save(state)
            logger.info("Output file initialized: %s", output_path)

        self._enter(NodePhase.EXPLORING, target_node)
        await self.explorer.explore(state, [target_node])

        # The document is only sealed once the root path itself completed;
        # a failed root listing leaves it resumable.
        completed = state.is_completed(self.explorer.path_string([target_node]))
        self._enter(NodePhase.COMPLETED, target_node)
        self.store.save(state, completed=completed)
        if completed:
            logger.info("Final results saved to: %s", output_path)
        else:
            logger.warning("%s incomplete, rerun to resume: %s", target_node, output_path)

        duration = time.monotonic() - start
        result = NodeResult(
            target_node=target_node,
            resumed=status is LoadStatus.RESUMED,
            completed=completed,
            endpoint_count=state.total_endpoints,
            completed_paths=len(state.completed_paths),
            total_requests=state.total_requests,
            max_depth_achieved=state.max_depth_achieved,
            duration_seconds=duration,
            output_path=output_path,
        )

        self._enter(NodePhase.REPORTING, target_node)
        if self.report_generator is not None:
            result.report_path = self.report_generator.generate_node_report(
                state,
                duration,
                output_path,
            )

        self._enter(NodePhase.DONE, target_node)
        return result
