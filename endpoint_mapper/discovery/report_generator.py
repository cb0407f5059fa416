"""Report generator for endpoint mapping runs.

Generates:
- reports/report_{node}_{timestamp}.txt - Per-node run report
- reports/mapping-session.json - Batch summary of all root nodes
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from .state import ExplorationState


def format_runtime(seconds: float) -> str:
    """Format a duration as "[H hours : ]M minutes : S seconds"."""
    total = int(seconds)
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)

    if hours > 0:
        return f"{hours} hours : {minutes} minutes : {secs} seconds"
    return f"{minutes} minutes : {secs} seconds"


@dataclass
class MappingSession:
    """Complete mapping run over all root nodes."""

    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: datetime | None = None
    base_url: str = ""
    root_nodes: list[str] = field(default_factory=list)
    results: list = field(default_factory=list)
    rate_limiter_stats: dict = field(default_factory=dict)

    @property
    def duration_seconds(self) -> float:
        """Get session duration in seconds."""
        end = self.completed_at or datetime.now(timezone.utc)
        return (end - self.started_at).total_seconds()

    @property
    def total_endpoints(self) -> int:
        return sum(r.endpoint_count for r in self.results)

    @property
    def skipped(self) -> list[str]:
        return [r.target_node for r in self.results if r.skipped]


class ReportGenerator:
    """Generate reports from mapping results.

    Provides:
    - Plain-text report per mapped root node
    - JSON summary of the whole session
    """

    def __init__(self, output_dir: Path | str = "reports", pretty_print: bool = True) -> None:
        """Initialize report generator.

        Args:
            output_dir: Directory for report files
            pretty_print: Pretty print JSON output
        """
        self.output_dir = Path(output_dir)
        self.pretty_print = pretty_print

    def render_node_report(
        self,
        state: ExplorationState,
        duration_seconds: float,
        output_path: Path,
        now: datetime | None = None,
    ) -> str:
        """Render the text report for a finished root node."""
        now = now or datetime.now(timezone.utc)
        local = now.astimezone()

        lines = [
            f"Date: {now.strftime('%Y:%m:%d')}",
            f"Time: {local.strftime('%I:%M:%S %p %Z').strip()}",
            f"TargetNode: {state.target_node}",
            f"MaxDepthAchieved: {state.max_depth_achieved}",
            f"Runtime: {format_runtime(duration_seconds)}",
            f"OutputFile: {Path(output_path).name}",
        ]
        return "\n".join(lines)

    def generate_node_report(
        self,
        state: ExplorationState,
        duration_seconds: float,
        output_path: Path,
        now: datetime | None = None,
    ) -> Path:
        """Write the text report for a finished root node.

        Args:
            state: Final exploration state
            duration_seconds: Wall time spent on the node
            output_path: State document written for the node
            now: Report timestamp (defaults to current UTC time)

        Returns:
            Path to the report file
        """
        now = now or datetime.now(timezone.utc)
        self.output_dir.mkdir(parents=True, exist_ok=True)

        timestamp = now.strftime("%Y%m%d_%H%M%S")
        report_path = self.output_dir / f"report_{state.target_node}_{timestamp}.txt"
        report_path.write_text(
            self.render_node_report(state, duration_seconds, output_path, now),
            encoding="utf-8",
        )

        return report_path

    def generate_session_summary(self, session: MappingSession) -> Path:
        """Generate session summary JSON.

        Args:
            session: Completed mapping session

        Returns:
            Path to summary file
        """
        summary = {
            "started_at": session.started_at.isoformat(),
            "completed_at": (session.completed_at.isoformat() if session.completed_at else None),
            "duration_seconds": session.duration_seconds,
            "base_url": session.base_url,
            "root_nodes": session.root_nodes,
            "statistics": {
                "nodes_total": len(session.results),
                "nodes_skipped": len(session.skipped),
                "endpoints_total": session.total_endpoints,
            },
            "nodes": [r.to_dict() for r in session.results],
            "rate_limiter": session.rate_limiter_stats,
        }

        summary_path = self.output_dir / "mapping-session.json"
        self._write_json(summary_path, summary)

        return summary_path

    def _write_json(self, path: Path, data: dict) -> None:
        """Write JSON data to file.

        Args:
            path: Output file path
            data: Data to write
        """
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w") as f:
            if self.pretty_print:
                json.dump(data, f, indent=2, default=str)
            else:
                json.dump(data, f, default=str)
            f.write("\n")
