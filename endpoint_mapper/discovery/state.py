"""Exploration state shared by one root node's traversal.

A single ExplorationState is threaded through the client, the explorer and
the state store for the root node currently being mapped. It is also the
in-memory form of the persisted state document.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


@dataclass
class EndpointRecord:
    """A successfully fetched endpoint."""

    url: str
    data: dict

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {"url": self.url, "data": self.data}


@dataclass
class ExplorationState:
    """Counters, discoveries and completed paths for one root node."""

    target_node: str
    base_url: str = ""
    max_depth: int = 20
    discovered_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat(),
    )
    total_requests: int = 0
    max_depth_achieved: int = 0
    endpoints: list[EndpointRecord] = field(default_factory=list)
    completed_paths: list[str] = field(default_factory=list)
    _completed_lookup: set[str] = field(default_factory=set, init=False, repr=False)
    _recorded_urls: set[str] = field(default_factory=set, init=False, repr=False)

    def __post_init__(self) -> None:
        self._completed_lookup = set(self.completed_paths)
        self._recorded_urls = {record.url for record in self.endpoints}

    @property
    def total_endpoints(self) -> int:
        return len(self.endpoints)

    def is_completed(self, path: str) -> bool:
        """Check if a path's subtree has been fully processed."""
        return path in self._completed_lookup

    def mark_completed(self, path: str) -> None:
        """Add a path to the completed set, keeping first-completion order."""
        if path in self._completed_lookup:
            return
        self._completed_lookup.add(path)
        self.completed_paths.append(path)

    def has_endpoint(self, url: str) -> bool:
        return url in self._recorded_urls

    def record_endpoint(self, url: str, data: dict) -> EndpointRecord:
        """Append a fetched endpoint."""
        record = EndpointRecord(url=url, data=data)
        self.endpoints.append(record)
        self._recorded_urls.add(url)
        return record

    def reset(self) -> None:
        """Drop all progress, as for a fresh start."""
        self.total_requests = 0
        self.max_depth_achieved = 0
        self.endpoints.clear()
        self.completed_paths.clear()
        self._completed_lookup.clear()
        self._recorded_urls.clear()

    def record_depth(self, depth: int) -> None:
        if depth > self.max_depth_achieved:
            self.max_depth_achieved = depth

    def merge_document(self, document: dict[str, Any]) -> None:
        """Restore progress from a previously saved, incomplete document.

        Args:
            document: Parsed state document
        """
        for entry in document.get("endpoints") or []:
            if isinstance(entry, dict) and "url" in entry:
                self.record_endpoint(entry["url"], entry.get("data") or {})

        for path in document.get("completedPaths") or []:
            self.mark_completed(str(path))

        self.total_requests = int(document.get("totalRequests") or 0)
        self.max_depth_achieved = int(document.get("maxDepthAchieved") or 0)

        if document.get("discoveredAt"):
            self.discovered_at = str(document["discoveredAt"])

    def to_document(self, completed: bool = False) -> dict[str, Any]:
        """Build the full persisted snapshot.

        Args:
            completed: Whether the root path has been fully explored

        Returns:
            State document with camelCase keys
        """
        return {
            "completed": completed,
            "baseUrl": self.base_url,
            "targetNode": self.target_node,
            "discoveredAt": self.discovered_at,
            "maxDepth": self.max_depth,
            "maxDepthAchieved": self.max_depth_achieved,
            "totalRequests": self.total_requests,
            "totalEndpoints": self.total_endpoints,
            "endpoints": [record.to_dict() for record in self.endpoints],
            "completedPaths": list(self.completed_paths),
        }
