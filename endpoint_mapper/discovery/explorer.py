"""Depth-first CommAPI tree explorer.

Walks the node tree below a root node, fetching every endpoint it lists and
recording the successful reads. A path is marked complete only after its
listing succeeded and every endpoint and child below it was processed
(post-order), so a resumed run never treats a partial subtree as done.

The walk uses an explicit frame stack rather than recursion: deep trees do
not grow the Python call stack and the depth limit is a plain counter check.
"""

import logging
from dataclasses import dataclass, field

from .api_client import CommAPIClient, is_success
from .persistence import StateStore
from .state import ExplorationState

logger = logging.getLogger(__name__)


@dataclass
class ExplorationConfig:
    """Traversal settings."""

    max_depth: int = 20
    path_separator: str = "/"
    retry_failed_endpoints: bool = False


@dataclass
class _Frame:
    """One node on the explicit traversal stack."""

    segments: list[str]
    depth: int
    listed: bool = False
    children: list[str] = field(default_factory=list)
    next_child: int = 0
    subtree_complete: bool = True


class TreeExplorer:
    """Explore a CommAPI subtree and persist progress as it goes.

    Provides:
    - Depth-bounded, depth-first traversal in listing order
    - Endpoint fetch and record with write-through persistence
    - Post-order completion marking for resume
    """

    def __init__(
        self,
        client: CommAPIClient,
        store: StateStore,
        config: ExplorationConfig | None = None,
    ) -> None:
        """Initialize the explorer.

        Args:
            client: Rate-limited CommAPI client
            store: State document store written after every change
            config: Traversal settings
        """
        self.client = client
        self.store = store
        self.config = config or ExplorationConfig()

    def path_string(self, segments: list[str]) -> str:
        """Join path segments into the completion and URL key."""
        return self.config.path_separator.join(segments)

    async def explore(
        self,
        state: ExplorationState,
        segments: list[str],
        depth: int = 0,
    ) -> None:
        """Explore the subtree rooted at ``segments``.

        Nothing is raised for request failures: a failed listing leaves its
        path out of the completed set, a failed endpoint is simply not
        recorded.

        Args:
            state: Exploration state mutated in place
            segments: Path segments of the subtree root
            depth: Depth of the subtree root (root node is 0)
        """
        stack = [_Frame(segments=list(segments), depth=depth)]

        while stack:
            frame = stack[-1]

            if not frame.listed:
                if await self._enter(state, frame):
                    continue
            elif frame.next_child < len(frame.children):
                child = frame.children[frame.next_child]
                frame.next_child += 1
                stack.append(_Frame(segments=[*frame.segments, child], depth=frame.depth + 1))
                continue
            else:
                self._complete(state, frame)

            stack.pop()
            if stack and not self._settled(state, frame):
                stack[-1].subtree_complete = False

    async def _enter(self, state: ExplorationState, frame: _Frame) -> bool:
        """List a node and fetch its endpoints.

        Returns:
            True if the frame should stay on the stack for its children
        """
        if frame.depth > self.config.max_depth:
            return False

        path = self.path_string(frame.segments)
        indent = "  " * frame.depth

        if state.is_completed(path):
            logger.info("%sSkipping completed: %s", indent, path)
            return False

        state.record_depth(frame.depth)

        logger.info("%sListing: %s", indent, path)
        listing = await self.client.list_node(path, state)
        if not is_success(listing):
            logger.warning("%sListing failed: %s", indent, path)
            return False

        frame.listed = True
        frame.children = _names(listing.get("Nodes"))

        endpoint_names = _names(listing.get("Endpoints"))
        if endpoint_names:
            logger.info("%s  Found %d endpoints", indent, len(endpoint_names))
        for name in endpoint_names:
            if not await self._fetch_endpoint(state, f"{path}.{name}", indent):
                frame.subtree_complete = False

        if frame.children:
            logger.info("%s  Found %d child nodes", indent, len(frame.children))

        return True

    async def _fetch_endpoint(self, state: ExplorationState, endpoint_path: str, indent: str) -> bool:
        """Fetch one endpoint and record it on success.

        Returns:
            True if the endpoint is recorded (now or in an earlier run)
        """
        url = self.client.get_url(endpoint_path)

        if self.config.retry_failed_endpoints and state.has_endpoint(url):
            return True

        data = await self.client.get_endpoint(endpoint_path, state)
        if not is_success(data):
            logger.debug("%s    Not recorded: %s", indent, endpoint_path)
            return False

        state.record_endpoint(url, data)
        logger.info("%s    Recorded: %s", indent, endpoint_path)
        self.store.save(state)
        return True

    def _complete(self, state: ExplorationState, frame: _Frame) -> None:
        path = self.path_string(frame.segments)

        # With retry_failed_endpoints a path also waits for every endpoint and
        # child below it; otherwise only the listing has to succeed.
        if self.config.retry_failed_endpoints and not frame.subtree_complete:
            logger.info("Leaving %s open for retry", path)
            return

        state.mark_completed(path)
        self.store.save(state)

    def _settled(self, state: ExplorationState, frame: _Frame) -> bool:
        """Check if a popped frame needs no further visit."""
        if frame.depth > self.config.max_depth:
            return True
        return state.is_completed(self.path_string(frame.segments))


def _names(entries: object) -> list[str]:
    """Extract ``Name`` values from a listing's Endpoints or Nodes array."""
    if not isinstance(entries, list):
        return []
    return [
        str(entry["Name"]) for entry in entries if isinstance(entry, dict) and entry.get("Name")
    ]
