"""CommAPI endpoint discovery package.

Walks the simulator's CommAPI node tree and records every readable endpoint:
- Rate-limited, failure-absorbing HTTP client
- Depth-bounded tree explorer with post-order completion
- Resumable per-root-node state documents
- Per-node and per-session reports
"""

from .api_client import CommAPIClient, is_success
from .explorer import ExplorationConfig, TreeExplorer
from .persistence import LoadStatus, StateStore
from .processor import NodePhase, NodeProcessor, NodeResult
from .rate_limiter import RateLimitConfig, RateLimiter
from .report_generator import MappingSession, ReportGenerator, format_runtime
from .state import EndpointRecord, ExplorationState

__all__ = [
    "CommAPIClient",
    "EndpointRecord",
    "ExplorationConfig",
    "ExplorationState",
    "LoadStatus",
    "MappingSession",
    "NodePhase",
    "NodeProcessor",
    "NodeResult",
    "RateLimitConfig",
    "RateLimiter",
    "ReportGenerator",
    "StateStore",
    "TreeExplorer",
    "format_runtime",
    "is_success",
]
