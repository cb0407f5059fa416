#!/usr/bin/env python3
"""CommAPI Endpoint Mapper.

Walks the train simulator's CommAPI node tree below each configured root
node and records every endpoint that can be read. Progress is saved after
every discovery, so an interrupted run picks up where it stopped.

Usage:
    python -m endpoint_mapper.map_endpoints                  # All root nodes
    python -m endpoint_mapper.map_endpoints --node DriverAid # Single root node
    python -m endpoint_mapper.map_endpoints --max-depth 5    # Shallower walk
"""

import argparse
import asyncio
import logging
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import httpx
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .discovery import (
    CommAPIClient,
    ExplorationConfig,
    MappingSession,
    NodeProcessor,
    NodeResult,
    RateLimiter,
    ReportGenerator,
    StateStore,
    TreeExplorer,
)

console = Console()
logger = logging.getLogger(__name__)

DEFAULT_ROOT_NODES = [
    "CurrentDrivableActor",
    "CurrentFormation",
    "DriverAid",
    "DriverInput",
    "Player",
    "TimeOfDay",
    "VirtualRailDriver",
    "WeatherManager",
]


class CredentialError(RuntimeError):
    """The CommAPI key could not be read."""


def get_default_config() -> dict:
    """Get default mapper configuration."""
    return {
        "base_url": "http://localhost:31270",
        "api_key_header": "DTGCommKey",
        "api_key_path": str(default_api_key_path()),
        "root_nodes": list(DEFAULT_ROOT_NODES),
        "rate_limit": {
            "delay_ms": 250,
            "timeout_ms": 5000,
        },
        "exploration": {
            "max_depth": 20,
            "path_separator": "/",
            "retry_failed_endpoints": False,
        },
        "output": {
            "endpoints_dir": "endpoints",
            "reports_dir": "reports",
            "pretty_print": True,
        },
        "logging": {
            "level": "INFO",
        },
    }


def default_api_key_path() -> Path:
    """Locate CommAPIKey.txt under the user's Documents folder."""
    home = Path(os.environ["USERPROFILE"]) if os.environ.get("USERPROFILE") else Path.home()
    return (
        home / "Documents" / "My Games" / "TrainSimWorld6" / "Saved" / "Config" / "CommAPIKey.txt"
    )


def load_config(config_path: Path) -> dict:
    """Load mapper configuration from YAML file, merged over the defaults."""
    config = get_default_config()

    if not config_path.exists():
        console.print(f"[yellow]Config not found: {config_path}, using defaults[/yellow]")
        return config

    with config_path.open() as f:
        loaded = yaml.safe_load(f) or {}
    loaded = loaded.get("mapper", loaded)

    # Deep merge
    for key, value in loaded.items():
        existing = config.get(key)
        if isinstance(existing, dict) and isinstance(value, dict):
            existing.update(value)
        else:
            config[key] = value

    return config


def get_base_url(config: dict) -> str:
    """Get CommAPI URL from config or environment."""
    url = os.environ.get("COMMAPI_URL") or config.get("base_url", "")
    return url.rstrip("/")


def load_api_key(config: dict) -> str:
    """Read the CommAPI key from the environment or the key file.

    Raises:
        CredentialError: If no key is available
    """
    key = os.environ.get("COMMAPI_KEY", "").strip()
    if key:
        return key

    key_path = Path(
        os.environ.get("COMMAPI_KEY_PATH") or config.get("api_key_path") or default_api_key_path(),
    ).expanduser()

    try:
        key = key_path.read_text(encoding="utf-8").strip()
    except OSError as e:
        raise CredentialError(f"Failed to read API key from {key_path}: {e}") from e

    if not key:
        raise CredentialError(f"API key file is empty: {key_path}")

    return key


def select_nodes(config: dict, requested: list[str] | None = None) -> list[str]:
    """Get the root nodes to map, in configured order."""
    configured = list(config.get("root_nodes") or DEFAULT_ROOT_NODES)
    if not requested:
        return configured

    selected = [node for node in configured if node in requested]
    selected.extend(node for node in requested if node not in configured)
    return selected


def build_processor(
    config: dict,
    client: httpx.AsyncClient,
    rate_limiter: RateLimiter,
    base_url: str,
) -> NodeProcessor:
    """Wire client, explorer, store and reporter for a mapping run."""
    exploration = config.get("exploration", {})
    output = config.get("output", {})
    pretty_print = output.get("pretty_print", True)

    api_client = CommAPIClient(client, base_url, rate_limiter)
    store = StateStore(output.get("endpoints_dir", "endpoints"), pretty_print=pretty_print)
    explorer = TreeExplorer(
        api_client,
        store,
        ExplorationConfig(
            max_depth=int(exploration.get("max_depth", 20)),
            path_separator=exploration.get("path_separator", "/"),
            retry_failed_endpoints=bool(exploration.get("retry_failed_endpoints", False)),
        ),
    )
    report_generator = ReportGenerator(output.get("reports_dir", "reports"), pretty_print=pretty_print)

    return NodeProcessor(explorer, store, report_generator, base_url=base_url)


async def run_mapping(
    config: dict,
    api_key: str,
    nodes: list[str] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> MappingSession:
    """Map each root node in turn.

    Args:
        config: Mapper configuration
        api_key: CommAPI key sent with every request
        nodes: Root nodes to map (default: configured list)
        transport: Optional httpx transport override

    Returns:
        MappingSession with per-node results
    """
    base_url = get_base_url(config)
    root_nodes = nodes if nodes is not None else select_nodes(config)
    session = MappingSession(base_url=base_url, root_nodes=list(root_nodes))

    rate_limiter = RateLimiter(config.get("rate_limit", {}))
    headers = CommAPIClient.build_headers(api_key, config.get("api_key_header", "DTGCommKey"))

    async with httpx.AsyncClient(headers=headers, transport=transport) as client:
        processor = build_processor(config, client, rate_limiter, base_url)

        for index, node in enumerate(root_nodes, start=1):
            print_node_banner(node, index, len(root_nodes), config)
            result = await processor.process(node)
            session.results.append(result)
            print_node_result(result)

    session.completed_at = datetime.now(timezone.utc)
    session.rate_limiter_stats = rate_limiter.get_stats()

    return session


def print_node_banner(node: str, index: int, total: int, config: dict) -> None:
    """Print the header for one root node."""
    exploration = config.get("exploration", {})
    delay = config.get("rate_limit", {}).get("delay_ms", 250)

    console.rule(f"[bold blue][{index}/{total}] {node}[/bold blue]")
    console.print(f"  Base URL:  {get_base_url(config)}")
    console.print(f"  Max Depth: {exploration.get('max_depth', 20)}")
    console.print(f"  Delay:     {delay}ms")


def print_node_result(result: NodeResult) -> None:
    """Print the outcome line for one root node."""
    if result.skipped:
        console.print(f"[yellow]{result.target_node}: skipped (already completed)[/yellow]")
        return

    colour = "green" if result.completed else "red"
    console.print(
        f"[{colour}]{result.target_node}: {result.endpoint_count} endpoints, "
        f"{result.completed_paths} paths, {result.total_requests} requests "
        f"in {result.duration_seconds:.2f}s[/{colour}]",
    )
    if result.report_path:
        console.print(f"  Report: {result.report_path}")


def print_summary(session: MappingSession) -> None:
    """Print mapping summary to console."""
    table = Table(title="Mapping Summary")
    table.add_column("Node", style="cyan")
    table.add_column("Status")
    table.add_column("Endpoints", justify="right", style="green")
    table.add_column("Max Depth", justify="right")
    table.add_column("Requests", justify="right")

    for result in session.results:
        if result.skipped:
            status = "Skipped"
        elif not result.completed:
            status = "[red]Incomplete[/red]"
        else:
            status = "Resumed" if result.resumed else "Mapped"
        table.add_row(
            result.target_node,
            status,
            "-" if result.skipped else str(result.endpoint_count),
            "-" if result.skipped else str(result.max_depth_achieved),
            "-" if result.skipped else str(result.total_requests),
        )

    console.print(table)
    console.print(f"Total time: {session.duration_seconds:.2f}s")


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Map readable endpoints of the CommAPI node tree",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("config/mapper.yaml"),
        help="Path to mapper configuration",
    )
    parser.add_argument(
        "--node",
        "-n",
        action="append",
        help="Root node to map (repeatable, default: from config)",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        help="Directory for state documents (default: from config)",
    )
    parser.add_argument(
        "--reports-dir",
        type=Path,
        help="Directory for reports (default: from config)",
    )
    parser.add_argument(
        "--max-depth",
        type=int,
        help="Maximum traversal depth (default: from config)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args()

    config = load_config(args.config)
    apply_overrides(config, args)
    setup_logging("DEBUG" if args.verbose else config.get("logging", {}).get("level", "INFO"))

    console.print("[bold blue]CommAPI Endpoint Mapper[/bold blue]")
    console.print(f"  API:    {get_base_url(config)}")
    console.print(f"  Config: {args.config}")

    try:
        api_key = load_api_key(config)
        console.print("[green]API key loaded[/green]")

        nodes = select_nodes(config, args.node)
        console.print(f"Processing {len(nodes)} root nodes...")

        session = asyncio.run(run_mapping(config, api_key, nodes))

        report_gen = ReportGenerator(
            config["output"].get("reports_dir", "reports"),
            pretty_print=config["output"].get("pretty_print", True),
        )
        summary_path = report_gen.generate_session_summary(session)
    except CredentialError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1
    except Exception as e:
        console.print(f"[bold red]Fatal error: {e}[/bold red]")
        logger.debug("Unhandled error", exc_info=True)
        return 1

    print_summary(session)
    console.print(f"  Summary: {summary_path}")
    console.print("\n[bold green]Mapping complete![/bold green]")
    return 0


def apply_overrides(config: dict, args: Any) -> None:
    """Apply command-line overrides to the loaded config."""
    if args.output_dir is not None:
        config.setdefault("output", {})["endpoints_dir"] = str(args.output_dir)
    if args.reports_dir is not None:
        config.setdefault("output", {})["reports_dir"] = str(args.reports_dir)
    if args.max_depth is not None:
        config.setdefault("exploration", {})["max_depth"] = args.max_depth


if __name__ == "__main__":
    sys.exit(main())
