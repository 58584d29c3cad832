"""djournal - MCP server and command line entry point."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

# MCP imports are optional - only needed when running the server
try:
    from mcp.server import Server  # pragma: no cover
    from mcp.server.stdio import stdio_server  # pragma: no cover
    from mcp.types import Tool, TextContent  # pragma: no cover
    HAS_MCP = True  # pragma: no cover
except ImportError:
    HAS_MCP = False
    Server = None  # type: ignore
    Tool = None  # type: ignore
    TextContent = None  # type: ignore

from .config import JournalConfig, find_config_file, load_config
from .engine import JournalEngine
from .errors import JournalError
from .export import write_artifact
from .models import MARKDOWN, PDF, UserIdentity
from .tools import DEFAULT_USER, execute_tool, make_tools

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_TOML = """\
[storage]
backend = "sqlite"
data_dir = "data"
database = "djournal.db"

[exports]
directory = "exports"

[limits]
max_image_mb = 20

[counters]
strict = false

[retention]
max_age_days = 30
max_count = 100

[logging]
level = "INFO"
"""


def create_server(config: JournalConfig, identity: Optional[UserIdentity] = None) -> "Server":
    """Create and configure the MCP server.

    Args:
        config: Journal configuration
        identity: The user every tool call acts as

    Returns:
        Configured MCP Server instance

    Raises:
        ImportError: If MCP package is not installed
    """
    if not HAS_MCP:
        raise ImportError(
            "MCP package not installed. Install with: pip install djournal[mcp]"
        )

    server = Server("djournal")
    engine = JournalEngine(config)
    tool_defs = make_tools(engine)

    @server.list_tools()
    async def list_tools() -> list[Tool]:
        """Return list of available tools."""
        return [
            Tool(
                name=t["name"],
                description=t["description"],
                inputSchema=t["inputSchema"],
            )
            for t in tool_defs.values()
        ]

    @server.call_tool()
    async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
        """Handle tool invocation."""
        result = await execute_tool(engine, name, arguments or {}, identity)
        return [TextContent(type="text", text=json.dumps(result, indent=2, default=str))]

    return server


async def run_server(config: JournalConfig, identity: Optional[UserIdentity] = None) -> None:
    """Run the MCP server with stdio transport."""
    if not HAS_MCP:
        raise ImportError(
            "MCP package not installed. Install with: pip install djournal[mcp]"
        )

    server = create_server(config, identity)  # pragma: no cover

    async with stdio_server() as (read_stream, write_stream):  # pragma: no cover
        await server.run(  # pragma: no cover
            read_stream,
            write_stream,
            server.create_initialization_options(),
        )


def init_data_root(data_root: Path) -> Path:
    """Create the data directory and a default config file if none exists.

    Returns:
        Path of the config file in use
    """
    data_root.mkdir(parents=True, exist_ok=True)
    existing = find_config_file(data_root)
    if existing is not None:
        config_path = existing
    else:
        config_path = data_root / "djournal.toml"
        config_path.write_text(DEFAULT_CONFIG_TOML, encoding="utf-8")

    config = load_config(data_root, config_path)
    config.get_data_path().mkdir(parents=True, exist_ok=True)
    return config_path


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="djournal - daily journal with trackers, snapshots and Markdown/PDF export"
    )
    parser.add_argument(
        "--data-root",
        "-d",
        type=Path,
        default=Path.cwd(),
        help="Directory holding the config and data (default: current directory)",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        help="Path to config file (default: auto-detect in data root)",
    )
    parser.add_argument(
        "--init",
        action="store_true",
        help="Create the data directory and a default djournal.toml",
    )
    parser.add_argument(
        "--user",
        "-u",
        default=DEFAULT_USER,
        help=f"User id to act as (default: {DEFAULT_USER})",
    )
    parser.add_argument(
        "--username",
        help="Display name shown in exports",
    )

    export_group = parser.add_argument_group("export", "One-shot exports written to the exports directory")
    export_group.add_argument(
        "--export-day",
        metavar="DATE",
        help="Export one day (YYYY-MM-DD or 'today')",
    )
    export_group.add_argument(
        "--export-range",
        nargs=2,
        metavar=("START", "END"),
        help="Export all archived days between START and END inclusive",
    )
    export_group.add_argument(
        "--format",
        "-f",
        choices=[MARKDOWN, PDF],
        default=MARKDOWN,
        help="Export format (default: markdown)",
    )
    export_group.add_argument(
        "--output",
        "-o",
        type=Path,
        help="Directory to write exports to (default: from config)",
    )
    parser.add_argument(
        "--list-snapshots",
        action="store_true",
        help="Print archived dates, newest first",
    )

    args = parser.parse_args()

    data_root = args.data_root.resolve()

    if args.init:
        config_path = init_data_root(data_root)
        print(f"Initialized journal in {data_root}")
        print(f"  - config: {config_path.name}")
        return

    try:
        config = load_config(data_root, args.config)
    except Exception as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    configure_logging(config.log_level)
    identity = UserIdentity(user_id=args.user, username=args.username)

    if args.list_snapshots or args.export_day or args.export_range:
        with JournalEngine(config) as engine:
            try:
                if args.list_snapshots:
                    engine.days.check_date_transition(identity.user_id)
                    for date in engine.snapshots.list_dates(identity.user_id):
                        print(date)
                    return

                if args.export_day:
                    artifact = engine.exports.export_day(identity, args.export_day, args.format)
                else:
                    start, end = args.export_range
                    artifact = engine.exports.export_range(identity, start, end, args.format)
            except JournalError as e:
                print(f"Error: {e}", file=sys.stderr)
                sys.exit(1)

            path = write_artifact(artifact, args.output or config.get_exports_path())
            print(path)
        return

    # Check for MCP before running in server mode
    if not HAS_MCP:
        print("Error: MCP package not installed.", file=sys.stderr)
        print("Install with: pip install djournal[mcp]", file=sys.stderr)
        sys.exit(1)

    asyncio.run(run_server(config, identity))


if __name__ == "__main__":  # pragma: no cover
    main()
