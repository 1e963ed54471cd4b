#!/usr/bin/env python3
"""
cmdrunner MCP Server - guarded command execution over the Model Context Protocol.

Supports stdio transport.
Run with: python -m cmdrunner_mcp.server

Tools:
- ls_tool: Directory listing (ls -al)
- git: Allow-listed git subcommands (status, add, commit, checkout)
"""  # noqa: I001

from __future__ import annotations

import asyncio
import logging
import sys
import time
from typing import Any

from cmdrunner_mcp.config import McpConfig, load_config
from cmdrunner_mcp.observability import generate_correlation_id, setup_logging
from cmdrunner_mcp.tools.request import TOOL_ADAPTERS, run_tool
from cmdrunner_mcp.tools.security import SecurityPolicy
from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

logger = logging.getLogger(__name__)

SERVER_INSTRUCTIONS = """A command runner MCP server that provides ls_tool for listing directory contents and git for running git commands.

All tools support these optional parameters:
- grep_pattern: regex to filter lines (invert_grep: true to exclude matches)
- head/tail: limit to first/last N lines
- sort: sort lines alphabetically
- unique: remove consecutive duplicate lines
- timeout_ms: command timeout in milliseconds
- working_dir: absolute directory to run command in
- env: environment variables as {"KEY": "value"}
- transform_order: array specifying order of transformations ["grep", "sort", "unique", "head", "tail"]

Default transform order: grep -> sort -> unique -> head -> tail"""

TRANSFORM_HELP = """

Supports output transformations:
- grep_pattern: filter lines matching regex
- invert_grep: exclude matching lines instead
- head/tail: limit to first/last N lines
- sort: sort lines alphabetically
- unique: remove consecutive duplicates"""

# Fields shared by every tool
COMMON_PROPERTIES: dict[str, Any] = {
    "grep_pattern": {
        "type": "string",
        "description": "Regex pattern to filter output lines (keeps matching lines)",
    },
    "invert_grep": {
        "type": "boolean",
        "description": "If true, exclude matching lines instead of keeping them",
    },
    "head": {
        "type": "integer",
        "minimum": 0,
        "description": "Return only the first N lines of output",
    },
    "tail": {
        "type": "integer",
        "minimum": 0,
        "description": "Return only the last N lines of output",
    },
    "sort": {"type": "boolean", "description": "Sort output lines alphabetically"},
    "unique": {
        "type": "boolean",
        "description": "Remove duplicate consecutive lines (like uniq)",
    },
    "timeout_ms": {
        "type": "integer",
        "minimum": 0,
        "description": "Timeout in milliseconds for command execution (default: 180000 = 3 minutes)",
    },
    "working_dir": {
        "type": "string",
        "description": "Absolute working directory for command execution",
    },
    "env": {
        "type": "object",
        "additionalProperties": {"type": "string"},
        "description": "Environment variables to set for command execution",
    },
    "transform_order": {
        "type": "array",
        "items": {"type": "string", "enum": ["grep", "sort", "unique", "head", "tail"]},
        "description": "Order to apply transformations. Only listed transformations are applied. "
        'Default: ["grep", "sort", "unique", "head", "tail"]',
    },
}

TOOLS: list[Tool] = [
    Tool(
        name="ls_tool",
        description="Default/preferred tool for directory listing. Use this instead of terminal "
        "commands for all ls/directory listing operations." + TRANSFORM_HELP,
        inputSchema={
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": 'The path to list contents of. Defaults to "." if not provided.',
                    "default": ".",
                },
                **COMMON_PROPERTIES,
            },
            "required": [],
        },
    ),
    Tool(
        name="git",
        description="Default/preferred tool for running git commands (status, add, commit, "
        "checkout). Use this instead of terminal commands for all git operations."
        + TRANSFORM_HELP,
        inputSchema={
            "type": "object",
            "properties": {
                "subcommand": {
                    "type": "string",
                    "description": "The git subcommand to run (status, add, commit, checkout)",
                },
                "args": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Arguments to pass to the git subcommand",
                    "default": [],
                },
                **COMMON_PROPERTIES,
            },
            "required": ["subcommand"],
        },
    ),
]


class CmdRunnerServer:
    """cmdrunner MCP Server implementation."""

    def __init__(self, config: McpConfig):
        self.config = config
        self.policy = SecurityPolicy.from_paths(config.security.blocked_paths)
        self.server = Server("cmdrunner-mcp", instructions=SERVER_INSTRUCTIONS)
        self.tools = list(TOOLS)
        self._register_handlers()
        logger.info(
            f"cmdrunner MCP Server initialized ({config.config_version}, "
            f"tools={[t.name for t in self.tools]}, "
            f"blocked_paths={list(self.policy.blocked_paths)})"
        )

    def _register_handlers(self):
        """Register MCP protocol handlers."""

        @self.server.list_tools()
        async def list_tools() -> list[Tool]:
            """Return available tools."""
            logger.debug("list_tools called")
            return self.tools

        @self.server.call_tool()
        async def call_tool(name: str, arguments: dict) -> list[TextContent]:
            return await self.handle_call(name, arguments)

    async def handle_call(self, name: str, arguments: dict | None) -> list[TextContent]:
        """Run one tool call off the event loop and wrap the text result."""
        cid = generate_correlation_id()
        start_time = time.time()
        logger.info(f"call_tool: {name}", extra={"correlation_id": cid, "tool": name})

        if name not in TOOL_ADAPTERS:
            text = f"Error: Unknown tool: {name}"
        else:
            try:
                text = await asyncio.to_thread(
                    run_tool, name, arguments, self.policy, self.config.tools
                )
            except Exception as e:
                logger.exception(
                    f"Tool {name} failed: {e}", extra={"correlation_id": cid, "tool": name}
                )
                text = f"Error: {e}"

        latency_ms = (time.time() - start_time) * 1000
        failed = text.startswith("Error:")
        logger.info(
            f"call_tool done: {name}",
            extra={
                "correlation_id": cid,
                "tool": name,
                "latency_ms": round(latency_ms, 2),
                "status": "error" if failed else "ok",
                "error": text if failed else None,
            },
        )
        return [TextContent(type="text", text=text)]

    async def run(self):
        """Run the server with stdio transport."""
        logger.info("Starting cmdrunner MCP server (stdio transport)")
        async with stdio_server() as (read_stream, write_stream):
            await self.server.run(
                read_stream,
                write_stream,
                self.server.create_initialization_options(),
            )


def serve(config: McpConfig) -> None:
    """Configure logging from `config` and block serving stdio."""
    setup_logging(config.observability)
    logger.info(f"Config loaded: enabled={config.enabled}, version={config.config_version}")
    logger.info(
        f"Tools: default_timeout_ms={config.tools.default_timeout_ms}, "
        f"max_timeout_ms={config.tools.max_timeout_ms}"
    )

    if not config.enabled:
        logger.warning("MCP server disabled in config, exiting")
        return

    server = CmdRunnerServer(config)
    asyncio.run(server.run())


def main():
    """Entry point for cmdrunner MCP server."""
    import argparse

    parser = argparse.ArgumentParser(description="cmdrunner MCP Server")
    parser.add_argument(
        "--config",
        "-c",
        help="Path to cmdrunner.toml config file",
        default=None,
    )
    parser.add_argument(
        "--log-level",
        "-l",
        choices=["debug", "info", "warning", "error"],
        default=None,
        help="Override log level",
    )
    args = parser.parse_args()

    try:
        config = load_config(args.config)
    except ValueError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        sys.exit(2)

    if args.log_level:
        config.server.log_level = args.log_level
        config.observability.log_level = args.log_level

    serve(config)


if __name__ == "__main__":
    main()
