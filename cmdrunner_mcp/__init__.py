"""cmdrunner MCP server: guarded ls/git execution for MCP clients."""

__version__ = "0.1.0"
