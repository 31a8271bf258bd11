"""Entry point for running the gaea_mcp MCP server directly.

Usage:
    python -m gaea_mcp
"""

from gaea_mcp.server import run_server

if __name__ == "__main__":
    run_server()
