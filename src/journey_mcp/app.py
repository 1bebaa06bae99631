"""MCP application instance.

This module exists to avoid circular import issues when running with `python -m`.
All tool modules should import `mcp` from here, not from server.py.
"""

from mcp.server.fastmcp import FastMCP

mcp = FastMCP(
    "London Journey Planner",
    instructions=(
        "London journey planning - natural-language trip requests, multi-modal routes "
        "with live departures, station search, nearby stations and station arrivals"
    ),
)
