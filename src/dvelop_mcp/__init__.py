"""
d.velop pilot MCP server.

Top-level distribution package; the service itself lives in the sibling packages
(api, mcp_tools, upstream, security, config, observability, utils).
"""

__version__ = "1.0.0"

__all__ = ["__version__"]
