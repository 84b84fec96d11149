"""
MCP tool package.

- registry: tool contracts, adapters onto the upstream client, and the ToolRegistry
- server: fastmcp server and streamable HTTP app built from the registry
"""

__all__ = ["registry", "server"]
