"""Helpers shared by the platform strategies and deployers."""

from .frontmatter import parse_frontmatter, render_frontmatter
from .mcp_registry import MCP_SERVERS_KEY, load_mcp_registry, merge_mcp_servers, to_mcp_registry

__all__ = [
    'parse_frontmatter',
    'render_frontmatter',
    'MCP_SERVERS_KEY',
    'load_mcp_registry',
    'merge_mcp_servers',
    'to_mcp_registry',
]
