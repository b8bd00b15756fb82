"""
Tool-server (MCP) registry files.

Both platforms store servers as {"mcpServers": {name: {command, args, ...}}}.
A registry can exist at user level and at project level; the project-level
entry wins when the same name appears in both.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List

from core.canonical_models import McpServerDescriptor
from core.filesystem import FileSystemAccessor

logger = logging.getLogger(__name__)

MCP_SERVERS_KEY = 'mcpServers'


def parse_mcp_registry(raw: Any) -> List[Dict[str, Any]]:
    """Descriptors (as dicts) from a parsed registry file."""
    if not isinstance(raw, dict):
        return []

    servers: List[Dict[str, Any]] = []
    entries = raw.get(MCP_SERVERS_KEY)
    if isinstance(entries, dict):
        for name, config in entries.items():
            if config is not None and not isinstance(config, dict):
                logger.warning("Skipping MCP server %s: entry is not an object", name)
                continue
            servers.append(McpServerDescriptor.from_config(name, config or {}).to_dict())
    # Older registries list servers with an inline name
    elif isinstance(raw.get('servers'), list):
        for entry in raw['servers']:
            if isinstance(entry, dict):
                servers.append(McpServerDescriptor.from_config(entry.get('name', ''), entry).to_dict())
    return servers


async def load_mcp_registry(fs: FileSystemAccessor, path: Path) -> List[Dict[str, Any]]:
    """Read one registry file. Missing or unreadable files yield no servers."""
    try:
        if not await fs.exists(path):
            return []
        return parse_mcp_registry(await fs.read_json(path))
    except (OSError, ValueError) as e:
        logger.warning("Failed to read MCP registry %s: %s", path, e)
        return []


def merge_mcp_servers(*scopes: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Merge server lists ordered from broadest to narrowest scope.

    One entry per name; a narrower scope replaces a broader one regardless of
    the order the files were read in.
    """
    merged: Dict[str, Dict[str, Any]] = {}
    for scope in scopes:
        for server in scope:
            merged[server.get('name', '')] = server
    return list(merged.values())


def to_mcp_registry(servers: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    """Registry file content for a list of descriptor dicts."""
    entries = {}
    for server in servers:
        if not isinstance(server, dict) or not server.get('name'):
            continue
        entry = {key: value for key, value in server.items() if key != 'name'}
        entries[server['name']] = entry
    return {MCP_SERVERS_KEY: entries}
