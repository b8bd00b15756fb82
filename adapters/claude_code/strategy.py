"""
Claude Code context strategy.

Claude Code keeps its configuration in:
- User-level: ~/.claude/settings.json, ~/.claude/mcp.json
- Project-level: .claude/settings.json, .claude/mcp.json, .claude/commands.json
- Instructions: CLAUDE.md (primary), CLAUDE.local.md (personal/local)

Raw extracted data:
{
    "settings": {...},                 # user settings overlaid by project settings
    "mcp_servers": [{name, command|url, ...}],
    "instructions": "...",             # CLAUDE.md
    "custom_instructions": "...",      # CLAUDE.local.md
    "commands": {"name": "command"},   # .claude/commands.json
}

Normalization:
- ide.data.claude_code: settings, CLAUDE.md text, MCP summary, commands
- project: CLAUDE.md as claude_instructions
- prompts: CLAUDE.local.md as custom_instructions
- tools: mcp_servers
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from core.canonical_models import (
    ConversionResult,
    Platform,
    UniversalContext,
    ValidationIssue,
    ValidationResult,
)
from core.errors import NotAPlatformProject
from core.strategy_interface import ContextStrategy, RawData
from core.tree import prune_empty
from adapters.shared.mcp_registry import load_mcp_registry, merge_mcp_servers

logger = logging.getLogger(__name__)

CLAUDE_DIR = '.claude'
CLAUDE_MD = 'CLAUDE.md'
CLAUDE_LOCAL_MD = 'CLAUDE.local.md'
SETTINGS_FILE = 'settings.json'
MCP_FILE = 'mcp.json'
COMMANDS_FILE = 'commands.json'


class ClaudeCodeStrategy(ContextStrategy):
    """Builds and converts contexts for Claude Code projects."""

    @property
    def platform(self) -> Platform:
        return Platform.CLAUDE_CODE

    @property
    def display_name(self) -> str:
        return "Claude Code"

    async def detect(self, path: Optional[str] = None) -> bool:
        """
        Check for Claude Code configuration.

        Project markers first (.claude/, CLAUDE.md, CLAUDE.local.md), then a
        user-level ~/.claude combined with a project settings file.
        """
        base = self.resolve_base(path)
        try:
            for marker in (CLAUDE_DIR, CLAUDE_MD, CLAUDE_LOCAL_MD):
                if await self.fs.exists(base / marker):
                    return True

            if await self.fs.exists(self.config.user_path(CLAUDE_DIR)):
                return await self.fs.exists(base / CLAUDE_DIR / SETTINGS_FILE)
            return False
        except OSError as e:
            logger.error("Failed to detect Claude Code project: %s", e)
            return False

    async def extract(self, path: Optional[str] = None) -> RawData:
        base = self.resolve_base(path)
        if not await self.detect(str(base)):
            raise NotAPlatformProject(self.platform, str(base))

        data: RawData = {}
        data['settings'] = await self._extract_settings(base)
        data['mcp_servers'] = await self._extract_mcp_servers(base)
        data['instructions'] = await self.read_text_if_exists(base / CLAUDE_MD)
        data['custom_instructions'] = await self.read_text_if_exists(base / CLAUDE_LOCAL_MD)
        data['commands'] = await self._extract_commands(base)
        return data

    async def normalize(self, data: RawData) -> UniversalContext:
        context = self.new_context()
        mcp_servers = data.get('mcp_servers') or []

        claude_config: Dict[str, Any] = {
            'settings': data.get('settings'),
            'claude_md': data.get('instructions'),
            'claude_local_md': data.get('custom_instructions'),
            'commands': data.get('commands') or None,
        }
        if mcp_servers:
            claude_config['mcp'] = {
                'servers': [s.get('name') for s in mcp_servers],
                'config': {s.get('name'): s.get('config', {}) for s in mcp_servers},
            }
        context.set_section('ide', {self.platform.ide_key: prune_empty(claude_config)})

        if data.get('instructions'):
            context.set_section('project', {'claude_instructions': data['instructions']})

        if data.get('custom_instructions'):
            context.set_section('prompts', {'custom_instructions': [data['custom_instructions']]})

        if mcp_servers:
            context.set_section('tools', {'mcp_servers': list(mcp_servers)})

        return context

    async def validate(self, data: RawData) -> ValidationResult:
        errors: List[ValidationIssue] = []
        warnings: List[ValidationIssue] = []

        if not any(data.get(key) for key in ('settings', 'mcp_servers', 'instructions', 'custom_instructions')):
            warnings.append(ValidationIssue(
                path='claude',
                message='No Claude Code configuration found',
                suggestion='Add .claude/settings.json or CLAUDE.md file',
            ))

        self.validate_mcp_servers(data.get('mcp_servers') or [], errors)

        self.check_sensitive_settings(data.get('settings'), warnings)

        return ValidationResult.from_issues(errors, warnings)

    async def convert(self, context: UniversalContext) -> ConversionResult:
        claude_config = context.platform_config(self.platform)
        if claude_config is None:
            return ConversionResult(
                success=False,
                error='No Claude Code configuration found in context',
            )

        commands = claude_config.get('commands')
        data: RawData = {
            'settings': claude_config.get('settings'),
            'commands': commands if isinstance(commands, dict) else None,
            'instructions': context.section_data('project').get('claude_instructions')
                            or claude_config.get('claude_md'),
        }

        custom = context.section_data('prompts').get('custom_instructions') or []
        if custom:
            data['custom_instructions'] = custom[0]
        elif claude_config.get('claude_local_md'):
            data['custom_instructions'] = claude_config['claude_local_md']

        servers = context.section_data('tools').get('mcp_servers')
        if servers:
            data['mcp_servers'] = list(servers)

        return ConversionResult(success=True, data=prune_empty(data))

    # Extraction helpers

    async def _extract_settings(self, base: Path) -> Optional[Dict[str, Any]]:
        """User-level settings overlaid by project-level settings (project wins)."""
        settings: Dict[str, Any] = {}
        for settings_path in (self.config.user_path(CLAUDE_DIR, SETTINGS_FILE),
                              base / CLAUDE_DIR / SETTINGS_FILE):
            file_settings = await self.read_json_if_exists(settings_path)
            if isinstance(file_settings, dict):
                settings.update(file_settings)
        return settings or None

    async def _extract_mcp_servers(self, base: Path) -> List[Dict[str, Any]]:
        user_servers = await load_mcp_registry(self.fs, self.config.user_path(CLAUDE_DIR, MCP_FILE))
        project_servers = await load_mcp_registry(self.fs, base / CLAUDE_DIR / MCP_FILE)
        return merge_mcp_servers(user_servers, project_servers)

    async def _extract_commands(self, base: Path) -> Optional[Dict[str, Any]]:
        commands = await self.read_json_if_exists(base / CLAUDE_DIR / COMMANDS_FILE)
        if isinstance(commands, dict) and commands:
            return commands
        return None
