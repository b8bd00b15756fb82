"""
Claude Code deployer.

Sections are written in this order:
1. instructions: CLAUDE.md and CLAUDE.local.md at the project root
2. commands: .claude/commands.json
3. settings: .claude/settings.json and the .claude/mcp.json tool-server registry

With DeployOptions.merge_settings an existing settings.json is deep-merged
with the incoming settings (incoming keys win) instead of being skipped or
replaced.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from core.canonical_models import (
    DeploymentResult,
    DeployOptions,
    Platform,
    UniversalContext,
    ValidationIssue,
    ValidationResult,
)
from core.deployer import ContextDeployer, SectionDeployer
from core.tree import deep_merge
from adapters.claude_code.strategy import (
    CLAUDE_DIR,
    CLAUDE_LOCAL_MD,
    CLAUDE_MD,
    COMMANDS_FILE,
    MCP_FILE,
    SETTINGS_FILE,
)
from adapters.shared.mcp_registry import to_mcp_registry

logger = logging.getLogger(__name__)

STANDARD_FILES = frozenset({SETTINGS_FILE, COMMANDS_FILE, MCP_FILE, 'settings.local.json'})


class ClaudeCodeDeployer(ContextDeployer):

    @property
    def platform(self) -> Platform:
        return Platform.CLAUDE_CODE

    @property
    def native_root(self) -> str:
        return CLAUDE_DIR

    @property
    def managed_documents(self) -> Tuple[str, ...]:
        return (CLAUDE_MD, CLAUDE_LOCAL_MD)

    def is_standard_entry(self, name: str, is_directory: bool) -> bool:
        return not is_directory and name in STANDARD_FILES

    def deployment_sections(self) -> List[Tuple[str, SectionDeployer]]:
        return [
            ('instructions', self._deploy_instructions),
            ('commands', self._deploy_commands),
            ('settings', self._deploy_settings),
        ]

    def extract_platform_data(self, context: UniversalContext) -> Optional[Dict[str, Any]]:
        claude = context.platform_config(self.platform)
        if claude is None:
            return None

        custom = context.section_data('prompts').get('custom_instructions') or []
        servers = context.section_data('tools').get('mcp_servers') or []
        return {
            'instructions': context.section_data('project').get('claude_instructions')
                            or claude.get('claude_md'),
            'custom_instructions': '\n\n'.join(custom) if custom else claude.get('claude_local_md'),
            'commands': claude.get('commands'),
            'settings': claude.get('settings'),
            'mcp': to_mcp_registry(servers) if servers else None,
        }

    async def _deploy_instructions(self, data: Dict[str, Any], target: Path,
                                   options: DeployOptions, result: DeploymentResult):
        if data.get('instructions'):
            await self.write_file(target / CLAUDE_MD, data['instructions'], options, result)
        if data.get('custom_instructions'):
            await self.write_file(target / CLAUDE_LOCAL_MD, data['custom_instructions'], options, result)

    async def _deploy_commands(self, data: Dict[str, Any], target: Path,
                               options: DeployOptions, result: DeploymentResult):
        if data.get('commands'):
            await self.write_file(target / CLAUDE_DIR / COMMANDS_FILE, data['commands'],
                                  options, result, item_type='command')

    async def _deploy_settings(self, data: Dict[str, Any], target: Path,
                               options: DeployOptions, result: DeploymentResult):
        settings = data.get('settings')
        if settings:
            settings_path = target / CLAUDE_DIR / SETTINGS_FILE
            merge = (options.merge_settings and not options.preserve_existing
                     and await self.fs.exists(settings_path))
            if merge:
                existing = await self.fs.read_json(settings_path)
                if isinstance(existing, dict):
                    settings = deep_merge(existing, settings)
                logger.debug("Merging settings into %s", settings_path)
            await self.write_file(settings_path, settings, options, result,
                                  item_type='setting', allow_update=merge)

        if data.get('mcp'):
            await self.write_file(target / CLAUDE_DIR / MCP_FILE, data['mcp'], options, result,
                                  item_type='setting')

    async def validate_compatibility(self, context: UniversalContext, target_path: str):
        report = await super().validate_compatibility(context, target_path)
        if await self.fs.exists(Path(target_path) / CLAUDE_MD):
            report.issues.append(f'{CLAUDE_MD} already exists and may be overwritten')
            report.compatible = False
        return report

    async def validate_deployment(self, context: UniversalContext,
                                  target_path: str) -> ValidationResult:
        errors: List[ValidationIssue] = []
        warnings: List[ValidationIssue] = []
        base = Path(target_path)

        if not await self.fs.exists(base / CLAUDE_DIR):
            errors.append(ValidationIssue(
                path=str(base / CLAUDE_DIR),
                message='.claude directory not found',
                code='MISSING_DIRECTORY',
            ))
            return ValidationResult.from_issues(errors, warnings)

        data, _ = self.resolve_platform_data(context)
        data = data or {}
        expected = [
            (base / CLAUDE_MD, data.get('instructions')),
            (base / CLAUDE_LOCAL_MD, data.get('custom_instructions')),
            (base / CLAUDE_DIR / COMMANDS_FILE, data.get('commands')),
            (base / CLAUDE_DIR / SETTINGS_FILE, data.get('settings')),
            (base / CLAUDE_DIR / MCP_FILE, data.get('mcp')),
        ]
        for path, wanted in expected:
            if wanted and not await self.fs.exists(path):
                warnings.append(ValidationIssue(
                    path=str(path),
                    message=f'{path.name} not found',
                    suggestion='Re-run the deployment with overwrite enabled',
                ))
        return ValidationResult.from_issues(errors, warnings)
