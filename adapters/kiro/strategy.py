"""
Kiro context strategy.

Kiro keeps its configuration under .kiro/:
- specs/<feature>/{requirements,design,tasks}.md
- steering/*.md (optional YAML front matter, bullet-list rules)
- hooks/*.json ({name, version, enabled, when, then})
- settings/mcp.json ({"mcpServers": {...}}), also at ~/.kiro/settings/mcp.json
- settings/project.json
- templates/*.json ({name, tasks})

Markdown and hook commands may embed {{file:relative/path}} references,
which are replaced with the referenced file's content on extraction.
"""

import asyncio
import logging
import re
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
from adapters.shared.frontmatter import parse_frontmatter
from adapters.shared.mcp_registry import load_mcp_registry, merge_mcp_servers

logger = logging.getLogger(__name__)

KIRO_DIR = '.kiro'
SPECS_DIR = 'specs'
STEERING_DIR = 'steering'
HOOKS_DIR = 'hooks'
SETTINGS_DIR = 'settings'
TEMPLATES_DIR = 'templates'
MCP_FILE = 'mcp.json'
PROJECT_SETTINGS_FILE = 'project.json'
SPEC_DOCUMENTS = ('requirements', 'design', 'tasks')

FILE_REFERENCE_RE = re.compile(r'{{file:([^}]+)}}')

STEERING_PRIORITIES = {
    'principle': 100,
    'persona': 90,
    'architecture': 80,
    'coding-standards': 70,
    'TDD': 60,
    'TEST': 60,
    'git': 50,
    'PRD': 40,
    'project-context': 30,
    'flags': 20,
    'mcp': 10,
}
DEFAULT_STEERING_PRIORITY = 50


class KiroStrategy(ContextStrategy):
    """Builds and converts contexts for Kiro projects."""

    @property
    def platform(self) -> Platform:
        return Platform.KIRO

    @property
    def display_name(self) -> str:
        return "Kiro"

    async def detect(self, path: Optional[str] = None) -> bool:
        """
        A .kiro directory holding specs/ or steering/; failing that, a
        user-level ~/.kiro together with a project .kiro/settings directory.
        """
        base = self.resolve_base(path)
        kiro_path = base / KIRO_DIR
        try:
            if await self.fs.exists(kiro_path):
                specs_exists, steering_exists = await asyncio.gather(
                    self.fs.exists(kiro_path / SPECS_DIR),
                    self.fs.exists(kiro_path / STEERING_DIR),
                )
                if specs_exists or steering_exists:
                    return True

            if await self.fs.exists(self.config.user_path(KIRO_DIR)):
                return await self.fs.exists(kiro_path / SETTINGS_DIR)
            return False
        except OSError as e:
            logger.error("Failed to detect Kiro project: %s", e)
            return False

    async def extract(self, path: Optional[str] = None) -> RawData:
        base = self.resolve_base(path)
        if not await self.detect(str(base)):
            raise NotAPlatformProject(self.platform, str(base))

        kiro_path = base / KIRO_DIR
        specs, steering, hooks, mcp_servers, templates, settings = await asyncio.gather(
            self._extract_specs(kiro_path),
            self._extract_steering(kiro_path),
            self._extract_hooks(kiro_path),
            self._extract_mcp_servers(kiro_path),
            self._extract_task_templates(kiro_path),
            self.read_json_if_exists(kiro_path / SETTINGS_DIR / PROJECT_SETTINGS_FILE),
        )
        return {
            'specs': specs,
            'steering': steering,
            'hooks': hooks,
            'mcp_servers': mcp_servers,
            'task_templates': templates,
            'settings': settings if isinstance(settings, dict) else None,
        }

    async def normalize(self, data: RawData) -> UniversalContext:
        context = self.new_context()

        kiro_config = prune_empty({
            'specs_path': f'{KIRO_DIR}/{SPECS_DIR}',
            'steering_rules': data.get('steering'),
            'hooks': data.get('hooks'),
            'task_templates': data.get('task_templates'),
            'project_settings': data.get('settings'),
        })
        context.set_section('ide', {self.platform.ide_key: kiro_config})

        if data.get('specs'):
            context.set_section('project', {'kiro_specs': list(data['specs'])})

        if data.get('mcp_servers'):
            context.set_section('tools', {'mcp_servers': list(data['mcp_servers'])})

        return context

    async def validate(self, data: RawData) -> ValidationResult:
        errors: List[ValidationIssue] = []
        warnings: List[ValidationIssue] = []

        if not data.get('specs'):
            warnings.append(ValidationIssue(
                path='specs',
                message='No specifications found in .kiro/specs directory',
            ))
        if not data.get('steering'):
            warnings.append(ValidationIssue(
                path='steering',
                message='No steering rules found in .kiro/steering directory',
            ))

        for hook in data.get('hooks') or []:
            if not hook.get('name'):
                errors.append(ValidationIssue(path='hooks', message='Hook missing required name field'))
            if not hook.get('version'):
                errors.append(ValidationIssue(
                    path='hooks',
                    message=f"Hook {hook.get('name')} missing required version field",
                ))

        self.validate_mcp_servers(data.get('mcp_servers') or [], errors)
        self.check_sensitive_settings(data.get('settings'), warnings)

        return ValidationResult.from_issues(errors, warnings)

    async def convert(self, context: UniversalContext) -> ConversionResult:
        kiro_config = context.platform_config(self.platform)
        if kiro_config is None:
            return ConversionResult(success=False, error='No Kiro configuration found in context')

        data: RawData = {
            'specs': list(context.section_data('project').get('kiro_specs') or []),
            'steering': list(kiro_config.get('steering_rules') or []),
            'hooks': list(kiro_config.get('hooks') or []),
            'task_templates': list(kiro_config.get('task_templates') or []),
            'settings': kiro_config.get('project_settings'),
        }
        servers = context.section_data('tools').get('mcp_servers')
        if servers:
            data['mcp_servers'] = list(servers)
        return ConversionResult(success=True, data=prune_empty(data))

    # Extraction helpers

    async def _extract_specs(self, kiro_path: Path) -> List[Dict[str, Any]]:
        specs_path = kiro_path / SPECS_DIR
        specs: List[Dict[str, Any]] = []
        try:
            if not await self.fs.exists(specs_path):
                return specs
            for name in await self.fs.list_directory(specs_path):
                spec_dir = specs_path / name
                if await self.fs.is_directory(spec_dir):
                    spec = await self._extract_spec_directory(spec_dir, name)
                    if spec:
                        specs.append(spec)
        except OSError as e:
            logger.warning("Failed to extract specs: %s", e)
        return specs

    async def _extract_spec_directory(self, spec_dir: Path, name: str) -> Optional[Dict[str, Any]]:
        spec: Dict[str, Any] = {'name': name}
        for document in SPEC_DOCUMENTS:
            content = await self.read_text_if_exists(spec_dir / f'{document}.md')
            if content is not None:
                spec[document] = await self._resolve_file_references(
                    content, spec_dir, spec_dir.parent.parent.parent)

        # A spec directory without any document is ignored
        if len(spec) == 1:
            return None

        resources_dir = spec_dir / 'resources'
        try:
            if await self.fs.is_directory(resources_dir):
                spec['resources'] = await self.fs.list_directory(resources_dir)
        except OSError as e:
            logger.warning("Failed to list resources of spec %s: %s", name, e)
        return spec

    async def _extract_steering(self, kiro_path: Path) -> List[Dict[str, Any]]:
        steering_path = kiro_path / STEERING_DIR
        rules: List[Dict[str, Any]] = []
        try:
            if not await self.fs.exists(steering_path):
                return rules
            for file_name in await self.fs.list_directory(steering_path):
                if not file_name.endswith('.md'):
                    continue
                content = await self.read_text_if_exists(steering_path / file_name)
                if content is None:
                    continue
                rules.append(self._parse_steering(file_name[:-3], content))
        except OSError as e:
            logger.warning("Failed to extract steering rules: %s", e)
        return rules

    def _parse_steering(self, name: str, content: str) -> Dict[str, Any]:
        frontmatter, body = parse_frontmatter(content)
        rule: Dict[str, Any] = {
            'name': name,
            'description': _first_paragraph_line(body),
            'rules': _bullet_items(body),
            'priority': STEERING_PRIORITIES.get(name, DEFAULT_STEERING_PRIORITY),
            'content': content,
        }
        if frontmatter.get('inclusion'):
            rule['inclusion'] = frontmatter['inclusion']
        return rule

    async def _extract_hooks(self, kiro_path: Path) -> List[Dict[str, Any]]:
        hooks_path = kiro_path / HOOKS_DIR
        hooks: List[Dict[str, Any]] = []
        try:
            if not await self.fs.exists(hooks_path):
                return hooks
            for file_name in await self.fs.list_directory(hooks_path):
                if not file_name.endswith('.json'):
                    continue
                hook = await self.read_json_if_exists(hooks_path / file_name)
                if not _is_valid_hook(hook):
                    logger.warning("Invalid hook structure in %s", file_name)
                    continue

                hook.setdefault('description', f"Hook from {file_name}")
                command = (hook.get('then') or {}).get('command')
                if command and '{{' in command:
                    hook['then']['command'] = await self._resolve_file_references(
                        command, kiro_path, kiro_path.parent)
                hooks.append(hook)
        except OSError as e:
            logger.warning("Failed to extract hooks: %s", e)

        hooks.sort(key=lambda h: (not h['enabled'], h['name']))
        return hooks

    async def _extract_mcp_servers(self, kiro_path: Path) -> List[Dict[str, Any]]:
        user_servers = await load_mcp_registry(
            self.fs, self.config.user_path(KIRO_DIR, SETTINGS_DIR, MCP_FILE))
        project_servers = await load_mcp_registry(self.fs, kiro_path / SETTINGS_DIR / MCP_FILE)
        return merge_mcp_servers(user_servers, project_servers)

    async def _extract_task_templates(self, kiro_path: Path) -> List[Dict[str, Any]]:
        templates_path = kiro_path / TEMPLATES_DIR
        templates: List[Dict[str, Any]] = []
        try:
            if not await self.fs.exists(templates_path):
                return templates
            for file_name in await self.fs.list_directory(templates_path):
                if not file_name.endswith('.json'):
                    continue
                template = await self.read_json_if_exists(templates_path / file_name)
                if (isinstance(template, dict) and isinstance(template.get('name'), str)
                        and isinstance(template.get('tasks'), list)):
                    templates.append(template)
        except OSError as e:
            logger.warning("Failed to extract task templates: %s", e)
        return templates

    async def _resolve_file_references(self, content: str, base_path: Path, project_root: Path) -> str:
        """
        Replace {{file:path}} with the referenced file's content.

        References that resolve outside project_root are left as written.
        """
        resolved = content
        root = project_root.resolve()
        for match in FILE_REFERENCE_RE.finditer(content):
            relative = match.group(1).strip()
            referenced_path = (base_path / relative).resolve()
            if referenced_path != root and root not in referenced_path.parents:
                logger.warning("Referenced file outside the project: %s", relative)
                continue
            referenced = await self.read_text_if_exists(referenced_path)
            if referenced is None:
                logger.warning("Referenced file not found: %s", relative)
                continue
            resolved = resolved.replace(match.group(0), referenced)
        return resolved


def _is_valid_hook(hook: Any) -> bool:
    return (
        isinstance(hook, dict)
        and isinstance(hook.get('name'), str)
        and isinstance(hook.get('version'), str)
        and isinstance(hook.get('enabled'), bool)
        and isinstance(hook.get('when'), dict) and bool(hook['when'])
        and isinstance(hook.get('then'), dict) and bool(hook['then'])
    )


def _first_paragraph_line(content: str) -> str:
    for line in content.splitlines():
        if line.strip() and not line.startswith('#'):
            return line.strip()
    return ''


def _bullet_items(content: str) -> List[str]:
    items = []
    for line in content.splitlines():
        stripped = line.strip()
        if stripped.startswith('- ') or stripped.startswith('* '):
            items.append(stripped[2:])
    return items
