"""
Kiro deployer.

Writes a context into .kiro/ in a fixed order:
specs -> steering -> hooks -> settings.
"""

import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from core.canonical_models import (
    DeploymentResult,
    DeployOptions,
    Platform,
    UniversalContext,
    ValidationIssue,
    ValidationResult,
)
from core.deployer import ContextDeployer, SectionDeployer
from adapters.kiro.strategy import (
    HOOKS_DIR,
    KIRO_DIR,
    MCP_FILE,
    PROJECT_SETTINGS_FILE,
    SETTINGS_DIR,
    SPEC_DOCUMENTS,
    SPECS_DIR,
    STEERING_DIR,
    TEMPLATES_DIR,
)
from adapters.shared.frontmatter import render_frontmatter
from adapters.shared.mcp_registry import to_mcp_registry

STANDARD_DIRECTORIES = frozenset({SPECS_DIR, STEERING_DIR, HOOKS_DIR, SETTINGS_DIR, TEMPLATES_DIR})


def safe_file_name(name: Optional[str]) -> str:
    """File-system safe form of a spec/rule/hook name."""
    if name is None:
        return 'unnamed'
    cleaned = re.sub(r'[^\w.-]+', '-', str(name)).strip('-.')
    return cleaned or 'unnamed'


def index_by_name(entries: Iterable[Tuple[Any, Any]]) -> Dict[str, Any]:
    """Key values by safe file name; colliding names get -2, -3, ... suffixes."""
    indexed: Dict[str, Any] = {}
    for name, value in entries:
        base = safe_file_name(name)
        key, counter = base, 2
        while key in indexed:
            key = f'{base}-{counter}'
            counter += 1
        indexed[key] = value
    return indexed


def render_steering(rule: Dict[str, Any]) -> str:
    """Markdown for a steering rule; verbatim content wins over rebuilt text."""
    if rule.get('content'):
        return rule['content']

    lines = [f"# {rule.get('name') or 'unnamed'}", '']
    if rule.get('description'):
        lines += [rule['description'], '']
    lines += [f"- {item}" for item in rule.get('rules') or []]
    body = '\n'.join(lines) + '\n'
    if rule.get('inclusion'):
        return render_frontmatter({'inclusion': rule['inclusion']}, body)
    return body


class KiroDeployer(ContextDeployer):

    @property
    def platform(self) -> Platform:
        return Platform.KIRO

    @property
    def native_root(self) -> str:
        return KIRO_DIR

    def is_standard_entry(self, name: str, is_directory: bool) -> bool:
        if is_directory:
            return name in STANDARD_DIRECTORIES
        return name.endswith('.md') or name.endswith('.json')

    def deployment_sections(self) -> List[Tuple[str, SectionDeployer]]:
        return [
            ('specs', self._deploy_specs),
            ('steering', self._deploy_steering),
            ('hooks', self._deploy_hooks),
            ('settings', self._deploy_settings),
        ]

    def extract_platform_data(self, context: UniversalContext) -> Optional[Dict[str, Any]]:
        kiro = context.platform_config(self.platform)
        if kiro is None:
            return None

        specs = index_by_name(
            (spec.get('name'), spec) for spec in context.section_data('project').get('kiro_specs') or [])

        steering_rules = kiro.get('steering_rules') or []
        if isinstance(steering_rules, dict):
            steering = index_by_name(steering_rules.items())
        else:
            steering = index_by_name((rule.get('name'), render_steering(rule)) for rule in steering_rules)

        hooks_config = kiro.get('hooks') or []
        if isinstance(hooks_config, dict):
            hooks = dict(hooks_config)
        else:
            hooks = index_by_name((hook.get('name'), hook) for hook in hooks_config)

        settings: Dict[str, Any] = {}
        servers = context.section_data('tools').get('mcp_servers')
        if servers:
            settings['mcp'] = to_mcp_registry(servers)
        elif kiro.get('mcp_settings'):
            settings['mcp'] = kiro['mcp_settings']
        if kiro.get('project_settings'):
            settings['project'] = kiro['project_settings']

        return {'specs': specs, 'steering': steering, 'hooks': hooks, 'settings': settings}

    async def _deploy_specs(self, data: Dict[str, Any], target: Path,
                            options: DeployOptions, result: DeploymentResult):
        specs_path = target / KIRO_DIR / SPECS_DIR
        for spec_name, spec in data['specs'].items():
            documents = {doc: spec[doc] for doc in SPEC_DOCUMENTS if spec.get(doc)}
            # Specs converted from a single instruction block carry plain content
            if not documents and spec.get('content'):
                documents['requirements'] = spec['content']
            for document, content in documents.items():
                await self.write_file(specs_path / spec_name / f'{document}.md', content, options, result)

    async def _deploy_steering(self, data: Dict[str, Any], target: Path,
                               options: DeployOptions, result: DeploymentResult):
        steering_path = target / KIRO_DIR / STEERING_DIR
        for rule_name, content in data['steering'].items():
            await self.write_file(steering_path / f'{rule_name}.md', content, options, result)

    async def _deploy_hooks(self, data: Dict[str, Any], target: Path,
                            options: DeployOptions, result: DeploymentResult):
        hooks_path = target / KIRO_DIR / HOOKS_DIR
        for hook_name, hook in data['hooks'].items():
            file_name = hook_name if hook_name.endswith('.json') else f'{hook_name}.json'
            await self.write_file(hooks_path / file_name, hook, options, result, item_type='hook')

    async def _deploy_settings(self, data: Dict[str, Any], target: Path,
                               options: DeployOptions, result: DeploymentResult):
        settings_path = target / KIRO_DIR / SETTINGS_DIR
        settings = data['settings']
        if settings.get('mcp'):
            await self.write_file(settings_path / MCP_FILE, settings['mcp'], options, result,
                                  item_type='setting')
        for name, content in settings.items():
            if name == 'mcp':
                continue
            file_name = PROJECT_SETTINGS_FILE if name == 'project' else f'{name}.json'
            await self.write_file(settings_path / file_name, content, options, result,
                                  item_type='setting')

    async def validate_deployment(self, context: UniversalContext,
                                  target_path: str) -> ValidationResult:
        errors: List[ValidationIssue] = []
        warnings: List[ValidationIssue] = []
        kiro_path = Path(target_path) / KIRO_DIR

        if not await self.fs.exists(kiro_path):
            errors.append(ValidationIssue(
                path=str(kiro_path),
                message='.kiro directory not found',
                code='MISSING_DIRECTORY',
            ))
            return ValidationResult.from_issues(errors, warnings)

        kiro = context.platform_config(self.platform) or {}
        expected = [
            (SPECS_DIR, bool(context.section_data('project').get('kiro_specs')), 'Specs'),
            (STEERING_DIR, bool(kiro.get('steering_rules')), 'Steering rules'),
            (HOOKS_DIR, bool(kiro.get('hooks')), 'Hooks'),
        ]
        for directory, wanted, label in expected:
            if wanted and not await self.fs.exists(kiro_path / directory):
                warnings.append(ValidationIssue(
                    path=str(kiro_path / directory),
                    message=f'{directory} directory not found',
                    suggestion=f'{label} may not have been deployed',
                ))
        return ValidationResult.from_issues(errors, warnings)
