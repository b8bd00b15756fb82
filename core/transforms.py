"""
Content transforms used by the feature mapping table.

Each transform is a stateless function from one platform's raw feature
value to another's. Some are coroutines; the mapping engine awaits
whatever a transform returns when it is awaitable.
"""

import re
from typing import Any, Dict, List

SECTION_HEADING_RE = re.compile(r'^## ', re.MULTILINE)


def split_markdown_sections(document: str) -> List[Dict[str, str]]:
    """
    Split a document on level-2 headings.

    The first line of each chunk is the section name, the rest its content.
    Text before the first heading becomes its own chunk.
    """
    sections = []
    for chunk in SECTION_HEADING_RE.split(document):
        if not chunk.strip():
            continue
        lines = chunk.split('\n')
        name = lines[0].strip() or 'unnamed'
        sections.append({'name': name, 'content': '\n'.join(lines[1:]).strip()})
    return sections


async def specs_to_instructions(specs: Any) -> str:
    """Kiro specs -> one CLAUDE.md document with a level-2 heading per spec."""
    sections = ['# Project Instructions\n']
    if isinstance(specs, list):
        for spec in specs:
            sections.append(f"## {spec.get('name', 'unnamed')}\n")
            if spec.get('content'):
                sections.append(f"{spec['content']}\n")
            if spec.get('design'):
                sections.append(f"### Design\n{spec['design']}\n")
            if spec.get('requirements'):
                sections.append(f"### Requirements\n{spec['requirements']}\n")
            if spec.get('tasks'):
                sections.append(f"### Tasks\n{spec['tasks']}\n")
    elif isinstance(specs, dict):
        for name, content in specs.items():
            sections.append(f"## {name}\n{content}\n")
    return '\n'.join(sections)


async def instructions_to_specs(instructions: str) -> List[Dict[str, Any]]:
    """CLAUDE.md -> Kiro spec records, one per level-2 section."""
    return [
        {'name': section['name'], 'content': section['content'], 'type': 'instruction'}
        for section in split_markdown_sections(instructions)
    ]


def steering_to_custom_instructions(steering: Any) -> str:
    """Kiro steering rules -> CLAUDE.local.md."""
    sections = ['# Custom Instructions\n']
    if isinstance(steering, list):
        for rule in steering:
            body = rule.get('content') or '\n'.join(f"- {item}" for item in rule.get('rules') or [])
            if body:
                sections.append(f"## {rule.get('name', 'unnamed')}\n{body.strip()}\n")
    elif isinstance(steering, dict):
        for name, content in steering.items():
            sections.append(f"## {name}\n{content}\n")
    return '\n'.join(sections)


def custom_instructions_to_steering(custom: str) -> List[Dict[str, Any]]:
    """CLAUDE.local.md -> Kiro steering records, one per level-2 section."""
    return [
        {'name': section['name'], 'content': section['content'], 'type': 'custom_instruction'}
        for section in split_markdown_sections(custom)
    ]


def hook_to_command(hook: Dict[str, Any]) -> Dict[str, Any]:
    """Kiro hook record -> command record (event/script -> trigger/command)."""
    when = hook.get('when') or {}
    then = hook.get('then') or {}
    event = hook.get('event') or when.get('type')
    return {
        'name': hook.get('name') or event,
        'command': hook.get('command') or hook.get('script') or then.get('command') or then.get('prompt'),
        'description': hook.get('description'),
        'trigger': event,
    }


def command_to_hook(command: Dict[str, Any]) -> Dict[str, Any]:
    """Command record -> Kiro hook record (trigger/command -> event/command)."""
    event = command.get('trigger') or 'manual'
    hook = {
        'name': command.get('name'),
        'version': '1.0.0',
        'enabled': True,
        'event': event,
        'command': command.get('command'),
        'when': {'type': event},
        'then': {'type': 'command', 'command': command.get('command')},
    }
    if command.get('description'):
        hook['description'] = command['description']
    return hook


async def hooks_to_commands(hooks: Any) -> Dict[str, List[Dict[str, Any]]]:
    if not isinstance(hooks, list):
        return {'commands': []}
    return {'commands': [hook_to_command(hook) for hook in hooks]}


async def commands_to_hooks(commands: Any) -> List[Dict[str, Any]]:
    """
    Claude commands -> Kiro hooks.

    Accepts {"commands": [records]} or a plain {"name": "command"} map.
    """
    if isinstance(commands, dict) and isinstance(commands.get('commands'), list):
        records = commands['commands']
    elif isinstance(commands, dict):
        records = [
            dict(value, name=name) if isinstance(value, dict) else {'name': name, 'command': value}
            for name, value in commands.items()
        ]
    elif isinstance(commands, list):
        records = commands
    else:
        return []
    return [command_to_hook(record) for record in records]


def pass_through_mcp_servers(servers: Any) -> Any:
    """Tool-server descriptors share one shape on both platforms."""
    return [dict(server) for server in servers] if isinstance(servers, list) else servers


def kiro_settings_to_claude(settings: Dict[str, Any]) -> Dict[str, Any]:
    converted = {'version': '1.0.0'}
    converted.update(settings)
    converted['features'] = dict(settings.get('features') or {})
    return converted


def claude_settings_to_kiro(settings: Dict[str, Any]) -> Dict[str, Any]:
    converted = {'version': settings.get('version') or '1.0.0'}
    converted.update(settings)
    converted['features'] = dict(settings.get('features') or {})
    return converted


def steering_to_cursor_rules(steering: Any) -> str:
    if not isinstance(steering, list):
        return ''
    return '\n\n'.join(rule['content'] for rule in steering if rule.get('content'))


def cursor_rules_to_steering(rules: str) -> List[Dict[str, Any]]:
    return [{'name': 'cursor-rules', 'content': rules, 'type': 'imported', 'source': 'cursor'}]
