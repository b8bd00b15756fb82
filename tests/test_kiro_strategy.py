"""
Unit tests for the Kiro strategy.

Tests cover:
- Detection rules for .kiro directories
- Specs with file references and resources
- Steering front matter, rules and priorities
- Hook filtering and ordering
- Validation and conversion
"""

import asyncio

import pytest

from core.canonical_models import Platform
from core.errors import NotAPlatformProject
from adapters.kiro import KiroStrategy


@pytest.fixture
def strategy(fs, config):
    return KiroStrategy(fs, config)


@pytest.fixture
def kiro_project(project_dir, write_json, write_text):
    kiro = project_dir / '.kiro'
    write_text(kiro / 'specs' / 'auth' / 'requirements.md', 'Login flow.\nSee {{file:resources/api.md}}\n')
    write_text(kiro / 'specs' / 'auth' / 'design.md', 'JWT tokens.\n')
    write_text(kiro / 'specs' / 'auth' / 'resources' / 'api.md', 'POST /login')
    write_text(kiro / 'steering' / 'coding-standards.md',
               '---\ninclusion: always\n---\n# Coding Standards\n\nFollow the style guide.\n\n'
               '- Use type hints\n- Write tests\n')
    write_text(kiro / 'steering' / 'notes.txt', 'ignored')
    write_json(kiro / 'hooks' / 'lint.json', {
        'name': 'lint', 'version': '1.0.0', 'enabled': True,
        'when': {'type': 'fileSaved'}, 'then': {'type': 'command', 'command': 'ruff .'},
    })
    write_json(kiro / 'hooks' / 'archive.json', {
        'name': 'archive', 'version': '1.0.0', 'enabled': False,
        'when': {'type': 'manual'}, 'then': {'type': 'command', 'command': 'tar'},
    })
    write_json(kiro / 'hooks' / 'broken.json', {'name': 'broken'})
    write_json(kiro / 'settings' / 'mcp.json', {'mcpServers': {'fs': {'command': 'npx'}}})
    write_json(kiro / 'settings' / 'project.json', {'language': 'python'})
    write_json(kiro / 'templates' / 'feature.json', {'name': 'feature', 'tasks': ['design', 'build']})
    return project_dir


class TestDetection:

    def test_empty_directory(self, strategy, project_dir):
        assert asyncio.run(strategy.detect(str(project_dir))) is False
        with pytest.raises(NotAPlatformProject):
            asyncio.run(strategy.extract(str(project_dir)))

    def test_bare_kiro_directory_is_not_enough(self, strategy, project_dir):
        (project_dir / '.kiro').mkdir()
        assert asyncio.run(strategy.detect(str(project_dir))) is False

    def test_steering_directory(self, strategy, project_dir):
        (project_dir / '.kiro' / 'steering').mkdir(parents=True)
        assert asyncio.run(strategy.detect(str(project_dir))) is True

    def test_user_level_fallback(self, strategy, home_dir, project_dir):
        (home_dir / '.kiro').mkdir()
        (project_dir / '.kiro' / 'settings').mkdir(parents=True)
        assert asyncio.run(strategy.detect(str(project_dir))) is True


class TestExtraction:

    @pytest.fixture
    def data(self, strategy, kiro_project):
        return asyncio.run(strategy.extract(str(kiro_project)))

    def test_specs(self, data):
        spec = data['specs'][0]
        assert spec['name'] == 'auth'
        assert spec['requirements'] == 'Login flow.\nSee POST /login\n'
        assert spec['design'] == 'JWT tokens.\n'
        assert 'tasks' not in spec
        assert spec['resources'] == ['api.md']

    def test_steering(self, data):
        assert len(data['steering']) == 1
        rule = data['steering'][0]
        assert rule['name'] == 'coding-standards'
        assert rule['description'] == 'Follow the style guide.'
        assert rule['rules'] == ['Use type hints', 'Write tests']
        assert rule['priority'] == 70
        assert rule['inclusion'] == 'always'

    def test_hooks_are_filtered_and_ordered(self, data):
        assert [h['name'] for h in data['hooks']] == ['lint', 'archive']
        assert data['hooks'][0]['description'] == 'Hook from lint.json'

    def test_settings_and_templates(self, data):
        assert data['settings'] == {'language': 'python'}
        assert data['task_templates'] == [{'name': 'feature', 'tasks': ['design', 'build']}]
        assert data['mcp_servers'][0]['name'] == 'fs'

    def test_hook_command_file_reference(self, strategy, project_dir, write_json, write_text):
        kiro = project_dir / '.kiro'
        (kiro / 'specs').mkdir(parents=True)
        write_text(kiro / 'scripts' / 'check.sh', 'make check')
        write_json(kiro / 'hooks' / 'check.json', {
            'name': 'check', 'version': '1.0.0', 'enabled': True,
            'when': {'type': 'manual'}, 'then': {'type': 'command', 'command': '{{file:scripts/check.sh}}'},
        })
        data = asyncio.run(strategy.extract(str(project_dir)))
        assert data['hooks'][0]['then']['command'] == 'make check'

    def test_hook_actions_must_be_objects(self, strategy, project_dir, write_json):
        (project_dir / '.kiro' / 'specs').mkdir(parents=True)
        write_json(project_dir / '.kiro' / 'hooks' / 'run.json', {
            'name': 'run', 'version': '1.0.0', 'enabled': True,
            'when': {'type': 'manual'}, 'then': 'run',
        })
        write_json(project_dir / '.kiro' / 'hooks' / 'idle.json', {
            'name': 'idle', 'version': '1.0.0', 'enabled': True,
            'when': {}, 'then': {'type': 'command', 'command': 'true'},
        })
        data = asyncio.run(strategy.extract(str(project_dir)))
        assert data['hooks'] == []

    def test_file_reference_outside_project_is_kept(self, strategy, tmp_path, project_dir, write_text):
        """References may not climb out of the project root."""
        write_text(tmp_path / 'outside.md', 'private')
        write_text(project_dir / '.kiro' / 'specs' / 'auth' / 'requirements.md',
                   'See {{file:../../../../outside.md}}\n')
        data = asyncio.run(strategy.extract(str(project_dir)))
        assert data['specs'][0]['requirements'] == 'See {{file:../../../../outside.md}}\n'

    def test_unknown_steering_priority_defaults(self, strategy, project_dir, write_text):
        write_text(project_dir / '.kiro' / 'steering' / 'misc.md', '# Misc\n')
        data = asyncio.run(strategy.extract(str(project_dir)))
        assert data['steering'][0]['priority'] == 50


class TestNormalizeValidateConvert:

    def test_build(self, strategy, kiro_project):
        context = asyncio.run(strategy.build(str(kiro_project)))
        kiro = context.platform_config(Platform.KIRO)

        assert kiro['specs_path'] == '.kiro/specs'
        assert kiro['project_settings'] == {'language': 'python'}
        assert len(kiro['hooks']) == 2
        assert context.section_data('project')['kiro_specs'][0]['name'] == 'auth'
        assert context.section_data('tools')['mcp_servers'][0]['command'] == 'npx'
        assert context.prompts is None

    def test_validate_warnings(self, strategy):
        result = asyncio.run(strategy.validate({}))
        assert result.valid
        assert len(result.warnings) == 2

    def test_validate_hook_errors(self, strategy):
        result = asyncio.run(strategy.validate({'hooks': [{'name': 'x'}]}))
        assert not result.valid
        assert result.errors[0].message == 'Hook x missing required version field'

    def test_validate_warns_on_secret_settings(self, strategy):
        result = asyncio.run(strategy.validate({'settings': {'api_token': 'x'}}))
        assert result.valid
        assert any(w.message == 'Settings may contain sensitive data' for w in result.warnings)

    def test_convert(self, strategy, kiro_project):
        context = asyncio.run(strategy.build(str(kiro_project)))
        result = asyncio.run(strategy.convert(context))

        assert result.success
        assert result.data['specs'][0]['name'] == 'auth'
        assert result.data['steering'][0]['name'] == 'coding-standards'
        assert result.data['settings'] == {'language': 'python'}
        assert result.data['mcp_servers'][0]['name'] == 'fs'

    def test_convert_without_platform_data(self, strategy):
        context = asyncio.run(strategy.normalize({}))
        context.remove_section('ide')
        result = asyncio.run(strategy.convert(context))
        assert result.error == 'No Kiro configuration found in context'
