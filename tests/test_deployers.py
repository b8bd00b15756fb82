"""
Unit tests for the Kiro and Claude Code deployers.

Tests cover:
- Fatal preconditions (bad target, missing platform data)
- Write policy: default skip, overwrite, preserve_existing, dry run
- Section isolation when one section fails
- Backup, restore and undeploy
- Settings merge and post-deployment validation
"""

import asyncio
import json
from pathlib import Path

import pytest

from core.canonical_models import ContextMetadata, DeployOptions, Platform, UniversalContext
from core.errors import BackupNotFound
from core.filesystem import FileSystemAccessor
from adapters import ClaudeCodeDeployer, ClaudeCodeStrategy, KiroDeployer, KiroStrategy
from adapters.kiro.deployer import index_by_name, safe_file_name


@pytest.fixture
def target_dir(tmp_path):
    target = tmp_path / 'target'
    target.mkdir()
    return target


def files_under(path):
    return sorted(str(p.relative_to(path)) for p in path.rglob('*') if p.is_file())


class TestKiroDeployer:

    @pytest.fixture
    def deployer(self, fs, config):
        return KiroDeployer(fs, config)

    @pytest.fixture
    def context(self, fs, config):
        data = {
            'specs': [{'name': 'auth', 'requirements': 'Login flow', 'design': 'JWT'}],
            'steering': [
                {'name': 'style', 'content': '---\ninclusion: always\n---\n# Style\n'},
                {'name': 'git', 'description': 'Commit rules', 'rules': ['Small commits']},
            ],
            'hooks': [{
                'name': 'lint', 'version': '1.0.0', 'enabled': True,
                'when': {'type': 'fileSaved'}, 'then': {'type': 'command', 'command': 'ruff .'},
            }],
            'mcp_servers': [{'name': 'fs', 'command': 'npx'}],
            'settings': {'language': 'python'},
        }
        return asyncio.run(KiroStrategy(fs, config).normalize(data))

    def test_deploy_writes_native_layout(self, deployer, context, target_dir):
        result = asyncio.run(deployer.deploy(context, str(target_dir)))

        assert result.success
        assert result.rollback_available
        assert files_under(target_dir) == [
            '.kiro/hooks/lint.json',
            '.kiro/settings/mcp.json',
            '.kiro/settings/project.json',
            '.kiro/specs/auth/design.md',
            '.kiro/specs/auth/requirements.md',
            '.kiro/steering/git.md',
            '.kiro/steering/style.md',
        ]
        assert (target_dir / '.kiro' / 'steering' / 'style.md').read_text() == '---\ninclusion: always\n---\n# Style\n'
        assert (target_dir / '.kiro' / 'steering' / 'git.md').read_text() == '# git\n\nCommit rules\n\n- Small commits\n'
        mcp = json.loads((target_dir / '.kiro' / 'settings' / 'mcp.json').read_text())
        assert mcp['mcpServers']['fs']['command'] == 'npx'

    def test_section_order(self, deployer, context, target_dir):
        result = asyncio.run(deployer.deploy(context, str(target_dir)))
        types = [item.type for item in result.deployed_items]
        assert types == ['file', 'file', 'file', 'file', 'hook', 'setting', 'setting']
        assert result.deployed_items[0].path.endswith('requirements.md')

    def test_second_deploy_skips_everything(self, deployer, context, target_dir):
        asyncio.run(deployer.deploy(context, str(target_dir)))
        result = asyncio.run(deployer.deploy(context, str(target_dir)))

        assert result.success
        assert result.items_with_status('created') == []
        assert len(result.items_with_status('skipped')) == 7
        assert len(result.warnings) == 7
        assert all(w.startswith('Skipped existing file: ') for w in result.warnings)

    def test_overwrite_and_preserve(self, deployer, context, target_dir):
        asyncio.run(deployer.deploy(context, str(target_dir)))

        overwritten = asyncio.run(deployer.deploy(context, str(target_dir), DeployOptions(overwrite=True)))
        assert len(overwritten.items_with_status('updated')) == 7

        preserved = asyncio.run(deployer.deploy(
            context, str(target_dir), DeployOptions(overwrite=True, preserve_existing=True)))
        assert len(preserved.items_with_status('skipped')) == 7

    def test_dry_run_writes_nothing(self, deployer, context, target_dir):
        result = asyncio.run(deployer.deploy(context, str(target_dir), DeployOptions(dry_run=True, backup=True)))

        assert result.success
        assert len(result.deployed_items) == 7
        assert all(item.status == 'created' for item in result.deployed_items)
        assert result.backup_id is None
        assert list(target_dir.iterdir()) == []

    def test_invalid_target_is_fatal(self, deployer, context, tmp_path):
        result = asyncio.run(deployer.deploy(context, str(tmp_path / 'missing')))

        assert not result.success
        assert not result.rollback_available
        assert result.deployed_items == []
        assert result.errors[0].error == 'Target path is not valid or writable'
        assert result.errors[0].recoverable is False

    def test_missing_platform_data_is_fatal(self, deployer, target_dir):
        context = UniversalContext(metadata=ContextMetadata(name='empty'))
        result = asyncio.run(deployer.deploy(context, str(target_dir)))

        assert not result.success
        assert result.errors[0].error == 'No kiro configuration found in context'
        assert list(target_dir.iterdir()) == []

    def test_malformed_platform_data_is_fatal(self, deployer, target_dir):
        context = UniversalContext(metadata=ContextMetadata(name='bad'))
        context.set_section('ide', {Platform.KIRO.ide_key: {'steering_rules': ['plain text rule']}})

        result = asyncio.run(deployer.deploy(context, str(target_dir)))

        assert not result.success
        assert result.errors[0].item == 'context'
        assert result.errors[0].error.startswith('Invalid kiro configuration in context: ')
        assert result.errors[0].recoverable is False
        assert list(target_dir.iterdir()) == []

        report = asyncio.run(deployer.validate_compatibility(context, str(target_dir)))
        assert not report.compatible

    def test_failing_section_does_not_block_others(self, deployer, context, target_dir):
        (target_dir / '.kiro').mkdir()
        (target_dir / '.kiro' / 'hooks').write_text('not a directory')

        result = asyncio.run(deployer.deploy(context, str(target_dir)))

        assert not result.success
        assert [e.item for e in result.errors] == ['hooks']
        assert result.errors[0].recoverable is True
        assert result.rollback_available
        assert (target_dir / '.kiro' / 'settings' / 'project.json').exists()

    def test_unexpected_section_error_is_recoverable(self, fs, config, context, target_dir):
        class BrokenHooks(KiroDeployer):
            async def _deploy_hooks(self, data, target, options, result):
                raise KeyError('when')

        result = asyncio.run(BrokenHooks(fs, config).deploy(context, str(target_dir)))

        assert [e.item for e in result.errors] == ['hooks']
        assert result.errors[0].recoverable is True
        assert (target_dir / '.kiro' / 'settings' / 'project.json').exists()

    def test_unnamed_and_colliding_rules_get_distinct_files(self, deployer, target_dir):
        context = UniversalContext(metadata=ContextMetadata(name='rules'))
        context.set_section('ide', {Platform.KIRO.ide_key: {'steering_rules': [
            {'content': '# One\n'},
            {'content': '# Two\n'},
            {'name': 'a b', 'content': '# Three\n'},
            {'name': 'a-b', 'content': '# Four\n'},
        ]}})

        result = asyncio.run(deployer.deploy(context, str(target_dir)))

        assert result.success
        assert files_under(target_dir / '.kiro') == [
            'steering/a-b-2.md',
            'steering/a-b.md',
            'steering/unnamed-2.md',
            'steering/unnamed.md',
        ]
        assert (target_dir / '.kiro' / 'steering' / 'unnamed-2.md').read_text() == '# Two\n'

    def test_backup_and_restore(self, deployer, context, target_dir, write_text):
        write_text(target_dir / '.kiro' / 'steering' / 'old.md', '# Old\n')

        result = asyncio.run(deployer.deploy(context, str(target_dir), DeployOptions(backup=True)))
        assert result.backup_id.startswith('kiro-backup-')
        assert deployer.last_backup_id == result.backup_id

        asyncio.run(deployer.undeploy(str(target_dir)))
        asyncio.run(deployer.restore_backup(result.backup_id, str(target_dir)))

        assert files_under(target_dir / '.kiro') == ['steering/old.md']

    def test_restore_latest_backup_to_empty(self, deployer, context, target_dir):
        """A snapshot of a target without .kiro restores to no .kiro at all."""
        asyncio.run(deployer.deploy(context, str(target_dir), DeployOptions(backup=True)))
        assert (target_dir / '.kiro').exists()

        asyncio.run(deployer.restore_backup(None, str(target_dir)))
        assert not (target_dir / '.kiro').exists()

    def test_create_backup_lists_items(self, deployer, target_dir, write_text):
        write_text(target_dir / '.kiro' / 'specs' / 'a' / 'tasks.md', '- [ ] one')
        backup = asyncio.run(deployer.create_backup(str(target_dir)))

        assert backup.platform is Platform.KIRO
        assert [item.path for item in backup.items] == ['.kiro/specs/a/tasks.md']
        assert backup.size == len('- [ ] one')

    def test_restore_missing_backup(self, deployer, target_dir):
        with pytest.raises(BackupNotFound):
            asyncio.run(deployer.restore_backup('kiro-backup-1', str(target_dir)))
        with pytest.raises(BackupNotFound):
            asyncio.run(deployer.restore_backup(None, str(target_dir)))

    def test_undeploy_is_idempotent(self, deployer, context, target_dir):
        asyncio.run(deployer.deploy(context, str(target_dir)))
        assert asyncio.run(deployer.undeploy(str(target_dir))) is True
        assert asyncio.run(deployer.undeploy(str(target_dir))) is False

    def test_validate_compatibility(self, deployer, context, target_dir):
        (target_dir / '.kiro' / 'specs').mkdir(parents=True)
        report = asyncio.run(deployer.validate_compatibility(context, str(target_dir)))
        assert report.compatible
        assert not report.has_customizations

        (target_dir / '.kiro' / 'scratch').mkdir()
        report = asyncio.run(deployer.validate_compatibility(context, str(target_dir)))
        assert not report.compatible
        assert report.has_customizations

    def test_validate_deployment(self, deployer, context, target_dir):
        missing = asyncio.run(deployer.validate_deployment(context, str(target_dir)))
        assert not missing.valid

        asyncio.run(deployer.deploy(context, str(target_dir)))
        deployed = asyncio.run(deployer.validate_deployment(context, str(target_dir)))
        assert deployed.valid
        assert deployed.warnings == []


class TestClaudeCodeDeployer:

    @pytest.fixture
    def deployer(self, fs, config):
        return ClaudeCodeDeployer(fs, config)

    @pytest.fixture
    def context(self, fs, config):
        data = {
            'settings': {'theme': 'dark', 'editor': {'wrap': True}},
            'mcp_servers': [{'name': 'fs', 'command': 'npx', 'args': ['server-fs']}],
            'instructions': '# Project\n',
            'custom_instructions': 'Local notes\n',
            'commands': {'test': 'pytest -q'},
        }
        return asyncio.run(ClaudeCodeStrategy(fs, config).normalize(data))

    def test_deploy_writes_native_layout(self, deployer, context, target_dir):
        result = asyncio.run(deployer.deploy(context, str(target_dir)))

        assert result.success
        assert files_under(target_dir) == [
            '.claude/commands.json',
            '.claude/mcp.json',
            '.claude/settings.json',
            'CLAUDE.local.md',
            'CLAUDE.md',
        ]
        assert [item.type for item in result.deployed_items] == ['file', 'file', 'command', 'setting', 'setting']
        assert (target_dir / 'CLAUDE.md').read_text() == '# Project\n'
        mcp = json.loads((target_dir / '.claude' / 'mcp.json').read_text())
        assert mcp['mcpServers']['fs']['args'] == ['server-fs']

    def test_deployed_project_builds_back(self, deployer, context, target_dir, fs, config):
        asyncio.run(deployer.deploy(context, str(target_dir)))
        rebuilt = asyncio.run(ClaudeCodeStrategy(fs, config).build(str(target_dir)))

        assert rebuilt.section_data('project') == context.section_data('project')
        assert rebuilt.section_data('prompts') == context.section_data('prompts')
        assert rebuilt.platform_config(Platform.CLAUDE_CODE)['commands'] == {'test': 'pytest -q'}

    def test_merge_settings(self, deployer, context, target_dir, write_json):
        settings_path = target_dir / '.claude' / 'settings.json'
        write_json(settings_path, {'theme': 'light', 'editor': {'tabs': 2}})

        result = asyncio.run(deployer.deploy(context, str(target_dir), DeployOptions(merge_settings=True)))

        assert json.loads(settings_path.read_text()) == {'theme': 'dark', 'editor': {'tabs': 2, 'wrap': True}}
        statuses = {item.path: item.status for item in result.deployed_items}
        assert statuses[str(settings_path)] == 'updated'

    def test_existing_settings_skipped_without_merge(self, deployer, context, target_dir, write_json):
        settings_path = target_dir / '.claude' / 'settings.json'
        write_json(settings_path, {'theme': 'light'})

        result = asyncio.run(deployer.deploy(context, str(target_dir)))

        assert json.loads(settings_path.read_text()) == {'theme': 'light'}
        assert f'Skipped existing file: {settings_path}' in result.warnings

    def test_backup_covers_instruction_documents(self, deployer, context, target_dir, write_text):
        write_text(target_dir / 'CLAUDE.md', 'original\n')

        result = asyncio.run(deployer.deploy(
            context, str(target_dir), DeployOptions(overwrite=True, backup=True)))
        assert (target_dir / 'CLAUDE.md').read_text() == '# Project\n'

        asyncio.run(deployer.restore_backup(result.backup_id, str(target_dir)))
        assert (target_dir / 'CLAUDE.md').read_text() == 'original\n'
        assert not (target_dir / '.claude').exists()

    def test_validate_compatibility_flags_existing_instructions(self, deployer, context, target_dir, write_text):
        write_text(target_dir / 'CLAUDE.md', 'mine\n')
        report = asyncio.run(deployer.validate_compatibility(context, str(target_dir)))
        assert not report.compatible
        assert 'CLAUDE.md already exists and may be overwritten' in report.issues

    def test_custom_entries_are_customizations(self, deployer, context, target_dir, write_text):
        write_text(target_dir / '.claude' / 'agents' / 'reviewer.md', 'agent')
        report = asyncio.run(deployer.validate_compatibility(context, str(target_dir)))
        assert report.has_customizations

    def test_validate_deployment(self, deployer, context, target_dir):
        asyncio.run(deployer.deploy(context, str(target_dir)))
        (target_dir / 'CLAUDE.local.md').unlink()

        result = asyncio.run(deployer.validate_deployment(context, str(target_dir)))
        assert result.valid
        assert [w.message for w in result.warnings] == ['CLAUDE.local.md not found']

    def test_failed_restore_leaves_target_untouched(self, deployer, context, target_dir, config, write_text):
        class FailingCopy(FileSystemAccessor):
            async def copy(self, source, destination):
                if Path(source).name == 'CLAUDE.md':
                    raise OSError('disk full')
                await super().copy(source, destination)

        write_text(target_dir / 'CLAUDE.md', 'original\n')
        backup = asyncio.run(deployer.create_backup(str(target_dir)))
        asyncio.run(deployer.deploy(context, str(target_dir), DeployOptions(overwrite=True)))

        with pytest.raises(OSError):
            asyncio.run(ClaudeCodeDeployer(FailingCopy(), config).restore_backup(backup.id, str(target_dir)))

        assert (target_dir / 'CLAUDE.md').read_text() == '# Project\n'
        assert (target_dir / '.claude' / 'settings.json').exists()
        assert list(target_dir.glob('.claude.restore.*')) == []


    def test_malformed_instructions_are_fatal(self, deployer, target_dir):
        context = UniversalContext(metadata=ContextMetadata(name='bad'))
        context.set_section('ide', {Platform.CLAUDE_CODE.ide_key: {}})
        context.set_section('prompts', {'custom_instructions': ['Notes', 42]})

        result = asyncio.run(deployer.deploy(context, str(target_dir)))

        assert not result.success
        assert result.errors[0].item == 'context'
        assert result.errors[0].error.startswith('Invalid claude-code configuration in context: ')
        assert list(target_dir.iterdir()) == []

class TestFileNames:

    def test_safe_file_name(self):
        assert safe_file_name('API design/v2') == 'API-design-v2'
        assert safe_file_name('...') == 'unnamed'
        assert safe_file_name(None) == 'unnamed'

    def test_index_by_name_suffixes_collisions(self):
        indexed = index_by_name([(None, 1), ('', 2), ('x', 3), ('x', 4), ('x-2', 5)])
        assert indexed == {'unnamed': 1, 'unnamed-2': 2, 'x': 3, 'x-2': 4, 'x-2-2': 5}
