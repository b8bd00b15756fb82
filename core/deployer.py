"""
Base class for writing a UniversalContext back onto a filesystem.

A deployment runs these steps in order:
1. Precondition: the target must be an existing, writable directory
2. Data extraction: the platform's section must be present in the context
3. Optional backup of the managed paths (skipped on dry runs)
4. Per-section deployment in the subclass's fixed order. A failing
   section records a recoverable error and the next section still runs
5. Per-file write policy (see write_file)

Steps 1 and 2 are fatal; nothing is written when they fail.

Backups copy every managed path (the native root directory and any
root-level documents) into <target>/<native root>.backup.<millis>/,
keeping project-relative paths.
"""

import json
import logging
import os
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from core.canonical_models import (
    BackupInfo,
    BackupItem,
    CompatibilityReport,
    DeployedItem,
    DeploymentError,
    DeploymentResult,
    DeployOptions,
    Platform,
    UniversalContext,
    ValidationResult,
    utc_now,
)
from core.config import SyncConfig
from core.errors import BackupNotFound
from core.filesystem import FileSystemAccessor

logger = logging.getLogger(__name__)

SectionDeployer = Callable[[Dict[str, Any], Path, DeployOptions, DeploymentResult], Awaitable[None]]


class ContextDeployer(ABC):

    def __init__(self, file_system: Optional[FileSystemAccessor] = None,
                 config: Optional[SyncConfig] = None):
        self.fs = file_system or FileSystemAccessor()
        self.config = config or SyncConfig()
        self.last_backup_id: Optional[str] = None

    @property
    @abstractmethod
    def platform(self) -> Platform:
        pass

    @property
    @abstractmethod
    def native_root(self) -> str:
        """Directory (relative to the project) that holds the native configuration."""
        pass

    @property
    def managed_documents(self) -> Tuple[str, ...]:
        """Project-root files owned by this platform besides the native root."""
        return ()

    @abstractmethod
    def extract_platform_data(self, context: UniversalContext) -> Optional[Dict[str, Any]]:
        """Platform data to deploy, or None when the context has none."""
        pass

    @abstractmethod
    def deployment_sections(self) -> List[Tuple[str, SectionDeployer]]:
        """(name, coroutine) pairs, in the order they must be deployed."""
        pass

    @abstractmethod
    def is_standard_entry(self, name: str, is_directory: bool) -> bool:
        """Whether an entry of the native root belongs to the expected layout."""
        pass

    def resolve_platform_data(self, context: UniversalContext) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
        """
        (data, error) for a context.

        A context without platform data, or whose platform data is malformed,
        yields (None, message).
        """
        try:
            data = self.extract_platform_data(context)
        except Exception as e:
            logger.error("Invalid %s configuration in context: %s", self.platform.value, e)
            return None, f'Invalid {self.platform.value} configuration in context: {e}'
        if not data:
            return None, f'No {self.platform.value} configuration found in context'
        return data, None

    async def can_deploy(self, target_path: str) -> bool:
        try:
            if not await self.fs.is_directory(target_path):
                return False
            return os.access(target_path, os.W_OK)
        except OSError as e:
            logger.warning("Cannot deploy to %s: %s", target_path, e)
            return False

    async def deploy(self, context: UniversalContext, target_path: str,
                     options: Optional[DeployOptions] = None) -> DeploymentResult:
        options = options or DeployOptions()
        logger.info("Deploying %s context to %s", self.platform.value, target_path)

        if not await self.can_deploy(target_path):
            return DeploymentResult.fatal('target_path', 'Target path is not valid or writable')

        data, error = self.resolve_platform_data(context)
        if error:
            return DeploymentResult.fatal('context', error)

        target = Path(target_path)
        result = DeploymentResult(success=False, rollback_available=True)

        if options.backup and not options.dry_run:
            try:
                backup = await self.create_backup(target_path)
                result.backup_id = backup.id
            except OSError as e:
                return DeploymentResult.fatal('backup', f'Failed to create backup: {e}')

        for name, deploy_section in self.deployment_sections():
            try:
                await deploy_section(data, target, options, result)
            except Exception as e:
                logger.error("Failed to deploy %s: %s", name, e)
                result.errors.append(DeploymentError(
                    item=name,
                    error=f'Failed to deploy {name}: {e}',
                    recoverable=True,
                ))

        result.success = not result.errors
        logger.info("Deployment of %s finished: %d items, %d errors, %d warnings",
                    self.platform.value, len(result.deployed_items),
                    len(result.errors), len(result.warnings))
        return result

    async def write_file(self, path: Path, content: Any, options: DeployOptions,
                         result: DeploymentResult, item_type: str = 'file',
                         allow_update: bool = False):
        """
        Write one file under the conflict policy.

        - dry run: report the write, touch nothing
        - missing file: always written
        - preserve_existing: existing files are never touched
        - overwrite (or allow_update): existing files are replaced
        - otherwise: existing files are skipped with a warning
        """
        exists = await self.fs.exists(path)

        if options.dry_run:
            status = 'updated' if exists else 'created'
            result.deployed_items.append(DeployedItem(type=item_type, path=str(path), status=status))
            return

        if exists and (options.preserve_existing or not (options.overwrite or allow_update)):
            result.deployed_items.append(DeployedItem(type=item_type, path=str(path), status='skipped'))
            result.warnings.append(f'Skipped existing file: {path}')
            return

        text = content if isinstance(content, str) else json.dumps(content, indent=2) + '\n'
        await self.fs.write_file(path, text)
        result.deployed_items.append(DeployedItem(
            type=item_type,
            path=str(path),
            status='updated' if exists else 'created',
        ))

    async def validate_compatibility(self, context: UniversalContext,
                                     target_path: str) -> CompatibilityReport:
        issues: List[str] = []

        _, error = self.resolve_platform_data(context)
        if error:
            issues.append(error)

        if not await self.can_deploy(target_path):
            issues.append('Target path is not valid or writable')

        has_customizations = False
        root = Path(target_path) / self.native_root
        if await self.fs.is_directory(root):
            has_customizations = await self._has_customizations(root)
            if has_customizations:
                issues.append(
                    f'Existing {self.platform.value} configuration has customizations '
                    'that may be overwritten')

        return CompatibilityReport(
            compatible=not issues,
            issues=issues,
            has_customizations=has_customizations,
        )

    async def _has_customizations(self, root: Path) -> bool:
        try:
            for name in await self.fs.list_directory(root):
                if not self.is_standard_entry(name, await self.fs.is_directory(root / name)):
                    return True
        except OSError as e:
            logger.warning("Failed to analyze existing structure: %s", e)
        return False

    async def undeploy(self, target_path: str) -> bool:
        """Remove the native root recursively. True if anything was removed."""
        root = Path(target_path) / self.native_root
        removed = await self.fs.remove(root)
        if removed:
            logger.info("Removed %s configuration at %s", self.platform.value, root)
        return removed

    @abstractmethod
    async def validate_deployment(self, context: UniversalContext,
                                  target_path: str) -> ValidationResult:
        """Check that what the context describes is now on disk."""
        pass

    # Backups

    def _managed_paths(self) -> Tuple[str, ...]:
        return (self.native_root,) + tuple(self.managed_documents)

    def _backup_dir(self, base: Path, stamp: str) -> Path:
        return base / f'{self.native_root}.backup.{stamp}'

    def _backup_id(self, stamp: str) -> str:
        return f'{self.platform.value}-backup-{stamp}'

    async def create_backup(self, target_path: Optional[str] = None) -> BackupInfo:
        """Snapshot every managed path that currently exists."""
        base = Path(target_path) if target_path else Path.cwd()
        stamp = int(time.time() * 1000)
        while await self.fs.exists(self._backup_dir(base, str(stamp))):
            stamp += 1
        backup_dir = self._backup_dir(base, str(stamp))
        await self.fs.ensure_dir(backup_dir)

        for relative in self._managed_paths():
            source = base / relative
            if await self.fs.exists(source):
                await self.fs.copy(source, backup_dir / relative)

        items = []
        for file_path in await self.fs.get_all_files(backup_dir):
            try:
                content = await self.fs.read_file(file_path)
            except (OSError, UnicodeDecodeError) as e:
                logger.warning("Backup of %s holds no readable content: %s", file_path, e)
                content = ''
            items.append(BackupItem(
                path=os.path.relpath(file_path, backup_dir.resolve()),
                content=content,
            ))

        backup_id = self._backup_id(str(stamp))
        self.last_backup_id = backup_id
        logger.info("Created backup %s at %s", backup_id, backup_dir)
        return BackupInfo(
            id=backup_id,
            platform=self.platform,
            created_at=utc_now(),
            path=str(backup_dir),
            items=items,
        )

    async def _latest_backup_dir(self, base: Path) -> Optional[Path]:
        prefix = f'{self.native_root}.backup.'
        stamps = []
        if await self.fs.is_directory(base):
            for name in await self.fs.list_directory(base):
                if name.startswith(prefix) and name[len(prefix):].isdigit():
                    stamps.append(int(name[len(prefix):]))
        if not stamps:
            return None
        return self._backup_dir(base, str(max(stamps)))

    async def restore_backup(self, backup_id: Optional[str] = None,
                             target_path: Optional[str] = None):
        """
        Put a snapshot back in place of the managed paths.

        Without a backup_id the most recent snapshot is restored.

        Raises:
            BackupNotFound: the snapshot directory does not exist
        """
        base = Path(target_path) if target_path else Path.cwd()
        if backup_id is None:
            backup_dir = await self._latest_backup_dir(base)
            if backup_dir is None:
                raise BackupNotFound(None, str(base))
        else:
            backup_dir = self._backup_dir(base, backup_id.rsplit('-', 1)[-1])

        if not await self.fs.is_directory(backup_dir):
            raise BackupNotFound(backup_id, str(backup_dir))

        # Stage the whole snapshot first; the target is untouched if a copy fails
        staging = base / f'{self.native_root}.restore.{backup_dir.name.rsplit(".", 1)[-1]}'
        await self.fs.remove(staging)
        try:
            await self.fs.ensure_dir(staging)
            for relative in self._managed_paths():
                if await self.fs.exists(backup_dir / relative):
                    await self.fs.copy(backup_dir / relative, staging / relative)
        except OSError:
            await self.fs.remove(staging)
            raise

        for relative in self._managed_paths():
            await self.fs.remove(base / relative)
            if await self.fs.exists(staging / relative):
                await self.fs.move(staging / relative, base / relative)
        await self.fs.remove(staging)
        logger.info("Restored backup from %s", backup_dir)
