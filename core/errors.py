"""Exceptions raised by the context pipeline.

Only usage errors and structural preconditions are raised. Recoverable
failures travel as data in result objects.
"""

from typing import List, Optional

from core.canonical_models import Platform, ValidationIssue


class ContextSyncError(Exception):
    """Base exception for context sync operations."""
    pass


class NotAPlatformProject(ContextSyncError):
    """extract() was called on a path where detect() is False."""

    def __init__(self, platform: Platform, path: str):
        self.platform = platform
        self.path = path
        super().__init__(f"Not a {platform.value} project: {path}")


class ValidationFailed(ContextSyncError):
    """Extracted data has structural defects."""

    def __init__(self, platform: Platform, errors: List[ValidationIssue]):
        self.platform = platform
        self.errors = errors
        details = '; '.join(str(e) for e in errors)
        super().__init__(f"{platform.value} data validation failed: {details}")


class NoStrategyAvailable(ContextSyncError):
    def __init__(self, platform: Platform):
        self.platform = platform
        super().__init__(f"No builder strategy available for platform: {platform.value}")


class BackupNotFound(ContextSyncError):
    def __init__(self, backup_id: Optional[str], path: Optional[str] = None):
        self.backup_id = backup_id
        self.path = path
        where = f" at {path}" if path else ""
        super().__init__(f"Backup {backup_id or '(latest)'} not found{where}")
