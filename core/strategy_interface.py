"""
Abstract base for platform context strategies.

A strategy knows how to:
- Detect a platform's native configuration on disk
- Extract the raw native artifacts
- Validate the extracted data structurally
- Normalize raw data into a UniversalContext
- Convert a UniversalContext back into raw native data

build() composes extract -> validate -> normalize and is shared by every
strategy. Callers (registry, builder, converter) depend only on this
interface.
"""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from core.canonical_models import (
    ContextMetadata,
    ConversionResult,
    Platform,
    UniversalContext,
    ValidationIssue,
    ValidationResult,
)
from core.config import SyncConfig
from core.errors import ValidationFailed
from core.filesystem import FileSystemAccessor

logger = logging.getLogger(__name__)

RawData = Dict[str, Any]

SECRET_MARKERS = ('api_key', 'apiKey', 'token')


class ContextStrategy(ABC):

    def __init__(self, file_system: Optional[FileSystemAccessor] = None,
                 config: Optional[SyncConfig] = None):
        self.fs = file_system or FileSystemAccessor()
        self.config = config or SyncConfig()

    @property
    @abstractmethod
    def platform(self) -> Platform:
        pass

    @property
    @abstractmethod
    def display_name(self) -> str:
        """Human-readable platform name, used in context metadata."""
        pass

    @abstractmethod
    async def detect(self, path: Optional[str] = None) -> bool:
        """True iff native configuration for this platform exists for path. Never raises."""
        pass

    @abstractmethod
    async def extract(self, path: Optional[str] = None) -> RawData:
        """
        Read every native artifact.

        Raises:
            NotAPlatformProject: detect(path) is False
        """
        pass

    @abstractmethod
    async def normalize(self, data: RawData) -> UniversalContext:
        pass

    @abstractmethod
    async def validate(self, data: RawData) -> ValidationResult:
        pass

    @abstractmethod
    async def convert(self, context: UniversalContext) -> ConversionResult:
        """Rebuild raw native data from a context. Failure is reported, not raised."""
        pass

    async def build(self, path: Optional[str] = None) -> UniversalContext:
        """
        Extract, validate and normalize in one call.

        Raises:
            NotAPlatformProject: no native configuration at path
            ValidationFailed: extracted data has structural errors
        """
        context, _ = await self.build_with_report(path)
        return context

    async def build_with_report(self, path: Optional[str] = None) -> Tuple[UniversalContext, ValidationResult]:
        """build() that also hands back the validation report (for its warnings)."""
        data = await self.extract(path)
        validation = await self.validate(data)
        if not validation.valid:
            raise ValidationFailed(self.platform, validation.errors)
        return await self.normalize(data), validation

    # Shared helpers

    def resolve_base(self, path: Optional[str]) -> Path:
        return Path(path) if path else Path.cwd()

    def new_context(self) -> UniversalContext:
        return UniversalContext(
            metadata=ContextMetadata(
                name=f"{self.display_name} Context",
                platforms=[self.platform],
            ),
            version=self.config.schema_version,
        )

    async def read_json_if_exists(self, path: Path) -> Optional[Any]:
        """Read a JSON file; missing or unreadable files count as absent."""
        try:
            if await self.fs.exists(path):
                return await self.fs.read_json(path)
        except (OSError, ValueError) as e:
            logger.warning("Failed to read %s: %s", path, e)
        return None

    async def read_text_if_exists(self, path: Path) -> Optional[str]:
        try:
            if await self.fs.exists(path):
                return await self.fs.read_file(path)
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Failed to read %s: %s", path, e)
        return None

    def validate_mcp_servers(self, servers: List[Dict[str, Any]],
                             errors: List[ValidationIssue]):
        """Each descriptor needs a name and a command or url."""
        for index, server in enumerate(servers or []):
            name = server.get('name') if isinstance(server, dict) else None
            if not name:
                errors.append(ValidationIssue(
                    path=f'mcp[{index}]',
                    message='MCP server missing required name field',
                    code='MCP_MISSING_NAME',
                ))
            if not isinstance(server, dict) or not (server.get('command') or server.get('url')):
                errors.append(ValidationIssue(
                    path=f'mcp.{name or index}',
                    message=f"MCP server '{name or index}' must have either command or url",
                    code='MCP_MISSING_ENDPOINT',
                ))

    def check_sensitive_settings(self, settings: Optional[Dict[str, Any]],
                                 warnings: List[ValidationIssue]):
        """Warn when serialized settings contain a secret-looking marker."""
        if not settings:
            return
        serialized = json.dumps(settings)
        if any(marker in serialized for marker in SECRET_MARKERS):
            warnings.append(ValidationIssue(
                path='settings',
                message='Settings may contain sensitive data',
                suggestion='Remove API keys and tokens before sharing',
            ))
