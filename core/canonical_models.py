"""
Canonical data models for platform-neutral development contexts.

A UniversalContext is the hub every platform strategy converts to and from:
- version and metadata are always present
- personal, ide, project, prompts and tools are optional sections
- a missing section means "not provided", never "provided but empty"

Section payloads stay loosely typed (plain dicts of JSON-like values) so the
same model can carry any platform's data. Keys are stable per category:
- ide.data.<platform key>: platform-specific configuration
- project.data.claude_instructions / project.data.kiro_specs
- prompts.data.custom_instructions
- tools.data.mcp_servers
"""

import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union


SCHEMA_VERSION = "1.0.0"

SECTION_NAMES = ('personal', 'ide', 'project', 'prompts', 'tools')


class Platform(Enum):
    """Supported AI development environments."""
    KIRO = "kiro"
    CLAUDE_CODE = "claude-code"
    CURSOR = "cursor"

    @property
    def ide_key(self) -> str:
        """Key under ide.data holding this platform's configuration."""
        return self.value.replace('-', '_')


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class ContextSection:
    """One named section of a context: {category, spec_version, data}."""
    category: str
    data: Dict[str, Any] = field(default_factory=dict)
    spec_version: str = SCHEMA_VERSION

    def to_dict(self) -> Dict[str, Any]:
        return {
            'category': self.category,
            'spec_version': self.spec_version,
            'data': copy.deepcopy(self.data),
        }

    @classmethod
    def from_dict(cls, category: str, raw: Dict[str, Any]) -> 'ContextSection':
        return cls(
            category=raw.get('category', category),
            data=copy.deepcopy(raw.get('data') or {}),
            spec_version=raw.get('spec_version', SCHEMA_VERSION),
        )


@dataclass
class ContextMetadata:
    """Descriptive metadata of a context."""
    name: str
    created_at: str = field(default_factory=utc_now)
    updated_at: str = field(default_factory=utc_now)
    tags: List[str] = field(default_factory=list)
    platforms: List[Platform] = field(default_factory=list)
    description: Optional[str] = None
    conversion: Optional[Dict[str, str]] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            'name': self.name,
            'created_at': self.created_at,
            'updated_at': self.updated_at,
            'tags': list(self.tags),
            'platforms': [p.value for p in self.platforms],
        }
        if self.description:
            data['description'] = self.description
        if self.conversion:
            data['conversion'] = dict(self.conversion)
        return data

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> 'ContextMetadata':
        return cls(
            name=raw.get('name', ''),
            created_at=raw.get('created_at') or utc_now(),
            updated_at=raw.get('updated_at') or utc_now(),
            tags=list(raw.get('tags') or []),
            platforms=[Platform(p) for p in raw.get('platforms') or []],
            description=raw.get('description'),
            conversion=raw.get('conversion'),
        )


@dataclass
class UniversalContext:
    """
    Platform-neutral, versioned representation of an environment's configuration.

    Sections are attributes that stay None unless the source produced data
    for them.
    """
    metadata: ContextMetadata
    version: str = SCHEMA_VERSION
    personal: Optional[ContextSection] = None
    ide: Optional[ContextSection] = None
    project: Optional[ContextSection] = None
    prompts: Optional[ContextSection] = None
    tools: Optional[ContextSection] = None

    def get_section(self, name: str) -> Optional[ContextSection]:
        if name not in SECTION_NAMES:
            raise ValueError(f"Unknown context section: {name}")
        return getattr(self, name)

    def set_section(self, name: str, data: Dict[str, Any]):
        """Attach a section, or clear it when data is empty."""
        if name not in SECTION_NAMES:
            raise ValueError(f"Unknown context section: {name}")
        setattr(self, name, ContextSection(category=name, data=data) if data else None)

    def remove_section(self, name: str):
        if name in SECTION_NAMES:
            setattr(self, name, None)

    def present_sections(self) -> List[str]:
        return [name for name in SECTION_NAMES if getattr(self, name) is not None]

    def section_data(self, name: str) -> Dict[str, Any]:
        """Data dict of a section, or an empty dict when the section is absent."""
        section = self.get_section(name)
        return section.data if section else {}

    def platform_config(self, platform: Platform) -> Optional[Dict[str, Any]]:
        """Platform-specific configuration stored under ide.data, if any."""
        if self.ide is None:
            return None
        return self.ide.data.get(platform.ide_key)

    def copy(self) -> 'UniversalContext':
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            'version': self.version,
            'metadata': self.metadata.to_dict(),
        }
        for name in self.present_sections():
            data[name] = getattr(self, name).to_dict()
        return data

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> 'UniversalContext':
        if 'version' not in raw or 'metadata' not in raw:
            raise ValueError("Context requires 'version' and 'metadata'")
        context = cls(
            metadata=ContextMetadata.from_dict(raw['metadata']),
            version=raw['version'],
        )
        for name in SECTION_NAMES:
            if raw.get(name):
                setattr(context, name, ContextSection.from_dict(name, raw[name]))
        return context


@dataclass
class McpServerDescriptor:
    """
    Tool-server registration. Identity is the name.

    A descriptor needs a command or a url to be usable; validation reports
    descriptors with neither.
    """
    name: str
    command: Optional[str] = None
    url: Optional[str] = None
    args: List[str] = field(default_factory=list)
    env: Dict[str, str] = field(default_factory=dict)
    config: Dict[str, Any] = field(default_factory=dict)
    enabled: bool = True
    version: str = "1.0.0"

    @classmethod
    def from_config(cls, name: str, config: Dict[str, Any]) -> 'McpServerDescriptor':
        """Build from a registry entry ({"command": ..., "args": [...], ...})."""
        return cls(
            name=name,
            command=config.get('command'),
            url=config.get('url'),
            args=list(config.get('args') or []),
            env=dict(config.get('env') or {}),
            config=dict(config.get('config') or {}),
            enabled=config.get('enabled') is not False,
            version=config.get('version') or "1.0.0",
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {'name': self.name, 'version': self.version}
        if self.command:
            data['command'] = self.command
            data['args'] = list(self.args)
        if self.url:
            data['url'] = self.url
        if self.env:
            data['env'] = dict(self.env)
        data['config'] = dict(self.config)
        data['enabled'] = self.enabled
        return data


@dataclass
class ValidationIssue:
    path: str
    message: str
    suggestion: Optional[str] = None
    code: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.path}: {self.message}"


@dataclass
class ValidationResult:
    valid: bool
    errors: List[ValidationIssue] = field(default_factory=list)
    warnings: List[ValidationIssue] = field(default_factory=list)

    @classmethod
    def from_issues(cls, errors: List[ValidationIssue],
                    warnings: List[ValidationIssue]) -> 'ValidationResult':
        return cls(valid=not errors, errors=errors, warnings=warnings)


@dataclass
class ConversionResult:
    success: bool
    data: Optional[Dict[str, Any]] = None
    context: Optional[UniversalContext] = None
    error: Optional[str] = None
    warnings: List[str] = field(default_factory=list)
    unsupported_features: List[str] = field(default_factory=list)


@dataclass
class BuildOptions:
    exclude_sensitive: bool = False
    include_only: List[str] = field(default_factory=list)
    exclude: List[str] = field(default_factory=list)


@dataclass
class BuildResult:
    success: bool
    context: Optional[UniversalContext] = None
    platform: Optional[Platform] = None
    error: Optional[str] = None
    warnings: List[str] = field(default_factory=list)


@dataclass
class MultiBuildResult:
    contexts: List[UniversalContext] = field(default_factory=list)
    platforms: List[Platform] = field(default_factory=list)
    errors: Dict[Platform, str] = field(default_factory=dict)
    warnings: Dict[Platform, List[str]] = field(default_factory=dict)


@dataclass
class DeployOptions:
    """
    Write-conflict policy for a deployment.

    Default (all False): existing files are skipped with a warning.
    """
    overwrite: bool = False
    preserve_existing: bool = False
    dry_run: bool = False
    backup: bool = False
    merge_settings: bool = False


@dataclass
class DeployedItem:
    type: str  # file | setting | command | hook
    path: str
    status: str  # created | updated | skipped


@dataclass
class DeploymentError:
    item: str
    error: str
    recoverable: bool


@dataclass
class DeploymentResult:
    success: bool
    deployed_items: List[DeployedItem] = field(default_factory=list)
    errors: List[DeploymentError] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    rollback_available: bool = False
    backup_id: Optional[str] = None

    @classmethod
    def fatal(cls, item: str, error: str) -> 'DeploymentResult':
        return cls(
            success=False,
            errors=[DeploymentError(item=item, error=error, recoverable=False)],
        )

    def items_with_status(self, status: str) -> List[DeployedItem]:
        return [item for item in self.deployed_items if item.status == status]


@dataclass
class CompatibilityReport:
    """Advisory pre-flight result; issues never block a deployment."""
    compatible: bool
    issues: List[str] = field(default_factory=list)
    has_customizations: bool = False


@dataclass
class BackupItem:
    path: str
    content: str
    type: str = 'file'


@dataclass
class BackupInfo:
    id: str
    platform: Platform
    created_at: str
    path: str
    items: List[BackupItem] = field(default_factory=list)

    @property
    def size(self) -> int:
        return sum(len(item.content) for item in self.items)


Transform = Callable[[Any], Union[Any, Awaitable[Any]]]


@dataclass
class FeatureEndpoint:
    """One side of a feature mapping. feature is a dotted path into raw data."""
    platform: Platform
    feature: str
    path: Optional[str] = None
    transform: Optional[Transform] = None


@dataclass
class FeatureMapping:
    source: FeatureEndpoint
    target: FeatureEndpoint
    bidirectional: bool = False
    priority: Optional[int] = None
    description: Optional[str] = None

    @property
    def sort_priority(self) -> int:
        return self.priority if self.priority is not None else 999


@dataclass
class MappingResult:
    success: bool
    mapped_features: Dict[str, Any] = field(default_factory=dict)
    unmapped_features: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
