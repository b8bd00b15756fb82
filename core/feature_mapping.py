"""
Cross-platform feature mapping.

The engine holds a static table of field-level mappings keyed by
"<source>-to-<target>". Each mapping names a dotted feature path in the
source platform's raw extracted data and the feature it becomes on the
target platform, with an optional transform.

Mappings run in ascending priority (999 when unset). A failing transform
only produces a warning; the remaining mappings still run.
"""

import inspect
import logging
from typing import Any, Dict, List, Optional

from core import transforms
from core.canonical_models import FeatureEndpoint, FeatureMapping, MappingResult, Platform
from core.tree import get_path

logger = logging.getLogger(__name__)

REQUIRED_FEATURES = ('settings', 'mcp_servers')


def mapping_key(source: Platform, target: Platform) -> str:
    return f"{source.value}-to-{target.value}"


def _mapping(source: Platform, source_feature: str, source_path: str,
             target: Platform, target_feature: str, target_path: str,
             transform=None, priority: Optional[int] = None,
             bidirectional: bool = False, description: Optional[str] = None) -> FeatureMapping:
    return FeatureMapping(
        source=FeatureEndpoint(platform=source, feature=source_feature, path=source_path),
        target=FeatureEndpoint(platform=target, feature=target_feature, path=target_path,
                               transform=transform),
        bidirectional=bidirectional,
        priority=priority,
        description=description,
    )


def default_mappings() -> Dict[str, List[FeatureMapping]]:
    kiro, claude, cursor = Platform.KIRO, Platform.CLAUDE_CODE, Platform.CURSOR
    return {
        mapping_key(kiro, claude): [
            _mapping(kiro, 'specs', '.kiro/specs', claude, 'instructions', 'CLAUDE.md',
                     transforms.specs_to_instructions, priority=1,
                     description='Convert Kiro specs to Claude instructions'),
            _mapping(kiro, 'steering', '.kiro/steering', claude, 'custom_instructions', 'CLAUDE.local.md',
                     transforms.steering_to_custom_instructions, priority=2,
                     description='Convert Kiro steering rules to Claude custom instructions'),
            _mapping(kiro, 'hooks', '.kiro/hooks', claude, 'commands', '.claude/commands.json',
                     transforms.hooks_to_commands, priority=3,
                     description='Convert Kiro hooks to Claude custom commands'),
            _mapping(kiro, 'mcp_servers', '.kiro/settings/mcp.json', claude, 'mcp_servers', '.claude/mcp.json',
                     transforms.pass_through_mcp_servers, priority=4, bidirectional=True,
                     description='Map MCP server configurations'),
            _mapping(kiro, 'settings', '.kiro/settings/project.json', claude, 'settings', '.claude/settings.json',
                     transforms.kiro_settings_to_claude, priority=5,
                     description='Convert Kiro settings to Claude settings'),
        ],
        mapping_key(claude, kiro): [
            _mapping(claude, 'instructions', 'CLAUDE.md', kiro, 'specs', '.kiro/specs',
                     transforms.instructions_to_specs, priority=1,
                     description='Convert Claude instructions to Kiro specs'),
            _mapping(claude, 'custom_instructions', 'CLAUDE.local.md', kiro, 'steering', '.kiro/steering',
                     transforms.custom_instructions_to_steering, priority=2,
                     description='Convert Claude custom instructions to Kiro steering'),
            _mapping(claude, 'commands', '.claude/commands.json', kiro, 'hooks', '.kiro/hooks',
                     transforms.commands_to_hooks, priority=3,
                     description='Convert Claude commands to Kiro hooks'),
            _mapping(claude, 'settings', '.claude/settings.json', kiro, 'settings', '.kiro/settings/project.json',
                     transforms.claude_settings_to_kiro, priority=5,
                     description='Convert Claude settings to Kiro settings'),
        ],
        mapping_key(kiro, cursor): [
            _mapping(kiro, 'steering', '.kiro/steering', cursor, 'rules', '.cursorrules',
                     transforms.steering_to_cursor_rules, priority=1,
                     description='Convert Kiro steering to Cursor rules'),
        ],
        mapping_key(cursor, kiro): [
            _mapping(cursor, 'rules', '.cursorrules', kiro, 'steering', '.kiro/steering',
                     transforms.cursor_rules_to_steering, priority=1,
                     description='Convert Cursor rules to Kiro steering'),
        ],
    }


class FeatureMappingEngine:
    """Executes the per-platform-pair mapping table over raw extracted data."""

    def __init__(self, mappings: Optional[Dict[str, List[FeatureMapping]]] = None):
        self._mappings: Dict[str, List[FeatureMapping]] = {}
        for key, entries in (mappings if mappings is not None else default_mappings()).items():
            self._mappings[key] = list(entries)

    def get_mappings(self, source: Platform, target: Platform) -> List[FeatureMapping]:
        return list(self._mappings.get(mapping_key(source, target), []))

    def list_mapping_keys(self) -> List[str]:
        return list(self._mappings.keys())

    async def map_features(self, source_data: Dict[str, Any], source: Platform,
                           target: Platform) -> MappingResult:
        """Run every mapping registered for source -> target over source_data."""
        return await self.apply_mappings(source_data, self.get_mappings(source, target))

    async def apply_mappings(self, source_data: Dict[str, Any],
                             mappings: List[FeatureMapping]) -> MappingResult:
        mapped: Dict[str, Any] = {}
        unmapped: List[str] = []
        warnings: List[str] = []

        for mapping in sorted(mappings, key=lambda m: m.sort_priority):
            feature = mapping.source.feature
            try:
                value = get_path(source_data, feature)
                if value is None:
                    unmapped.append(feature)
                    continue

                transform = mapping.target.transform
                result = transform(value) if transform else value
                if inspect.isawaitable(result):
                    result = await result

                if result is not None:
                    mapped[mapping.target.feature] = result
                    logger.debug("Mapped %s to %s", feature, mapping.target.feature)
            except Exception as e:
                warnings.append(f"Failed to map {feature}: {e}")
                logger.warning("Mapping error for %s: %s", feature, e)

        return MappingResult(
            success=len(mapped) > 0,
            mapped_features=mapped,
            unmapped_features=unmapped,
            warnings=warnings,
        )

    def get_reverse_mapping(self, mapping: FeatureMapping) -> Optional[FeatureMapping]:
        """Opposite-direction mapping for a bidirectional entry, else None."""
        if not mapping.bidirectional:
            return None
        return FeatureMapping(
            source=mapping.target,
            target=mapping.source,
            bidirectional=True,
            priority=mapping.priority,
            description=f"Reverse: {mapping.description}",
        )

    def validate_mapping(self, source: Platform, target: Platform) -> Dict[str, Any]:
        """
        No registered mapping for the pair is an error. Missing mappings for
        the required features are only logged.
        """
        mappings = self.get_mappings(source, target)
        errors: List[str] = []
        if not mappings:
            errors.append(f"No mappings defined for {source.value} to {target.value}")

        mapped_sources = {m.source.feature for m in mappings}
        for feature in REQUIRED_FEATURES:
            if feature not in mapped_sources:
                logger.warning("No mapping for required feature: %s", feature)

        return {'valid': not errors, 'errors': errors}
