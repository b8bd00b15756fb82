"""
End-to-end conversion of a context from one platform to another.

Steps:
1. The source platform (first entry of metadata.platforms) rebuilds its raw
   native data with its strategy's convert()
2. The feature mapping engine translates that data for the target platform.
   Besides the source -> target table entries, bidirectional entries
   registered for target -> source are run in reverse
3. The target strategy normalizes the mapped data into a new context

Failures are reported in the ConversionResult; nothing is raised.
"""

import logging
from typing import List, Optional

from core.canonical_models import (
    ConversionResult,
    FeatureMapping,
    Platform,
    UniversalContext,
    utc_now,
)
from core.feature_mapping import FeatureMappingEngine
from core.registry import StrategyRegistry

logger = logging.getLogger(__name__)


class ContextConverter:

    def __init__(self, registry: StrategyRegistry,
                 engine: Optional[FeatureMappingEngine] = None):
        self.registry = registry
        self.engine = engine or FeatureMappingEngine()

    def mappings_for(self, source: Platform, target: Platform) -> List[FeatureMapping]:
        mappings = self.engine.get_mappings(source, target)
        covered = {m.source.feature for m in mappings}
        for mapping in self.engine.get_mappings(target, source):
            reverse = self.engine.get_reverse_mapping(mapping)
            if reverse is not None and reverse.source.feature not in covered:
                mappings.append(reverse)
                covered.add(reverse.source.feature)
        return mappings

    async def convert(self, context: UniversalContext, target: Platform) -> ConversionResult:
        if not context.metadata.platforms:
            return ConversionResult(success=False, error='Context does not name a source platform')

        source = context.metadata.platforms[0]
        if source == target:
            return ConversionResult(success=True, context=context)

        for platform in (source, target):
            if not self.registry.has_strategy(platform):
                return ConversionResult(
                    success=False,
                    error=f'No builder strategy available for platform: {platform.value}',
                )

        source_result = await self.registry.get_strategy(source).convert(context)
        if not source_result.success:
            return ConversionResult(success=False, error=source_result.error,
                                    warnings=list(source_result.warnings))

        mappings = self.mappings_for(source, target)
        if not mappings:
            return ConversionResult(
                success=False,
                error=f'No mappings defined for {source.value} to {target.value}',
            )

        source_data = source_result.data or {}
        mapping_result = await self.engine.apply_mappings(source_data, mappings)

        mapped_sources = {m.source.feature for m in mappings}
        unsupported = [feature for feature in source_data if feature not in mapped_sources]
        warnings = list(mapping_result.warnings)
        warnings += [f'{feature} has no {target.value} equivalent' for feature in unsupported]

        converted = await self.registry.get_strategy(target).normalize(mapping_result.mapped_features)
        converted.metadata.name = context.metadata.name
        converted.metadata.description = context.metadata.description
        converted.metadata.tags = list(context.metadata.tags)
        converted.metadata.conversion = {
            'source': source.value,
            'target': target.value,
            'timestamp': utc_now(),
        }

        logger.info("Converted %s context to %s (%d features, %d unsupported)",
                    source.value, target.value, len(mapping_result.mapped_features), len(unsupported))
        return ConversionResult(
            success=True,
            data=mapping_result.mapped_features,
            context=converted,
            warnings=warnings,
            unsupported_features=unsupported,
        )
