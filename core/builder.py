"""
Context build orchestration.

ContextBuilder picks a strategy (explicitly or by auto-detection), builds a
context and applies build options:
- exclude_sensitive: redact secret-looking keys inside ide/tools data
- include_only: keep only the named sections (plus version/metadata)
- exclude: drop the named sections

Failures come back as BuildResult/MultiBuildResult data. build_multiple
builds every platform concurrently and isolates their failures.
"""

import asyncio
import logging
from typing import List, Optional

from core.canonical_models import (
    BuildOptions,
    BuildResult,
    MultiBuildResult,
    Platform,
    UniversalContext,
)
from core.errors import ContextSyncError
from core.registry import StrategyRegistry
from core.tree import redact_sensitive

logger = logging.getLogger(__name__)

REDACTED_SECTIONS = ('ide', 'tools')


class PlatformDetector:
    """Auto-detection driven by each registered strategy's detect()."""

    def __init__(self, registry: StrategyRegistry):
        self.registry = registry

    async def detect_all(self, path: Optional[str] = None) -> List[Platform]:
        strategies = self.registry.get_all_strategies()
        results = await asyncio.gather(*(s.detect(path) for s in strategies.values()))
        return [platform for platform, found in zip(strategies.keys(), results) if found]

    async def detect_primary(self, path: Optional[str] = None) -> Optional[Platform]:
        """First detected platform in registration order, or None."""
        detected = await self.detect_all(path)
        if len(detected) > 1:
            logger.warning("Multiple platforms detected: %s",
                           ', '.join(p.value for p in detected))
        return detected[0] if detected else None


class ContextBuilder:

    def __init__(self, registry: StrategyRegistry, detector: Optional[PlatformDetector] = None):
        self.registry = registry
        self.detector = detector or PlatformDetector(registry)

    async def build(self, path: Optional[str] = None, platform: Optional[Platform] = None,
                    options: Optional[BuildOptions] = None) -> BuildResult:
        """Build one context. Never raises for build failures."""
        try:
            target = platform or await self.detector.detect_primary(path)
            if target is None:
                return BuildResult(
                    success=False,
                    error='Could not detect IDE platform. Please specify the platform explicitly.',
                )

            strategy = self.registry.get_strategy(target)
            context, validation = await strategy.build_with_report(path)
            return BuildResult(
                success=True,
                context=self.apply_build_options(context, options),
                platform=target,
                warnings=[str(w) for w in validation.warnings],
            )
        except (ContextSyncError, OSError, ValueError) as e:
            logger.error("Failed to build context: %s", e)
            return BuildResult(success=False, platform=platform, error=str(e))
        except Exception as e:
            logger.exception("Unexpected error while building context")
            return BuildResult(success=False, platform=platform,
                               error=f'Unexpected error while building context: {e}')

    async def build_multiple(self, path: Optional[str] = None,
                             platforms: Optional[List[Platform]] = None,
                             options: Optional[BuildOptions] = None) -> MultiBuildResult:
        targets = platforms if platforms is not None else await self.detector.detect_all(path)
        logger.info("Building contexts for: %s", ', '.join(p.value for p in targets))

        results = await asyncio.gather(
            *(self.build(path, platform, options) for platform in targets),
            return_exceptions=True,
        )

        aggregate = MultiBuildResult()
        for platform, result in zip(targets, results):
            if isinstance(result, BaseException):
                aggregate.errors[platform] = str(result)
                continue
            if result.success and result.context is not None:
                aggregate.contexts.append(result.context)
                aggregate.platforms.append(platform)
            elif result.error:
                aggregate.errors[platform] = result.error
            if result.warnings:
                aggregate.warnings[platform] = result.warnings
        return aggregate

    def available_platforms(self) -> List[Platform]:
        return list(self.registry.get_all_strategies().keys())

    def is_platform_supported(self, platform: Platform) -> bool:
        return self.registry.has_strategy(platform)

    def apply_build_options(self, context: UniversalContext,
                            options: Optional[BuildOptions]) -> UniversalContext:
        if options is None:
            return context

        processed = context.copy()
        if options.exclude_sensitive:
            for name in REDACTED_SECTIONS:
                section = processed.get_section(name)
                if section is not None:
                    section.data = redact_sensitive(section.data)

        if options.include_only:
            keep = set(options.include_only)
            for name in processed.present_sections():
                if name not in keep:
                    processed.remove_section(name)

        for name in options.exclude:
            processed.remove_section(name)

        return processed

