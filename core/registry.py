"""
Strategy registry: one context strategy per platform.

The registry is built once (see adapters.setup_registry) and passed to the
components that need it. Lookups for unregistered platforms raise
NoStrategyAvailable rather than returning None.
"""

import logging
from typing import Callable, Dict, Mapping, Optional

from core.canonical_models import Platform
from core.errors import NoStrategyAvailable
from core.strategy_interface import ContextStrategy

logger = logging.getLogger(__name__)

StrategyProvider = Callable[[], Optional[ContextStrategy]]


class StrategyRegistry:
    """Maps platform identifiers to strategy instances."""

    def __init__(self):
        self._strategies: Dict[Platform, ContextStrategy] = {}

    @classmethod
    def from_providers(cls, providers: Mapping[Platform, Optional[StrategyProvider]]) -> 'StrategyRegistry':
        """
        Build a registry from per-platform factories.

        A platform whose provider is missing, returns None, or fails is left
        out; construction itself never fails.
        """
        registry = cls()
        for platform, provider in providers.items():
            if provider is None:
                logger.debug("No strategy provider for %s", platform.value)
                continue
            try:
                strategy = provider()
            except Exception as e:
                logger.debug("Strategy for %s unavailable: %s", platform.value, e)
                continue
            if strategy is not None:
                registry.register_strategy(platform, strategy)
        return registry

    def get_strategy(self, platform: Platform) -> ContextStrategy:
        """
        Raises:
            NoStrategyAvailable: platform is not registered
        """
        strategy = self._strategies.get(platform)
        if strategy is None:
            raise NoStrategyAvailable(platform)
        return strategy

    def get_all_strategies(self) -> Dict[Platform, ContextStrategy]:
        return dict(self._strategies)

    def has_strategy(self, platform: Platform) -> bool:
        return platform in self._strategies

    def register_strategy(self, platform: Platform, strategy: ContextStrategy):
        """Register or replace the strategy for a platform."""
        self._strategies[platform] = strategy

    def unregister_strategy(self, platform: Platform):
        self._strategies.pop(platform, None)

    def list_platforms(self):
        return list(self._strategies.keys())
