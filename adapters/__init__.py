"""
Platform adapters for building and deploying universal contexts.

Each supported AI development environment has:
- a ContextStrategy: detect, extract, validate, normalize and convert its
  native configuration
- a ContextDeployer: write a context back into its native layout

Available platforms:
- Kiro: .kiro/ specs, steering rules, hooks and settings
- Claude Code: CLAUDE.md, CLAUDE.local.md and .claude/
- Cursor: feature mappings only, no strategy or deployer

Adding a new platform:
1. Create adapters/<platform>/ with a strategy and a deployer
2. Add its provider to setup_registry and its deployer to setup_deployers
3. Add its entries to the feature mapping table
"""

from typing import Dict, Optional

from core.canonical_models import Platform
from core.config import SyncConfig
from core.deployer import ContextDeployer
from core.filesystem import FileSystemAccessor
from core.registry import StrategyRegistry

from .claude_code import ClaudeCodeDeployer, ClaudeCodeStrategy
from .kiro import KiroDeployer, KiroStrategy


def setup_registry(file_system: Optional[FileSystemAccessor] = None,
                   config: Optional[SyncConfig] = None) -> StrategyRegistry:
    """
    Create a registry with every available strategy.

    Platforms without a strategy (Cursor) are skipped.
    """
    config = config or SyncConfig.from_env()
    return StrategyRegistry.from_providers({
        Platform.KIRO: lambda: KiroStrategy(file_system, config),
        Platform.CLAUDE_CODE: lambda: ClaudeCodeStrategy(file_system, config),
        Platform.CURSOR: None,
    })


def setup_deployers(file_system: Optional[FileSystemAccessor] = None,
                    config: Optional[SyncConfig] = None) -> Dict[Platform, ContextDeployer]:
    config = config or SyncConfig.from_env()
    return {
        Platform.KIRO: KiroDeployer(file_system, config),
        Platform.CLAUDE_CODE: ClaudeCodeDeployer(file_system, config),
    }


__all__ = [
    'ClaudeCodeDeployer',
    'ClaudeCodeStrategy',
    'KiroDeployer',
    'KiroStrategy',
    'setup_deployers',
    'setup_registry',
]
