"""Claude Code strategy and deployer."""

from .deployer import ClaudeCodeDeployer
from .strategy import ClaudeCodeStrategy

__all__ = [
    'ClaudeCodeDeployer',
    'ClaudeCodeStrategy',
]
