"""Kiro strategy and deployer."""

from .deployer import KiroDeployer
from .strategy import KiroStrategy

__all__ = [
    'KiroDeployer',
    'KiroStrategy',
]
