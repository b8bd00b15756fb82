"""
Runtime configuration and logging setup.

Configuration is resolved once (SyncConfig.from_env) and handed to the
strategies and deployers that need it. Nothing reads the environment later.

Environment variables:
- AGENT_CONTEXT_HOME: root for user-level config (default: home directory)
- AGENT_CONTEXT_LOG_LEVEL: logging level name (default: WARNING)
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from core.canonical_models import SCHEMA_VERSION

HOME_ENV_VAR = 'AGENT_CONTEXT_HOME'
LOG_LEVEL_ENV_VAR = 'AGENT_CONTEXT_LOG_LEVEL'

LOG_FORMAT = '%(asctime)s %(levelname)s %(name)s: %(message)s'


@dataclass
class SyncConfig:
    home_dir: Path = field(default_factory=Path.home)
    schema_version: str = SCHEMA_VERSION
    log_level: str = 'WARNING'

    @classmethod
    def from_env(cls, environ: Optional[dict] = None) -> 'SyncConfig':
        environ = os.environ if environ is None else environ
        home = environ.get(HOME_ENV_VAR)
        return cls(
            home_dir=Path(home).expanduser() if home else Path.home(),
            log_level=environ.get(LOG_LEVEL_ENV_VAR, 'WARNING').upper(),
        )

    def user_path(self, *parts: str) -> Path:
        """Path under the user-level configuration root."""
        return self.home_dir.joinpath(*parts)


def configure_logging(config: Optional[SyncConfig] = None) -> logging.Logger:
    """
    Attach a stream handler to the package loggers at config.log_level.

    Without a config the environment is read. Safe to call repeatedly; only
    one handler is installed.
    """
    level = (config or SyncConfig.from_env()).log_level
    root = logging.getLogger('core')
    adapters_logger = logging.getLogger('adapters')
    for target in (root, adapters_logger):
        target.setLevel(level.upper())
        if not any(getattr(h, '_context_sync', False) for h in target.handlers):
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter(LOG_FORMAT))
            handler._context_sync = True
            target.addHandler(handler)
    return root
