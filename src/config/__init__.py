"""Settings and YAML config loading.

No module-level ``Settings`` instance is created here; callers build one
and pass it to :func:`src.main.build_engine`.
"""

from src.config.loader import load_config
from src.config.settings import Settings

__all__ = ["Settings", "load_config"]
