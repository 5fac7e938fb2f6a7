"""YAML defaults merged with environment-driven Settings.

# ─── LAYERS ────────────────────────────────────────────────────────────
#
#   1. config/config.yaml  -- static defaults (cleansing flags, LLM batch size)
#   2. .env / environment  -- via Settings; wins wherever keys overlap
#
# Keys the environment never sets (``cleansing``, ``chunking.min_chunk_size``)
# therefore come only from YAML:
#
#   yaml      = {"chunking": {"chunk_size": 1000, "min_chunk_size": 100}}
#   env       = {"chunking": {"chunk_size": 800}}
#   resolved  = {"chunking": {"chunk_size": 800, "min_chunk_size": 100}}
# ──────────────────────────────────────────────────────────────────────
"""

from pathlib import Path

import yaml

from src.config.settings import Settings
from src.utils.errors import ConfigurationError


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Return the resolved configuration dictionary.

    A missing file is treated as empty.  A file whose top level is not a
    mapping raises :class:`ConfigurationError` (``INVALID_CONFIG_FILE``).
    """
    resolved = _read_yaml(Path(path))
    _deep_merge(resolved, _settings_overrides(settings or Settings()))
    return resolved


def _read_yaml(config_path: Path) -> dict:
    if not config_path.exists():
        return {}
    with open(config_path, encoding="utf-8") as f:
        loaded = yaml.safe_load(f)
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigurationError(
            message=f"{config_path} must contain a mapping at the top level",
            code="INVALID_CONFIG_FILE",
        )
    return loaded


def _settings_overrides(settings: Settings) -> dict:
    embedding = {
        "provider": settings.embedding_provider,
        "model": settings.embedding_model,
        "base_url": settings.openai_base_url,
    }
    # 0 means "use the model's known width", so it must not mask a YAML value.
    if settings.embedding_dimensions:
        embedding["dimensions"] = settings.embedding_dimensions

    return {
        "app": {"env": settings.app_env},
        "embedding": embedding,
        "vector_store": {
            "type": settings.vector_store_type,
            "connection_string": settings.vector_store_connection_string,
        },
        "chunking": {
            "strategy": settings.default_chunking_strategy,
            "chunk_size": settings.default_chunk_size,
            "chunk_overlap": settings.default_chunk_overlap,
        },
        "ingestion": {"max_concurrency": settings.ingestion_max_concurrency},
        "storage": {"sqlite_db_path": settings.sqlite_db_path},
        "logging": {"level": settings.log_level},
    }


def _deep_merge(base: dict, overrides: dict) -> None:
    """Merge *overrides* into *base* in place, recursing into nested dicts."""
    for key, value in overrides.items():
        current = base.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            _deep_merge(current, value)
        else:
            base[key] = value
