"""
YAML configuration loader for the answer cache.

Structure of cache.yaml:
  parameters:
    similarity_threshold: <float 0-1>
    evaluation_ttl_seconds: <int>
    embedding_ttl_seconds: <int>
    single_flight: <bool>
    field_expiry: <bool>
    key_prefix: <str>

Values may reference the environment as ${VAR_NAME:-default_value}.
"""
import os
import re
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field

ENV_PATTERN = re.compile(r"^\$\{(\w+)(?::-(.*))?\}$")
DEFAULT_CONFIG_PATH = Path(__file__).parent / "cache.yaml"


class AnswerCacheConfig(BaseModel):
    """Effective parameters of the answer evaluation cache."""
    similarity_threshold: float = Field(default=0.95, ge=0.0, le=1.0)
    evaluation_ttl_seconds: int = Field(default=86400, gt=0)
    embedding_ttl_seconds: int = Field(default=604800, gt=0)
    single_flight: bool = True
    field_expiry: bool = False
    key_prefix: str = Field(default="quizbyte", min_length=1)


class _EnvLoader(yaml.SafeLoader):
    pass


def env_var_constructor(loader, node):
    """
    Extracts the environment variable from the node's value.
    Format: ${VAR_NAME:-default_value}
    """
    value = loader.construct_scalar(node)
    match = ENV_PATTERN.match(value)
    if match:
        var_name, default_value = match.groups()
        return os.environ.get(var_name, default_value or "")
    return value


_EnvLoader.add_implicit_resolver("!env", ENV_PATTERN, None)
_EnvLoader.add_constructor("!env", env_var_constructor)


@lru_cache(maxsize=8)
def load_cache_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load cache.yaml (or the given path) with caching."""
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
    if not path.exists():
        return {}
    with open(path, "r", encoding="utf-8") as f:
        return yaml.load(f, Loader=_EnvLoader) or {}


def get_answer_cache_config(config_path: Optional[str] = None) -> AnswerCacheConfig:
    """Validated cache parameters; missing keys fall back to model defaults."""
    raw = load_cache_config(config_path)
    return AnswerCacheConfig.model_validate(raw.get("parameters") or {})


def clear_config_cache():
    """Clear cached configuration for hot-reload."""
    load_cache_config.cache_clear()
