from quiz_eval.config.settings import Settings, settings
from quiz_eval.config.loader import (
    AnswerCacheConfig,
    get_answer_cache_config,
    load_cache_config,
    clear_config_cache,
)

__all__ = [
    "Settings",
    "settings",
    "AnswerCacheConfig",
    "get_answer_cache_config",
    "load_cache_config",
    "clear_config_cache",
]
