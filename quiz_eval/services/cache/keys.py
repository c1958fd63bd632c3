import hashlib

GLOBAL_KEY_PREFIX = "quizbyte"


def generate_cache_key(service_name: str, object_type: str, identifier: str, *params: str, prefix: str = GLOBAL_KEY_PREFIX) -> str:
    """
    Build a namespaced cache key.

    Example:
        generate_cache_key("answer", "evaluation_map", "42")
        # -> "quizbyte:answer:evaluation_map:42"
        generate_cache_key("quiz", "list", "go", "page1", "size10")
        # -> "quizbyte:quiz:list:go:page1_size10"
    """
    base_key = ":".join([prefix, service_name, object_type, identifier])
    if params:
        return f"{base_key}:{'_'.join(params)}"
    return base_key


def answer_set_key(question_id: str, prefix: str = GLOBAL_KEY_PREFIX) -> str:
    """Hash key holding every cached evaluation for one question."""
    return generate_cache_key("answer", "evaluation_map", question_id, prefix=prefix)


def embedding_key(source: str, text: str, prefix: str = GLOBAL_KEY_PREFIX) -> str:
    digest = hashlib.sha256(text.encode("utf-8")).hexdigest()
    return generate_cache_key("embedding", source, digest, prefix=prefix)
