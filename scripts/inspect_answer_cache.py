"""
Dump the cached answer evaluations of one question.

Usage:
    python scripts/inspect_answer_cache.py --question-id 42
    python scripts/inspect_answer_cache.py --question-id 42 --with-embeddings
"""
import argparse
import asyncio
import json
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from quiz_eval.config.loader import get_answer_cache_config
from quiz_eval.config.settings import settings
from quiz_eval.errors import CacheUnavailableError
from quiz_eval.logging_config import setup_logging
from quiz_eval.services.cache.keys import answer_set_key
from quiz_eval.services.cache.models import CachedAnswerRecord
from quiz_eval.services.cache.redis_client import RedisConnector


async def inspect(question_id: str, with_embeddings: bool) -> int:
    config = get_answer_cache_config(settings.CACHE_CONFIG_PATH)
    connector = RedisConnector(settings.REDIS_URL)
    if not await connector.connect():
        print("Redis is not reachable", file=sys.stderr)
        return 1

    set_key = answer_set_key(question_id, prefix=config.key_prefix)
    try:
        fields = await connector.get_all_fields(set_key)
    except CacheUnavailableError as e:
        print(f"Failed to read {set_key}: {e}", file=sys.stderr)
        return 1
    finally:
        await connector.close()

    output = []
    for field_key, raw in sorted(fields.items()):
        record = CachedAnswerRecord.model_validate_json(raw)
        item = record.model_dump(mode="json")
        if not with_embeddings:
            item["embedding"] = f"<{record.dimension} floats>"
        output.append(item)

    print(json.dumps({"key": set_key, "records": output}, indent=2, ensure_ascii=False))
    return 0


def main():
    parser = argparse.ArgumentParser(description="Inspect cached answer evaluations")
    parser.add_argument("--question-id", required=True, help="Question identifier")
    parser.add_argument("--with-embeddings", action="store_true", help="Print full embedding vectors")
    args = parser.parse_args()
    setup_logging("WARNING")
    sys.exit(asyncio.run(inspect(args.question_id, args.with_embeddings)))


if __name__ == "__main__":
    main()
