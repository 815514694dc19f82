"""JSON read-through cache for catalog lookups."""

import json

from .redis_client import get_sync_redis

CATALOG_PREFIX = "brewline:catalog"


def catalog_key(*parts) -> str:
    return ":".join([CATALOG_PREFIX, *(str(p) for p in parts)])


def get_or_set_json_sync(key: str, ttl_sec: int, compute_func):
    """Returns (value, cache_hit). A None result is not cached."""
    r = get_sync_redis()
    raw = r.get(key)
    if raw:
        return json.loads(raw), True

    val = compute_func()
    if val is not None:
        r.set(key, json.dumps(val), ex=ttl_sec)
    return val, False
