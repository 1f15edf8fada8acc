"""Process-local TTL cache for slow-changing lookups (filter options).

Shared by request threads, so every access holds `_LOCK`.
"""

import threading
import time
from collections import namedtuple

from .config import _env_bool

_Entry = namedtuple("_Entry", ["expires_at", "value"])

_LOCK = threading.RLock()
_CACHE = {}
_STATS = {"hits": 0, "misses": 0, "evictions": 0, "loads": 0}


def cache_enabled():
    return _env_bool("CACHE", True)


def _now(now):
    return time.time() if now is None else now


def cache_get(key, now=None):
    if not cache_enabled():
        return None
    with _LOCK:
        entry = _CACHE.get(key)
        if entry is None or entry.expires_at < _now(now):
            _CACHE.pop(key, None)
            _STATS["misses"] += 1
            return None
        _STATS["hits"] += 1
        return entry.value


def _make_room(max_entries, now):
    expired = [k for k, e in _CACHE.items() if e.expires_at < now]
    for k in expired:
        del _CACHE[k]
    while _CACHE and len(_CACHE) >= max_entries:
        soonest = min(_CACHE, key=lambda k: _CACHE[k].expires_at)
        del _CACHE[soonest]
        _STATS["evictions"] += 1


def cache_set(key, value, ttl=120, max_entries=512, now=None):
    if not cache_enabled():
        return
    now = _now(now)
    with _LOCK:
        if key not in _CACHE:
            _make_room(max_entries, now)
        _CACHE[key] = _Entry(now + ttl, value)


def cache_invalidate(key):
    with _LOCK:
        _CACHE.pop(key, None)


def cache_clear():
    with _LOCK:
        _CACHE.clear()
        for name in _STATS:
            _STATS[name] = 0


def cache_stats():
    with _LOCK:
        return dict(_STATS, size=len(_CACHE))


def cache_get_or_load(key, loader, ttl=120, max_entries=512):
    """Cached value for `key`, calling `loader()` on a miss.

    Loader exceptions propagate and nothing is cached for that key. Two
    threads missing at once may both load; the later result wins.
    """

    value = cache_get(key)
    if value is not None:
        return value
    value = loader()
    with _LOCK:
        _STATS["loads"] += 1
    cache_set(key, value, ttl=ttl, max_entries=max_entries)
    return value
