import time, threading, logging
import redis
from flask import current_app

from ..errors import RateLimitExceeded

logger = logging.getLogger(__name__)

_store = None
_lock = threading.Lock()

class _MemStore:
    """Process-local stand-in for the few Redis commands used here."""

    def __init__(self):
        self._items = {}  # key -> (value, deadline | None)
        self._lock = threading.Lock()

    def _sweep(self):
        now = time.time()
        for key in [k for k, (_, deadline) in self._items.items() if deadline is not None and deadline <= now]:
            del self._items[key]

    def _live(self, key):
        self._sweep()
        return self._items.get(key)

    def size(self):
        with self._lock:
            self._sweep()
            return len(self._items)

    def incr(self, key):
        with self._lock:
            item = self._live(key)
            count = (int(item[0]) if item else 0) + 1
            self._items[key] = (str(count), item[1] if item else None)
            return count

    def expire(self, key, ttl):
        with self._lock:
            item = self._live(key)
            if item is None:
                return False
            self._items[key] = (item[0], time.time() + ttl)
            return True

    def set(self, key, value, ex=None, nx=False):
        with self._lock:
            if self._live(key) is not None and nx:
                return None
            self._items[key] = (value, time.time() + ex if ex else None)
            return True

    def delete(self, key):
        with self._lock:
            return 1 if self._items.pop(key, None) is not None else 0

def store():
    global _store
    if _store is not None:
        return _store
    with _lock:
        if _store is not None:
            return _store
        url = current_app.config.get('REDIS_URL')
        if current_app.config.get('USE_REDIS', True) and url:
            try:
                client = redis.from_url(url, decode_responses=True)
                client.ping()
                _store = client
                return _store
            except redis.RedisError as e:
                logger.warning("Redis unavailable at %s, using in-memory store: %s", url, e)
        _store = _MemStore()
        return _store

def reset():
    global _store
    _store = None

def _hit(key: str, window: int) -> int:
    s = store()
    if isinstance(s, _MemStore):
        count = s.incr(key)
        s.expire(key, window)
        return count
    pipe = s.pipeline()
    pipe.incr(key)
    pipe.expire(key, window)
    return pipe.execute()[0]

def check_rate_ip(ip: str, limit=None, window=60):
    limit = limit or current_app.config.get('SCAN_RATE_LIMIT', 60)
    if _hit(f"rl:ip:{ip}:{int(time.time() // window)}", window) > limit:
        raise RateLimitExceeded(f"more than {limit} scans per {window}s from {ip}")

# duplicate-scan suppression

def claim_scan(subject: str, business_id: int, ttl: int | None = None) -> bool:
    """Return False if ``business_id`` already scanned ``subject`` within ``ttl`` seconds."""
    ttl = ttl if ttl is not None else current_app.config.get('SCAN_DEDUP_SECONDS', 30)
    if ttl <= 0:
        return True
    return bool(store().set(f"scan:{business_id}:{subject}", '1', ex=ttl, nx=True))

def release_scan(subject: str, business_id: int):
    store().delete(f"scan:{business_id}:{subject}")
