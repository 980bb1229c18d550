"""
Thread-safe rate-limited logging.

Polling loops call the state machine every few seconds; messages such as
"waiting for wallet approval" would otherwise be logged on every poll.
"""
import logging
import threading
from typing import Optional

from cachetools import TTLCache

logger = logging.getLogger(__name__)

# Keys expire after their interval; the cache holds at most 256 distinct messages
_DEFAULT_INTERVAL = 60
_log_caches = {}
_log_caches_lock = threading.RLock()


def _cache_for(interval: int) -> TTLCache:
    with _log_caches_lock:
        cache = _log_caches.get(interval)
        if cache is None:
            cache = TTLCache(maxsize=256, ttl=interval)
            _log_caches[interval] = cache
        return cache


def rate_limited_log(
    message: str,
    level: str = "info",
    interval: int = _DEFAULT_INTERVAL,
    logger_instance: Optional[logging.Logger] = None
) -> bool:
    """
    Log a message at most once per ``interval`` seconds.

    Args:
        message: Message to log
        level: Log level (debug, info, warning, error, critical)
        interval: Minimum interval between identical messages in seconds
        logger_instance: Logger to use (defaults to module logger)

    Returns:
        True if the message was emitted, False if it was suppressed
    """
    log_instance = logger_instance or logger
    log_method = getattr(log_instance, level.lower(), log_instance.warning)
    key = f"{log_instance.name}:{level}:{message}"

    cache = _cache_for(interval)
    with _log_caches_lock:
        if key in cache:
            return False
        cache[key] = True
    log_method(message)
    return True


def reset_rate_limits() -> None:
    """Forget all suppressed messages."""
    with _log_caches_lock:
        _log_caches.clear()
