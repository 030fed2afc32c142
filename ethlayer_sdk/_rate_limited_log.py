"""
Thread-safe rate-limited logging.

Used for warnings that can repeat on every call (such as a chain ID
mismatch for a misconfigured caller) so they stay visible without
flooding the log.
"""
import logging
import threading
from typing import Optional

from cachetools import TTLCache

logger = logging.getLogger(__name__)

# At most 100 distinct messages, each suppressed for the cache TTL
_log_cache: TTLCache = TTLCache(maxsize=100, ttl=60)
_log_cache_lock = threading.RLock()


def rate_limited_log(
    message: str,
    level: str = "warning",
    logger_instance: Optional[logging.Logger] = None,
) -> bool:
    """
    Log a message unless the same message was logged at the same level recently.

    Args:
        message: Message to log
        level: Log level (debug, info, warning, error, critical)
        logger_instance: Logger to use (defaults to module logger)

    Returns:
        True if the message was emitted, False if it was suppressed
    """
    log_instance = logger_instance or logger
    log_method = getattr(log_instance, level.lower(), log_instance.warning)

    key = f"{level}:{message}"
    with _log_cache_lock:
        if key in _log_cache:
            return False
        log_method(message)
        _log_cache[key] = True
    return True


def reset_rate_limited_log() -> None:
    """Forget all suppressed messages."""
    with _log_cache_lock:
        _log_cache.clear()
