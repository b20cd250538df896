import threading

from tryst import logconfig

_INIT_LOCK = threading.Lock()
_runtime_is_initialized = False


def init(force_reload: bool = False) -> None:
    """Attach the configured handler to the `tryst` logger.

    The reader works without calling this; its records are simply not handled.
    Repeated calls do nothing unless `force_reload` is True, which attaches another
    handler using the current environment."""
    global _runtime_is_initialized

    with _INIT_LOCK:
        if _runtime_is_initialized and not force_reload:
            return

        logconfig.configure_root_logger()
        _runtime_is_initialized = True
