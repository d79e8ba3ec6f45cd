import logging
import signal
import threading
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, Tuple

STOP_SIGNALS: Tuple[int, ...] = (signal.SIGINT, signal.SIGTERM)

_logger = logging.getLogger(__name__)


@contextmanager
def stop_signal_handlers(on_stop: Callable[[int], None], signals: Tuple[int, ...] = STOP_SIGNALS) -> Iterator[None]:
    """Routes termination signals to `on_stop(signum)` for the duration of the block.

    Previous handlers are restored on exit. Python only allows installing
    handlers from the main thread; elsewhere this is a no-op.
    """
    if threading.current_thread() is not threading.main_thread():
        _logger.warning("Signal handlers not installed (not on the main thread)")
        yield
        return

    def _handler(signum, _frame):
        _logger.info(f"SIGNAL_RECEIVED: {signal.Signals(signum).name}")
        on_stop(signum)

    previous: Dict[int, object] = {}
    for sig in signals:
        previous[sig] = signal.signal(sig, _handler)
    try:
        yield
    finally:
        for sig, handler in previous.items():
            # None means the old handler was not installed from Python
            signal.signal(sig, handler if handler is not None else signal.SIG_DFL)
