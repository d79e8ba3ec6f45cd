import os
import signal
import sys
import threading
import time
import pytest
from h265conv.infrastructure.signals import stop_signal_handlers

pytestmark = pytest.mark.skipif(sys.platform.startswith("win"), reason="POSIX signals")


def _wait_for(received, timeout=5.0):
    deadline = time.monotonic() + timeout
    while not received and time.monotonic() < deadline:
        time.sleep(0.01)


@pytest.mark.parametrize("signum", [signal.SIGINT, signal.SIGTERM])
def test_signal_routed_to_callback(signum):
    received = []

    with stop_signal_handlers(received.append):
        os.kill(os.getpid(), signum)
        _wait_for(received)

    assert received == [signum]


def test_previous_handlers_restored():
    before_int = signal.getsignal(signal.SIGINT)
    before_term = signal.getsignal(signal.SIGTERM)

    with stop_signal_handlers(lambda signum: None):
        assert signal.getsignal(signal.SIGINT) is not before_int
        assert signal.getsignal(signal.SIGTERM) is not before_term

    assert signal.getsignal(signal.SIGINT) is before_int
    assert signal.getsignal(signal.SIGTERM) is before_term


def test_noop_outside_main_thread():
    before = signal.getsignal(signal.SIGINT)
    seen = {}

    def worker():
        with stop_signal_handlers(lambda signum: None):
            seen["handler"] = signal.getsignal(signal.SIGINT)

    t = threading.Thread(target=worker)
    t.start()
    t.join()

    assert seen["handler"] is before
