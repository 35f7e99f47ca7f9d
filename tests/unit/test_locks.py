"""
Unit tests for KeyedLock.
"""

import threading

from billing_kernel.utils.locks import KeyedLock


class TestKeyedLock:
    """Tests for per-key locking."""

    def test_hold_and_release(self):
        """A key is held inside the block and dropped after it."""
        locks = KeyedLock()
        with locks.hold("q1"):
            assert locks.is_held("q1")
            assert len(locks) == 1
        assert not locks.is_held("q1")
        assert len(locks) == 0

    def test_released_on_exception(self):
        """An exception in the body still releases the key."""
        locks = KeyedLock()
        try:
            with locks.hold("q1"):
                raise RuntimeError("boom")
        except RuntimeError:
            pass
        assert len(locks) == 0

    def test_different_keys_do_not_block(self):
        """Holding one key does not block another."""
        locks = KeyedLock()
        entered = threading.Event()

        def other():
            with locks.hold("q2"):
                entered.set()

        with locks.hold("q1"):
            t = threading.Thread(target=other)
            t.start()
            assert entered.wait(timeout=5)
            t.join(timeout=5)

    def test_same_key_blocks(self):
        """A second holder of the same key waits for the first."""
        locks = KeyedLock()
        order = []
        started = threading.Event()

        def second():
            started.set()
            with locks.hold("q1"):
                order.append("second")

        with locks.hold("q1"):
            t = threading.Thread(target=second)
            t.start()
            assert started.wait(timeout=5)
            # Give the thread a chance to block on the lock.
            t.join(timeout=0.1)
            assert t.is_alive()
            order.append("first")
        t.join(timeout=5)
        assert order == ["first", "second"]
