"""
Unit tests for the per-villa lock registry.
"""

from __future__ import annotations

import threading
import time

import pytest

from villa_booking.services.coordinator import VillaLockRegistry


@pytest.mark.unit
def test_lock_for_returns_same_lock_per_villa() -> None:
    registry = VillaLockRegistry()

    assert registry.lock_for("villa-a") is registry.lock_for("villa-a")
    assert registry.lock_for("villa-a") is not registry.lock_for("villa-b")
    assert len(registry) == 2


@pytest.mark.unit
def test_same_villa_sections_never_interleave() -> None:
    registry = VillaLockRegistry()
    inside = 0
    max_inside = 0
    counter_lock = threading.Lock()

    def worker() -> None:
        nonlocal inside, max_inside
        with registry.acquire("villa-a"):
            with counter_lock:
                inside += 1
                max_inside = max(max_inside, inside)
            time.sleep(0.01)
            with counter_lock:
                inside -= 1

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert max_inside == 1


@pytest.mark.unit
def test_different_villas_proceed_in_parallel() -> None:
    """A thread holding villa-a does not block a thread entering villa-b."""
    registry = VillaLockRegistry()
    a_entered = threading.Event()
    release_a = threading.Event()
    b_done = threading.Event()

    def hold_a() -> None:
        with registry.acquire("villa-a"):
            a_entered.set()
            release_a.wait(timeout=5)

    def enter_b() -> None:
        with registry.acquire("villa-b"):
            b_done.set()

    holder = threading.Thread(target=hold_a)
    holder.start()
    assert a_entered.wait(timeout=5)

    other = threading.Thread(target=enter_b)
    other.start()
    assert b_done.wait(timeout=5)

    release_a.set()
    holder.join()
    other.join()


@pytest.mark.unit
def test_lock_is_released_when_section_raises() -> None:
    registry = VillaLockRegistry()

    with pytest.raises(RuntimeError):
        with registry.acquire("villa-a"):
            raise RuntimeError("boom")

    assert registry.lock_for("villa-a").acquire(blocking=False)
    registry.lock_for("villa-a").release()
