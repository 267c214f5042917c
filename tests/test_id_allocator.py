from __future__ import annotations

import threading
from datetime import date

import pytest

from reservation_engine.services.id_allocator import IdAllocator
from reservation_engine.services.lock_service import ResourceLockService
from reservation_engine.services.errors import ResourceBusyError


def test_campaign_ids_are_monthly_and_monotonic(repository, settings) -> None:
    allocator = IdAllocator(repository, settings, today=lambda: date(2024, 3, 15))

    assert allocator.next("tenant-a", "campaign") == "CAM-202403-0001"
    assert allocator.next("tenant-a", "campaign") == "CAM-202403-0002"
    assert allocator.next("tenant-a", "plan") == "PLAN-202403-0001"
    assert allocator.next("tenant-b", "campaign") == "CAM-202403-0001"


def test_counter_restarts_in_a_new_month(repository, settings) -> None:
    today = {"value": date(2024, 3, 31)}
    allocator = IdAllocator(repository, settings, today=lambda: today["value"])

    assert allocator.next("tenant-a", "campaign") == "CAM-202403-0001"
    today["value"] = date(2024, 4, 1)
    assert allocator.next("tenant-a", "campaign") == "CAM-202404-0001"


def test_unknown_kind_raises(repository, settings) -> None:
    with pytest.raises(ValueError):
        IdAllocator(repository, settings).next("tenant-a", "invoice")


def test_concurrent_allocation_never_repeats(repository, settings) -> None:
    allocator = IdAllocator(repository, settings, today=lambda: date(2024, 3, 1))
    allocated: list[str] = []
    guard = threading.Lock()

    def worker() -> None:
        for _ in range(5):
            value = allocator.next("tenant-a", "campaign")
            with guard:
                allocated.append(value)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(allocated) == 20
    assert len(set(allocated)) == 20


def test_lock_timeout_releases_partially_acquired_keys(settings) -> None:
    locks = ResourceLockService(settings)
    held = locks.try_acquire(["resource:t:b"])

    with pytest.raises(ResourceBusyError):
        locks.try_acquire(["resource:t:a", "resource:t:b"], timeout=0.05)

    assert not locks.is_locked("resource:t:a")
    locks.release(held)
    with locks.acquire(["resource:t:a", "resource:t:b"]) as keys:
        assert keys == ["resource:t:a", "resource:t:b"]
    assert not locks.is_locked("resource:t:b")


def test_released_lock_keys_are_dropped_from_registry(settings) -> None:
    locks = ResourceLockService(settings)
    keys = [f"resource:t:{index}" for index in range(50)]

    for key in keys:
        with locks.acquire([key, "plan:t:p"]):
            assert locks.is_locked(key)

    assert not locks.is_locked("resource:t:never-taken")
    assert locks.registered_keys == []


def test_waiting_caller_keeps_key_registered_until_it_finishes(settings) -> None:
    locks = ResourceLockService(settings)
    held = locks.try_acquire(["resource:t:a"])
    acquired = threading.Event()

    def waiter() -> None:
        with locks.acquire(["resource:t:a"], timeout=5.0):
            acquired.set()

    thread = threading.Thread(target=waiter)
    thread.start()
    locks.release(held)
    thread.join()

    assert acquired.is_set()
    assert locks.registered_keys == []
