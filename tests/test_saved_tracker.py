import asyncio
import threading

import pytest
from asgiref.sync import async_to_sync

from datastore.errors import BackendFailure
from saved.tracker import PropertyGuard, SavedPropertyTracker, get_tracker


class RecordingStore:
    """Minimal store double: records every write, can fail or hold writes open."""

    def __init__(self, saved=(), fail=False):
        self.saved = set(saved)
        self.fail = fail
        self.calls = []
        self.gate = None
        self.delay = 0

    async def list_saved_ids(self):
        return sorted(self.saved)

    async def is_saved(self, property_id):
        return property_id in self.saved

    async def save(self, property_id):
        self.calls.append(("save", property_id))
        if self.gate is not None:
            await self.gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            return False
        self.saved.add(property_id)
        return True

    async def unsave(self, property_id):
        self.calls.append(("unsave", property_id))
        if self.gate is not None:
            await self.gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            return False
        self.saved.discard(property_id)
        return True


def run(coro_fn, *args):
    return async_to_sync(coro_fn)(*args)


def test_save_then_unsave():
    backend = RecordingStore()

    async def scenario():
        tracker = await SavedPropertyTracker.load(backend)
        assert await tracker.save(5)
        saved_after_save = tracker.is_saved(5)
        assert await tracker.unsave(5)
        return saved_after_save, tracker.is_saved(5)

    assert run(scenario) == (True, False)
    assert backend.calls == [("save", 5), ("unsave", 5)]


def test_save_is_idempotent_and_skips_second_write():
    backend = RecordingStore()

    async def scenario():
        tracker = SavedPropertyTracker(backend)
        await tracker.save(5)
        await tracker.save(5)
        return tracker.is_saved(5)

    assert run(scenario) is True
    assert backend.calls == [("save", 5)]


def test_unsave_of_non_member_is_a_noop():
    backend = RecordingStore()

    async def scenario():
        tracker = SavedPropertyTracker(backend)
        return await tracker.unsave(9)

    assert run(scenario) is True
    assert backend.calls == []


def test_failed_save_leaves_state_unchanged():
    backend = RecordingStore(fail=True)

    async def scenario():
        tracker = SavedPropertyTracker(backend)
        ok = await tracker.save(5)
        return ok, tracker.is_saved(5)

    assert run(scenario) == (False, False)


def test_failed_unsave_keeps_membership():
    backend = RecordingStore(saved=[3])

    async def scenario():
        tracker = await SavedPropertyTracker.load(backend)
        backend.fail = True
        ok = await tracker.toggle(3)
        return ok, tracker.is_saved(3)

    assert run(scenario) == (False, True)


def test_store_exception_is_reported_as_failure():
    backend = RecordingStore()

    async def broken_save(property_id):
        raise BackendFailure("connection reset")

    backend.save = broken_save

    async def scenario():
        tracker = SavedPropertyTracker(backend)
        ok = await tracker.save(1)
        return ok, tracker.is_saved(1)

    assert run(scenario) == (False, False)


def test_concurrent_toggles_on_same_id_apply_in_program_order():
    backend = RecordingStore()

    async def scenario():
        backend.gate = asyncio.Event()
        tracker = SavedPropertyTracker(backend)
        first = asyncio.ensure_future(tracker.toggle(7))
        second = asyncio.ensure_future(tracker.toggle(7))
        await asyncio.sleep(0)
        # only the first write may be in flight until it is confirmed
        in_flight = list(backend.calls)
        backend.gate.set()
        results = await asyncio.gather(first, second)
        return in_flight, results, tracker.is_saved(7)

    in_flight, results, is_saved = run(scenario)
    assert in_flight == [("save", 7)]
    assert results == [True, True]
    assert is_saved is False
    assert backend.calls == [("save", 7), ("unsave", 7)]
    assert backend.saved == set()


def test_different_ids_do_not_wait_for_each_other():
    backend = RecordingStore()

    async def scenario():
        backend.gate = asyncio.Event()
        tracker = SavedPropertyTracker(backend)
        first = asyncio.ensure_future(tracker.save(1))
        second = asyncio.ensure_future(tracker.save(2))
        await asyncio.sleep(0)
        in_flight = sorted(backend.calls)
        backend.gate.set()
        await asyncio.gather(first, second)
        return in_flight, tracker.saved_ids

    in_flight, saved_ids = run(scenario)
    assert in_flight == [("save", 1), ("save", 2)]
    assert saved_ids == {1, 2}


def test_results_after_close_are_not_applied():
    backend = RecordingStore()

    async def scenario():
        backend.gate = asyncio.Event()
        tracker = SavedPropertyTracker(backend)
        pending = asyncio.ensure_future(tracker.save(4))
        await asyncio.sleep(0)
        tracker.close()
        backend.gate.set()
        ok = await pending
        return ok, tracker.is_saved(4)

    assert run(scenario) == (True, False)
    assert backend.saved == {4}


def test_unsave_all_reports_failures():
    backend = RecordingStore(saved=[1, 2, 3])

    async def flaky_unsave(property_id):
        backend.calls.append(("unsave", property_id))
        if property_id == 2:
            return False
        backend.saved.discard(property_id)
        return True

    backend.unsave = flaky_unsave

    async def scenario():
        tracker = await SavedPropertyTracker.load(backend)
        failed = await tracker.unsave_all()
        return failed, tracker.saved_ids

    failed, saved_ids = run(scenario)
    assert failed == [2]
    assert saved_ids == {2}
    assert backend.calls == [("unsave", 1), ("unsave", 2), ("unsave", 3)]


@pytest.mark.parametrize("initial, expected", [([], True), ([5], False)])
def test_toggle_flips_membership(initial, expected):
    backend = RecordingStore(saved=initial)

    async def scenario():
        tracker = await SavedPropertyTracker.load(backend)
        await tracker.toggle(5)
        return tracker.is_saved(5)

    assert run(scenario) is expected


def _run_in_threads(*targets):
    barrier = threading.Barrier(len(targets))
    errors = []

    def runner(target):
        barrier.wait()
        try:
            target()
        except Exception as e:  # surfaced through `errors`
            errors.append(e)

    threads = [threading.Thread(target=runner, args=(t,)) for t in targets]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=10)
    assert errors == []


def test_toggles_from_separate_event_loops_are_serialized():
    backend = RecordingStore()
    backend.delay = 0.05
    tracker = SavedPropertyTracker(backend)
    results = []

    def toggle():
        results.append(async_to_sync(tracker.toggle_membership)(7))

    _run_in_threads(toggle, toggle)

    assert sorted(results) == [(True, False), (True, True)]
    assert backend.calls == [("save", 7), ("unsave", 7)]
    assert backend.saved == set()
    assert not tracker.is_saved(7)


def test_toggle_rereads_membership_changed_elsewhere():
    backend = RecordingStore()

    async def scenario():
        tracker = await SavedPropertyTracker.load(backend)
        backend.saved.add(5)  # saved by another process
        ok = await tracker.toggle(5)
        return ok, tracker.is_saved(5)

    assert run(scenario) == (True, False)
    assert backend.calls == [("unsave", 5)]


def test_guard_hands_over_past_cancelled_waiters():
    async def scenario():
        guard = PropertyGuard()
        await guard.acquire()
        cancelled = asyncio.ensure_future(guard.acquire())
        waiting = asyncio.ensure_future(guard.acquire())
        await asyncio.sleep(0)
        cancelled.cancel()
        guard.release()
        await asyncio.wait_for(waiting, timeout=1)
        held = guard.locked
        guard.release()
        return cancelled.cancelled(), held, guard.locked

    assert run(scenario) == (True, True, False)


def test_get_tracker_is_shared_per_store():
    first_store = RecordingStore(saved=[1])
    second_store = RecordingStore()

    first = run(get_tracker, first_store)
    assert run(get_tracker, first_store) is first
    assert first.saved_ids == {1}

    second = run(get_tracker, second_store)
    assert second is not first
    assert second.store is second_store
    assert first.closed


def test_get_tracker_does_not_cache_failed_loads():
    backend = RecordingStore(saved=[3])

    async def down():
        raise BackendFailure("record service unreachable")

    backend.list_saved_ids = down
    with pytest.raises(BackendFailure):
        run(get_tracker, backend)

    del backend.list_saved_ids
    assert run(get_tracker, backend).saved_ids == {3}
