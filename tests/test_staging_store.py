"""Tests for the in-memory staging store."""

import asyncio
import contextlib
import threading

import pytest

from recipe_bridge.core.staging_store import MAX_ID_ATTEMPTS, StagingStore, generate_staging_id
from recipe_bridge.utils.exceptions import StagedRecipeNotFound, StagingStorageError, ValidationError

HTML = "<html><body><h1>Tarte aux pommes</h1></body></html>"


def test_get_returns_what_was_put(staging_store):
    recipe_id = staging_store.put(HTML)
    assert staging_store.get(recipe_id) == HTML


def test_get_never_issued_id(staging_store):
    with pytest.raises(StagedRecipeNotFound):
        staging_store.get("0" * 32)


def test_second_get_is_not_found(staging_store):
    recipe_id = staging_store.put(HTML)
    staging_store.get(recipe_id)
    with pytest.raises(StagedRecipeNotFound):
        staging_store.get(recipe_id)
    assert recipe_id not in staging_store


def test_not_found_carries_id(staging_store):
    with pytest.raises(StagedRecipeNotFound) as exc_info:
        staging_store.get("missing")
    assert exc_info.value.recipe_id == "missing"


def test_get_before_ttl_succeeds(staging_store, clock):
    recipe_id = staging_store.put(HTML)
    clock.advance(299)
    assert staging_store.get(recipe_id) == HTML


def test_get_after_ttl_is_not_found(staging_store, clock):
    recipe_id = staging_store.put(HTML)
    clock.advance(301)
    with pytest.raises(StagedRecipeNotFound):
        staging_store.get(recipe_id)


def test_entry_expires_exactly_at_deadline(staging_store, clock):
    recipe_id = staging_store.put(HTML)
    clock.advance(300)
    with pytest.raises(StagedRecipeNotFound):
        staging_store.get(recipe_id)


def test_expiry_does_not_depend_on_sweep(staging_store, clock):
    recipe_id = staging_store.put(HTML)
    clock.advance(600)
    # Entry still held in memory, but unreadable
    assert len(staging_store) == 1
    assert recipe_id not in staging_store
    with pytest.raises(StagedRecipeNotFound):
        staging_store.get(recipe_id)


def test_sweep_removes_only_expired(staging_store, clock):
    old_id = staging_store.put(HTML)
    clock.advance(200)
    new_id = staging_store.put("<p>newer</p>")
    clock.advance(150)

    assert staging_store.sweep() == 1
    assert len(staging_store) == 1
    assert old_id not in staging_store
    assert staging_store.get(new_id) == "<p>newer</p>"


def test_sweep_on_empty_store(staging_store):
    assert staging_store.sweep() == 0


def test_ids_are_distinct_and_opaque(staging_store):
    ids = {staging_store.put(HTML) for _ in range(100)}
    assert len(ids) == 100
    for recipe_id in ids:
        assert len(recipe_id) == 32
        int(recipe_id, 16)


def test_generate_staging_id_is_random():
    assert generate_staging_id() != generate_staging_id()


@pytest.mark.parametrize("content", ["", "   ", None, 42])
def test_put_rejects_empty_or_non_string(staging_store, content):
    with pytest.raises(ValidationError):
        staging_store.put(content)
    assert len(staging_store) == 0


def test_put_retries_on_id_collision(clock):
    ids = iter(["taken", "taken", "fresh"])
    store = StagingStore(ttl_seconds=300, clock=clock, id_factory=lambda: next(ids))
    assert store.put("<p>a</p>") == "taken"
    assert store.put("<p>b</p>") == "fresh"
    assert store.get("taken") == "<p>a</p>"


def test_put_fails_when_no_unique_id(clock):
    store = StagingStore(ttl_seconds=300, clock=clock, id_factory=lambda: "same")
    store.put("<p>a</p>")
    with pytest.raises(StagingStorageError):
        store.put("<p>b</p>")
    assert len(store) == 1


def test_put_gives_up_after_max_attempts(clock):
    calls = []

    def id_factory():
        calls.append(1)
        return "same"

    store = StagingStore(ttl_seconds=300, clock=clock, id_factory=id_factory)
    store.put("<p>a</p>")
    calls.clear()
    with pytest.raises(StagingStorageError):
        store.put("<p>b</p>")
    assert len(calls) == MAX_ID_ATTEMPTS


def test_put_out_of_memory_is_storage_error(clock):
    def id_factory():
        raise MemoryError()

    store = StagingStore(ttl_seconds=300, clock=clock, id_factory=id_factory)
    with pytest.raises(StagingStorageError):
        store.put(HTML)


def test_ttl_must_be_positive():
    with pytest.raises(ValueError):
        StagingStore(ttl_seconds=0)


def test_content_is_stored_verbatim(staging_store):
    content = "<p>Crème brûlée &amp; 200 °C</p>\n\t"
    recipe_id = staging_store.put(content)
    assert staging_store.get(recipe_id) == content


def test_concurrent_gets_yield_exactly_one_success(staging_store):
    recipe_id = staging_store.put(HTML)
    barrier = threading.Barrier(8)
    results = []
    results_lock = threading.Lock()

    def reader():
        barrier.wait()
        try:
            content = staging_store.get(recipe_id)
        except StagedRecipeNotFound:
            content = None
        with results_lock:
            results.append(content)

    threads = [threading.Thread(target=reader) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count(HTML) == 1
    assert results.count(None) == 7


def test_concurrent_puts_get_distinct_ids(staging_store):
    ids = []
    ids_lock = threading.Lock()

    def writer(n):
        recipe_id = staging_store.put(f"<p>{n}</p>")
        with ids_lock:
            ids.append(recipe_id)

    threads = [threading.Thread(target=writer, args=(n,)) for n in range(20)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(set(ids)) == 20
    assert len(staging_store) == 20


def test_background_sweep_drops_expired_entries(staging_store, clock):
    from recipe_bridge.main import sweep_staging_store

    staging_store.put(HTML)
    clock.advance(301)

    async def run_sweeper():
        task = asyncio.create_task(sweep_staging_store(staging_store, 0.01))
        await asyncio.sleep(0.1)
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    asyncio.run(run_sweeper())
    assert len(staging_store) == 0
