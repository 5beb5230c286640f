import json
import time
from pathlib import Path

import pytest

from respcache import AsyncBaseStore, AsyncFileStore, CacheEntry, StoreKind


def make_entry(body: bytes = b"test", timestamp: float = 0.0, **kwargs) -> CacheEntry:
    kwargs.setdefault("content_type", "text/plain")
    kwargs.setdefault("is_binary", False)
    return CacheEntry(body=body, timestamp=timestamp or time.time(), **kwargs)


@pytest.mark.anyio
async def test_put_and_get(store: AsyncBaseStore):
    entry = make_entry(b"hello", status_code=203)

    assert await store.put("/items?a=1", entry)

    stored = await store.get("/items?a=1")
    assert stored == entry


@pytest.mark.anyio
async def test_get_missing_key(store: AsyncBaseStore):
    assert await store.get("/missing") is None


@pytest.mark.anyio
async def test_put_replaces_existing_entry(store: AsyncBaseStore):
    await store.put("/items", make_entry(b"old"))
    await store.put("/items", make_entry(b"new"))

    stored = await store.get("/items")
    assert stored is not None
    assert stored.body == b"new"


@pytest.mark.anyio
async def test_delete_is_idempotent(store: AsyncBaseStore):
    await store.put("/items", make_entry())

    assert await store.delete("/items")
    assert await store.get("/items") is None
    assert await store.delete("/items")
    assert await store.delete("/never-stored")


@pytest.mark.anyio
async def test_clear(store: AsyncBaseStore):
    await store.put("/a", make_entry())
    await store.put("/b?x=1", make_entry())

    assert await store.clear()

    assert await store.get("/a") is None
    assert await store.get("/b?x=1") is None


@pytest.mark.anyio
async def test_scan_yields_keys_and_timestamps(store: AsyncBaseStore):
    await store.put("/a", make_entry(timestamp=100.0))
    await store.put("/b?x=1&y=2", make_entry(timestamp=200.0))

    scanned = sorted([item async for item in store.scan()])

    assert scanned == [("/a", 100.0), ("/b?x=1&y=2", 200.0)]


@pytest.mark.anyio
async def test_binary_body_round_trips(store: AsyncBaseStore):
    body = bytes(range(256))
    await store.put("/logo.png", make_entry(body, content_type="image/png", is_binary=True))

    stored = await store.get("/logo.png")
    assert stored is not None
    assert stored.body == body
    assert stored.is_binary


def test_store_kinds(file_store: AsyncFileStore):
    from respcache import AsyncInMemoryStore

    assert AsyncInMemoryStore.kind is StoreKind.MEMORY
    assert file_store.kind is StoreKind.FILESYSTEM


@pytest.mark.anyio
async def test_file_layout(file_store: AsyncFileStore, cache_dir: Path):
    await file_store.put("/items?a=1", make_entry(b"hello", timestamp=123.5))

    data_path = cache_dir / "%2Fitems%3Fa%3D1.data"
    meta_path = cache_dir / "%2Fitems%3Fa%3D1.meta"
    assert data_path.read_bytes() == b"hello"
    assert json.loads(meta_path.read_text()) == {
        "timestamp": 123.5,
        "content_type": "text/plain",
        "is_binary": False,
        "status_code": 200,
    }
    assert (cache_dir / ".gitignore").is_file()


@pytest.mark.anyio
async def test_directory_is_created_lazily(cache_dir: Path):
    store = AsyncFileStore(base_path=cache_dir / "nested")
    assert not (cache_dir / "nested").exists()

    assert await store.get("/items") is None
    assert not (cache_dir / "nested").exists()

    await store.put("/items", make_entry())
    assert (cache_dir / "nested").is_dir()


@pytest.mark.anyio
async def test_default_directory(use_temp_dir):
    store = AsyncFileStore()
    await store.put("/items", make_entry())

    assert Path(".cache/respcache/%2Fitems.data").is_file()


@pytest.mark.anyio
@pytest.mark.parametrize("missing_suffix", [".data", ".meta"])
async def test_partial_entry_is_absent(file_store: AsyncFileStore, missing_suffix: str):
    await file_store.put("/items", make_entry())
    data_path, meta_path = file_store.paths_for("/items")
    (data_path if missing_suffix == ".data" else meta_path).unlink()

    assert await file_store.get("/items") is None


@pytest.mark.anyio
@pytest.mark.parametrize(
    "metadata",
    ["{not json", "[]", '{"timestamp": 1.0}', '{"timestamp": "yesterday", "content_type": "x", "is_binary": false}'],
)
async def test_malformed_metadata_is_absent(
    file_store: AsyncFileStore, metadata: str, caplog: pytest.LogCaptureFixture
):
    await file_store.put("/items", make_entry())
    _, meta_path = file_store.paths_for("/items")
    meta_path.write_text(metadata)

    with caplog.at_level("WARNING", logger="respcache"):
        assert await file_store.get("/items") is None

    assert any("Ignoring unusable cache entry" in message for message in caplog.messages)


@pytest.mark.anyio
async def test_unavailable_directory_fails_operations(tmp_path: Path, caplog: pytest.LogCaptureFixture):
    blocker = tmp_path / "not-a-directory"
    blocker.write_text("")
    store = AsyncFileStore(base_path=blocker)

    with caplog.at_level("WARNING", logger="respcache"):
        assert not await store.put("/items", make_entry())

    assert await store.get("/items") is None
    assert any("Could not store cache entry" in message for message in caplog.messages)


@pytest.mark.anyio
async def test_clear_keeps_unrelated_files(file_store: AsyncFileStore, cache_dir: Path):
    await file_store.put("/items", make_entry())
    (cache_dir / "notes.txt").write_text("keep me")

    assert await file_store.clear()

    assert sorted(path.name for path in cache_dir.iterdir()) == [".gitignore", "notes.txt"]


@pytest.mark.anyio
async def test_clear_and_scan_without_directory(cache_dir: Path):
    store = AsyncFileStore(base_path=cache_dir / "missing")

    assert await store.clear()
    assert [item async for item in store.scan()] == []


@pytest.mark.anyio
async def test_scan_skips_unreadable_metadata(file_store: AsyncFileStore):
    await file_store.put("/good", make_entry(timestamp=50.0))
    await file_store.put("/bad", make_entry())
    _, meta_path = file_store.paths_for("/bad")
    meta_path.write_text("{broken")

    assert [item async for item in file_store.scan()] == [("/good", 50.0)]


@pytest.mark.anyio
async def test_prune_removes_leftovers(file_store: AsyncFileStore, cache_dir: Path):
    await file_store.put("/good", make_entry())
    await file_store.put("/broken", make_entry())
    await file_store.put("/orphan", make_entry())
    _, broken_meta = file_store.paths_for("/broken")
    broken_meta.write_text("{broken")
    _, orphan_meta = file_store.paths_for("/orphan")
    orphan_meta.unlink()

    assert await file_store.prune(older_than=time.time() + 60) == 3

    assert sorted(path.name for path in cache_dir.iterdir()) == [".gitignore", "%2Fgood.data", "%2Fgood.meta"]
    assert await file_store.get("/good") is not None


@pytest.mark.anyio
async def test_prune_skips_recent_files(file_store: AsyncFileStore):
    await file_store.put("/orphan", make_entry())
    _, meta_path = file_store.paths_for("/orphan")
    meta_path.unlink()

    assert await file_store.prune(older_than=time.time() - 60) == 0
    assert file_store.paths_for("/orphan")[0].is_file()


@pytest.mark.anyio
async def test_prune_without_directory(cache_dir: Path):
    assert await AsyncFileStore(base_path=cache_dir / "missing").prune(older_than=time.time()) == 0


@pytest.mark.anyio
async def test_memory_store_has_nothing_to_prune():
    from respcache import AsyncInMemoryStore

    store = AsyncInMemoryStore()
    await store.put("/items", make_entry())

    assert await store.prune(older_than=time.time() + 60) == 0
    assert len(store) == 1
