import json

import pytest

from docintel.api.exceptions import StorageError
from docintel.models.storage import StorageItem, StorageQuery, StoredRecord, StoreOptions
from docintel.services.storage import IndexedFileRepository, KeyValueFileRepository, MemoryRepository
from docintel.services.storage.indexed_repository import DATA_FILE_NAME
from docintel.services.storage.keyvalue_repository import RECORD_SUFFIX, STORAGE_PREFIX


@pytest.fixture(params=["memory", "indexed", "keyvalue"])
def repository(request, tmp_path):
    if request.param == "memory":
        return MemoryRepository()
    if request.param == "indexed":
        return IndexedFileRepository(tmp_path / "indexed")
    return KeyValueFileRepository(tmp_path / "keyvalue")


async def seed(repository):
    await repository.store("alpha", {"n": 1}, StoreOptions(category="documents", tags=["finance"], notes="Q1 numbers"))
    await repository.store("beta", {"n": 2}, StoreOptions(category="documents", service_id="docintel"))
    await repository.store("gamma", {"n": 3}, StoreOptions(category="settings", tags=["ui"]))


# Contract shared by every backend

@pytest.mark.asyncio
async def test_operations_require_initialization(repository):
    with pytest.raises(StorageError):
        await repository.store("key", "value")


@pytest.mark.asyncio
async def test_store_retrieve_overwrite_remove(repository):
    await repository.initialize()

    first = await repository.store("doc", {"title": "one"})
    assert first.version == 1
    assert first.category == "general"
    assert await repository.exists("doc")

    second = await repository.store("doc", {"title": "two"})
    assert second.version == 2
    assert second.created == first.created

    record = await repository.retrieve("doc")
    assert record.value == {"title": "two"}

    await repository.remove("doc")
    await repository.remove("doc")
    assert await repository.retrieve("doc") is None
    assert not await repository.exists("doc")
    await repository.shutdown()


@pytest.mark.asyncio
async def test_retrieved_records_are_copies(repository):
    await repository.initialize()
    await repository.store("doc", {"items": [1, 2]})

    record = await repository.retrieve("doc")
    record.value["items"].append(3)

    assert (await repository.retrieve("doc")).value == {"items": [1, 2]}
    await repository.shutdown()


@pytest.mark.asyncio
async def test_batch_operations(repository):
    await repository.initialize()
    stored = await repository.store_batch([
        StorageItem(key="a", value=1),
        StorageItem(key="b", value=2, options=StoreOptions(category="other")),
    ])
    assert [record.key for record in stored] == ["a", "b"]

    records = await repository.retrieve_batch(["a", "missing", "b"])
    assert records[1] is None
    assert [records[0].value, records[2].value] == [1, 2]

    await repository.remove_batch(["a", "b"])
    assert await repository.retrieve_all() == []
    await repository.shutdown()


@pytest.mark.asyncio
async def test_search_by_envelope_fields(repository):
    await repository.initialize()
    await seed(repository)

    by_category = await repository.search(StorageQuery(categories=["documents"]))
    assert {record.key for record in by_category} == {"alpha", "beta"}

    assert [r.key for r in await repository.search(StorageQuery(tags=["ui"]))] == ["gamma"]
    assert [r.key for r in await repository.search(StorageQuery(text="q1"))] == ["alpha"]
    assert [r.key for r in await repository.search(StorageQuery(services=["docintel"]))] == ["beta"]
    assert len(await repository.search(StorageQuery(limit=2))) == 2
    assert len(await repository.search(StorageQuery(offset=2))) == 1

    documents = await repository.retrieve_by_category("documents")
    assert {record.key for record in documents} == {"alpha", "beta"}
    await repository.shutdown()


@pytest.mark.asyncio
async def test_backup_and_restore(repository):
    await repository.initialize()
    await seed(repository)

    snapshot = await repository.backup()
    assert snapshot.version == "1.0"
    assert snapshot.metadata.total_items == 3
    assert snapshot.metadata.categories == ["documents", "settings"]

    await repository.store("delta", 4)
    await repository.store("alpha", {"n": 100})
    await repository.restore(snapshot)

    assert {record.key for record in await repository.retrieve_all()} == {"alpha", "beta", "gamma"}
    restored = await repository.retrieve("alpha")
    assert restored.value == {"n": 1}
    assert restored.version == 1
    assert (await repository.validate_integrity()).valid
    await repository.shutdown()


@pytest.mark.asyncio
async def test_restore_accepts_serialized_snapshot(repository):
    await repository.initialize()
    await seed(repository)
    payload = json.loads((await repository.backup()).model_dump_json())

    await repository.remove_batch(["alpha", "beta", "gamma"])
    await repository.restore(payload)

    assert len(await repository.retrieve_all()) == 3
    await repository.shutdown()


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [
    {"records": []},
    {"configurations": "nope", "metadata": {"source": "x", "total_items": 0}},
    {"configurations": [{"value": 1}], "metadata": {"source": "x", "total_items": 1}},
])
async def test_malformed_restore_is_rejected(repository, payload):
    await repository.initialize()
    await repository.store("keep", 1)

    with pytest.raises(StorageError):
        await repository.restore(payload)

    assert (await repository.retrieve("keep")).value == 1
    await repository.shutdown()


@pytest.mark.asyncio
async def test_stats_and_integrity_on_healthy_repository(repository):
    await repository.initialize()
    await seed(repository)

    stats = await repository.get_stats()
    assert stats.item_count == 3
    assert stats.total_size > 0

    result = await repository.validate_integrity()
    assert result.valid
    assert result.errors == []
    assert await repository.is_healthy()

    await repository.cleanup()
    await repository.shutdown()


# Indexed file backend

@pytest.mark.asyncio
async def test_indexed_repository_persists_between_instances(tmp_path):
    first = IndexedFileRepository(tmp_path)
    await first.initialize()
    await first.store("doc", {"title": "kept"}, StoreOptions(category="documents"))
    await first.shutdown()

    second = IndexedFileRepository(tmp_path)
    await second.initialize()
    assert (await second.retrieve("doc")).value == {"title": "kept"}
    assert [r.key for r in await second.retrieve_by_category("documents")] == ["doc"]
    await second.shutdown()


@pytest.mark.asyncio
async def test_indexed_repository_reports_and_cleans_corrupted_records(tmp_path):
    good = StoredRecord(key="good", value=1).model_dump(mode="json")
    (tmp_path / DATA_FILE_NAME).write_text(
        json.dumps({"records": {"good": good, "bad": {"value": 1, "created": "yesterday"}}}),
        encoding="utf-8",
    )

    repository = IndexedFileRepository(tmp_path)
    await repository.initialize()

    result = await repository.validate_integrity()
    assert not result.valid
    assert result.corrupted_keys == ["bad"]
    assert (await repository.retrieve("good")).value == 1

    await repository.cleanup()
    assert (await repository.validate_integrity()).valid
    assert (await repository.get_stats()).last_cleanup is not None
    await repository.shutdown()


@pytest.mark.asyncio
async def test_indexed_repository_starts_empty_on_unparseable_file(tmp_path):
    (tmp_path / DATA_FILE_NAME).write_text("{ not json", encoding="utf-8")
    repository = IndexedFileRepository(tmp_path)
    await repository.initialize()
    assert await repository.retrieve_all() == []
    await repository.shutdown()


# Key-value file backend

@pytest.mark.asyncio
async def test_keyvalue_repository_detects_missing_and_orphaned_files(tmp_path):
    repository = KeyValueFileRepository(tmp_path)
    await repository.initialize()
    await repository.store("indexed", 1)
    await repository.store("vanishing", 2)

    repository._record_path("vanishing").unlink()
    orphan = tmp_path / f"{STORAGE_PREFIX}orphan{RECORD_SUFFIX}"
    orphan.write_text(StoredRecord(key="orphan", value=3).model_dump_json(), encoding="utf-8")

    result = await repository.validate_integrity()
    assert not result.valid
    assert set(result.missing_keys) == {"vanishing", "orphan"}

    await repository.cleanup()
    assert not orphan.exists()
    await repository.shutdown()


@pytest.mark.asyncio
async def test_keyvalue_repository_rebuilds_lost_index(tmp_path):
    repository = KeyValueFileRepository(tmp_path)
    await repository.initialize()
    await repository.store("docs/2024 report", {"n": 1}, StoreOptions(category="documents"))
    await repository.shutdown()

    repository.index_file.unlink()

    reopened = KeyValueFileRepository(tmp_path)
    await reopened.initialize()
    assert await reopened.exists("docs/2024 report")
    assert [r.key for r in await reopened.retrieve_by_category("documents")] == ["docs/2024 report"]
    await reopened.shutdown()
