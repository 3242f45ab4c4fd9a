"""Tests for ObjectStore against the in-memory catalog."""

import io
import random

import pytest

from common.constants import PROP_INDEX, PROP_PRIMARY, PROP_SHEETS, PROP_SIZE
from common.exceptions import (
    CodecError,
    IncompleteObjectError,
    InvalidConfigurationError,
    NameResolutionError,
    ObjectNotFoundError,
    PartialCloneError,
    PartialDeleteError,
    RemoteTransportError,
    SourceSizeMismatchError,
)
from common.types import CompressionPolicy, TypeTag, UploadStrategy
from store.object_store import ObjectStore, ensure_container
from store.progress import TransferProgress


def payload(size: int, seed: int = 7) -> bytes:
    return random.Random(seed).randbytes(size)


def test_upload_download_round_trip_across_chunks(store, fake_catalog):
    """A payload larger than one chunk is split and reassembled exactly."""
    data = payload(100)

    stored = store.upload("blob.bin", data)

    assert stored.chunk_count == 7
    assert stored.size == 100
    assert store.download(stored.id) == data

    chunks = fake_catalog.chunk_documents()
    assert len(chunks) == 7
    names = sorted(doc.name for doc in chunks)
    assert "blob.bin" in names
    assert "blob.bin.part6" in names


def test_chunk_metadata_is_recorded_on_every_sheet(store, fake_catalog):
    """Every chunk carries its index, the chunk count and the original size."""
    stored = store.upload("meta.bin", payload(40))

    indexes = set()
    for doc in fake_catalog.chunk_documents():
        assert doc.properties[PROP_SHEETS] == "3"
        assert doc.properties[PROP_SIZE] == "40"
        indexes.add(int(doc.properties[PROP_INDEX]))
        if doc.id != stored.id:
            assert doc.properties[PROP_PRIMARY] == stored.id
    assert indexes == {0, 1, 2}


@pytest.mark.parametrize("compression", list(CompressionPolicy))
def test_round_trip_with_each_compression(store, compression):
    """Compressed uploads come back byte-identical."""
    data = b"sheet " * 50 + payload(30)

    stored = store.upload("text.txt", data, compression=compression)

    assert stored.compression is compression
    assert store.download(stored.id) == data


def test_upload_from_stream_with_declared_size(store):
    """Stream sources are chunked lazily using the declared size."""
    data = payload(70, seed=3)

    stored = store.upload("stream.bin", io.BytesIO(data), size=len(data), strategy=UploadStrategy.MULTIPART)

    assert stored.chunk_count == 5
    assert store.download(stored.id) == data


def test_upload_from_stream_without_size(store):
    """A stream without a declared size is read fully first."""
    data = payload(33)

    stored = store.upload("unsized.bin", io.BytesIO(data))

    assert stored.size == 33
    assert store.download(stored.id) == data


def test_empty_file_occupies_one_chunk(store, fake_catalog):
    """An empty file is still stored as a single addressable sheet."""
    stored = store.upload("empty.txt", b"")

    assert stored.chunk_count == 1
    assert len(fake_catalog.chunk_documents()) == 1
    assert store.download(stored.id) == b""


def test_upload_reports_progress(store):
    """Progress receives the encoded bytes of every chunk."""
    progress = TransferProgress("blob.bin")

    store.upload("blob.bin", payload(50), progress=progress)

    assert progress.transferred > 50


@pytest.mark.parametrize("max_chunk_bytes", [0, -1])
def test_upload_rejects_bad_settings(store, max_chunk_bytes):
    """Non-positive chunk sizes and unknown compression are configuration errors."""
    with pytest.raises(InvalidConfigurationError):
        store.upload("x.bin", b"data", max_chunk_bytes=max_chunk_bytes)
    with pytest.raises(InvalidConfigurationError):
        store.upload("x.bin", b"data", compression="rar")


def test_upload_stream_shorter_than_declared_size(store, fake_catalog):
    """A stream ending early fails instead of storing an unreadable object."""
    with pytest.raises(SourceSizeMismatchError, match="ended after 20 of the declared 32 bytes"):
        store.upload("short.bin", io.BytesIO(b"x" * 20), size=32)

    assert "short.bin" in [doc.name for doc in fake_catalog.chunk_documents()]


def test_upload_stream_longer_than_declared_size(store, fake_catalog):
    """Extra bytes within the first chunk are caught before anything is created."""
    with pytest.raises(SourceSizeMismatchError, match="larger than the declared 5 bytes"):
        store.upload("long.bin", io.BytesIO(b"y" * 10), size=5)

    assert fake_catalog.chunk_documents() == []


def test_upload_stream_longer_across_chunks(store):
    with pytest.raises(SourceSizeMismatchError):
        store.upload("grown.bin", io.BytesIO(b"z" * 40), size=20)


def test_upload_failure_propagates(store, fake_catalog):
    """A failing chunk aborts the upload with the transport error."""
    fake_catalog.fail_create.add("big.bin.part2")

    with pytest.raises(RemoteTransportError):
        store.upload("big.bin", payload(64))


def test_list_uploads_is_idempotent(store):
    """Listing twice without changes returns the same objects."""
    first = store.upload("one.bin", payload(20))
    second = store.upload("two.bin", payload(5))

    listing = store.list_uploads()

    assert listing == store.list_uploads()
    assert {obj.id for obj in listing} == {first.id, second.id}
    assert {obj.chunk_count for obj in listing} == {2, 1}


def test_list_uploads_ignores_foreign_documents(store, fake_catalog, container):
    """Only primary chunks of the container are listed."""
    store.upload("mine.bin", payload(40))
    fake_catalog.add_external("Budget", TypeTag.CHUNK, b"", parent_id=container.id)
    fake_catalog.add_external("Elsewhere", TypeTag.CHUNK, b"", parent_id="otherfolder")

    assert [obj.name for obj in store.list_uploads()] == ["mine.bin"]


def test_delete_removes_every_chunk(store, fake_catalog):
    """After delete, neither the object nor any chunk remains."""
    stored = store.upload("gone.bin", payload(50))

    store.delete(stored.id)

    assert store.list_uploads() == []
    assert fake_catalog.chunk_documents() == []


def test_partial_delete_reports_exact_survivors(store, fake_catalog):
    """A failed chunk deletion is reported and nothing else survives."""
    stored = store.upload("stubborn.bin", payload(40))
    victim = next(doc.id for doc in fake_catalog.chunk_documents() if doc.properties[PROP_INDEX] == "1")
    fake_catalog.fail_delete.add(victim)

    with pytest.raises(PartialDeleteError) as exc_info:
        store.delete(stored.id)

    assert exc_info.value.surviving_ids == (victim,)
    assert [doc.id for doc in fake_catalog.chunk_documents()] == [victim]


def test_delete_by_name(store):
    """Names are resolved before deleting."""
    store.upload("notes.md", payload(10))

    store.delete("notes.md")

    assert store.list_uploads() == []


def test_download_by_name_with_dot(store):
    """A dotted name is not id-like and is resolved by name."""
    data = payload(45)
    stored = store.upload("report.pdf", data)

    assert store.download("report.pdf") == data
    assert store.download("report") == data
    assert store.download(stored.id) == data
    assert store.get_id_of_name("report.pdf") == stored.id


def test_download_id_like_name_falls_back_to_lookup(store):
    """An id-like token that is not an id is retried as a name."""
    data = payload(12)
    store.upload("README", data)

    assert store.download("README") == data


def test_download_through_secondary_chunk_id(store, fake_catalog):
    """Any chunk id of an object resolves to the whole object."""
    data = payload(40)
    store.upload("any.bin", data)
    secondary = next(doc.id for doc in fake_catalog.chunk_documents() if doc.properties[PROP_INDEX] == "2")

    assert store.download(secondary) == data


def test_download_unknown_object(store):
    """Unknown names and ids fail with ObjectNotFoundError."""
    with pytest.raises(ObjectNotFoundError):
        store.download("missing.txt")
    with pytest.raises(ObjectNotFoundError):
        store.download("doc99999")


def test_download_missing_chunk_is_incomplete(store, fake_catalog):
    """A removed secondary chunk makes the object incomplete."""
    stored = store.upload("holey.bin", payload(50))
    victim = next(doc.id for doc in fake_catalog.chunk_documents() if doc.properties[PROP_INDEX] == "1")
    del fake_catalog.documents[victim]

    with pytest.raises(IncompleteObjectError):
        store.download(stored.id)


def test_download_failed_export_is_incomplete(store, fake_catalog):
    """A chunk that cannot be exported fails the whole download."""
    stored = store.upload("flaky.bin", payload(50))
    victim = next(doc.id for doc in fake_catalog.chunk_documents() if doc.properties[PROP_INDEX] == "3")
    fake_catalog.fail_export.add(victim)

    with pytest.raises(IncompleteObjectError):
        store.download(stored.id)


def test_download_corrupt_chunk_raises_codec_error(store, fake_catalog):
    """Damaged sheet text is never returned as data."""
    stored = store.upload("corrupt.bin", payload(30))
    body = fake_catalog.bodies[stored.id]
    fake_catalog.bodies[stored.id] = body[: len(body) // 2]

    with pytest.raises(CodecError):
        store.download(stored.id)


def test_download_to_writes_file(store, tmp_path):
    """download_to saves the object under its stored name."""
    data = payload(25)
    store.upload("photo.jpg", data)

    target = store.download_to("photo.jpg", tmp_path / "out")

    assert target == tmp_path / "out" / "photo.jpg"
    assert target.read_bytes() == data


def test_download_many_isolates_failures(store):
    """One unknown target does not stop the rest of the batch."""
    objects = {f"file{i}.dat": payload(10 + i * 9, seed=i) for i in range(4)}
    for name, data in objects.items():
        store.upload(name, data)
    targets = ["file0.dat", "file1.dat", "nothing.dat", "file2.dat", "file3.dat"]

    results = store.download_many(targets)

    assert [r.target for r in results] == targets
    assert [r.ok for r in results] == [True, True, False, True, True]
    assert isinstance(results[2].error, ObjectNotFoundError)
    for result in results:
        if result.ok:
            assert result.value == objects[result.target]


def test_download_many_isolates_malformed_metadata(store, monkeypatch):
    """Value errors from a single target are reported like any other failure."""
    real_download = store.download

    def download(target):
        if target == "bad.bin":
            raise ValueError("invalid literal for int() with base 10: 'three'")
        return real_download(target)

    store.upload("good.bin", payload(20))
    monkeypatch.setattr(store, "download", download)

    results = store.download_many(["bad.bin", "good.bin"])

    assert [r.ok for r in results] == [False, True]
    assert isinstance(results[0].error, ValueError)
    assert results[1].value == payload(20)


def test_delete_many_reports_each_target(store):
    """Batch delete returns one result per target in input order."""
    store.upload("a.bin", payload(20))
    store.upload("b.bin", payload(20))

    results = store.delete_many(["a.bin", "ghost.bin", "b.bin"])

    assert [r.ok for r in results] == [True, False, True]
    assert store.list_uploads() == []


def test_clone_with_same_policy_copies_server_side(store, fake_catalog):
    """Matching chunk size and compression clone without exporting any chunk."""
    data = payload(50)
    source = store.upload("orig.bin", data)
    exports_before = len(fake_catalog.calls_of("export_document_body"))

    clone = store.clone(source.id)

    assert clone.id != source.id
    assert clone.chunk_count == source.chunk_count
    assert len(fake_catalog.calls_of("clone_document")) == source.chunk_count
    assert len(fake_catalog.calls_of("export_document_body")) == exports_before
    assert store.download(clone.id) == data
    assert store.download(source.id) == data


def test_clone_with_new_policy_re_encodes(store, fake_catalog):
    """A different compression policy falls back to download and upload."""
    data = b"abc" * 40
    source = store.upload("plain.txt", data)

    clone = store.clone("plain.txt", compression=CompressionPolicy.ZIP)

    assert fake_catalog.calls_of("clone_document") == []
    assert clone.compression is CompressionPolicy.ZIP
    assert clone.id != source.id
    assert store.download(clone.id) == data


def test_clone_imports_external_document(store, fake_catalog, container):
    """External documents are exported and stored as new objects."""
    fake_catalog.add_external("Minutes", TypeTag.DOCUMENT, b"docx bytes", parent_id=container.id)

    clone = store.clone("Minutes")

    assert clone.name == "Minutes.docx"
    assert store.download(clone.id) == b"docx bytes"


def test_clone_unknown_name(store):
    """A name matching nothing cannot be cloned."""
    with pytest.raises(NameResolutionError):
        store.clone("nobody knows.txt")


def test_clone_rejects_zero_chunk_size(store):
    """A zero chunk size is rejected rather than replaced by the default."""
    source = store.upload("orig.bin", payload(20))

    with pytest.raises(InvalidConfigurationError):
        store.clone(source.id, max_chunk_bytes=0)


def test_partial_clone_reports_orphaned_documents(store, fake_catalog):
    """A failed chunk copy names every document the clone already created."""
    source = store.upload("orig.bin", payload(50))
    victim = next(doc.id for doc in fake_catalog.chunk_documents() if doc.properties[PROP_INDEX] == "2")
    fake_catalog.fail_clone.add(victim)

    with pytest.raises(PartialCloneError, match=victim) as exc_info:
        store.clone(source.id)

    orphaned = exc_info.value.orphaned_ids
    assert len(orphaned) == source.chunk_count - 1
    assert fake_catalog.documents[orphaned[0]].properties[PROP_INDEX] == "0"
    assert all(doc_id in fake_catalog.documents for doc_id in orphaned)
    assert source.id not in orphaned


def test_ensure_container_reuses_existing_folder(fake_catalog):
    """The container is created once and found afterwards."""
    first = ensure_container(fake_catalog, "vault")
    second = ensure_container(fake_catalog, "vault")

    assert first == second
    assert fake_catalog.calls_of("create_folder") == ["vault"]


def test_open_binds_store_to_container(fake_catalog):
    """ObjectStore.open resolves the container before use."""
    with ObjectStore.open(fake_catalog, "vault", default_chunk_size=8) as object_store:
        stored = object_store.upload("tiny.txt", b"hello world")
        assert object_store.container.name == "vault"
        assert object_store.download(stored.id) == b"hello world"
