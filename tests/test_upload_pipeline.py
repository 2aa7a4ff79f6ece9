import asyncio
import gzip
import logging
import uuid

import pytest

from pinshare.exceptions import (
    DatabaseError,
    DuplicateResourceError,
    InvalidInputError,
    PayloadTooLargeError,
    PinServiceConfigError,
    PinServiceError,
    UserNotFoundError,
)
from pinshare.repositories import PinataRepository, UserRepository

pytestmark = pytest.mark.asyncio

COMPRESSIBLE = b"lorem ipsum dolor sit amet, consectetur adipiscing elit\n" * 40_000  # ~2.2 MiB


async def test_small_file_is_pinned_as_is(service, owner, make_staged, fake_pinata, leftovers):
    """
    Full happy path for a file below the compression threshold:
    the exact bytes are pinned, a record is saved and linked to the owner,
    and nothing is left in the staging directory.
    """
    # ARRANGE
    staged = make_staged(b"hello world", name="hello.txt")

    # ACT
    record = await service.upload_file(staged, owner.id, is_public=True, description="greeting")

    # ASSERT
    assert fake_pinata.pins[record.ipfs_hash] == b"hello world"
    assert record.name == "hello.txt"
    assert record.size == 11
    assert record.original_size is None
    assert record.compressed is False
    assert record.mime_type == "text/plain"
    assert record.owner_id == owner.id
    assert record.is_public is True
    assert record.description == "greeting"
    assert record.access_list == []

    profile = await service.get_profile(owner.id)
    assert profile.files == [record.id]
    assert leftovers() == []


async def test_compressible_file_is_pinned_compressed(service, owner, make_staged, fake_pinata, leftovers):
    # ARRANGE
    staged = make_staged(COMPRESSIBLE, name="lorem.txt")

    # ACT
    record = await service.upload_file(staged, owner.id)

    # ASSERT
    pinned = fake_pinata.pins[record.ipfs_hash]
    assert record.compressed is True
    assert record.original_size == len(COMPRESSIBLE)
    assert record.size == len(pinned)
    assert record.size < record.original_size
    assert gzip.decompress(pinned) == COMPRESSIBLE
    assert leftovers() == []


async def test_compression_can_be_disabled(service, owner, make_staged, fake_pinata, service_config, leftovers):
    service_config.upload.compression_enabled = False
    staged = make_staged(COMPRESSIBLE, name="lorem.txt")

    record = await service.upload_file(staged, owner.id)

    assert record.compressed is False
    assert record.size == len(COMPRESSIBLE)
    assert fake_pinata.pins[record.ipfs_hash] == COMPRESSIBLE


async def test_pin_failure_leaves_no_record_and_no_file(service, owner, make_staged, fake_pinata, leftovers):
    # ARRANGE
    fake_pinata.pin_status = 502
    staged = make_staged(COMPRESSIBLE, name="lorem.txt")

    # ACT
    with pytest.raises(PinServiceError) as exc_info:
        await service.upload_file(staged, owner.id)

    # ASSERT
    assert exc_info.value.status_code == 502
    assert await service.list_user_files(owner.id) == []
    assert leftovers() == []


async def test_oversize_upload_is_rejected_before_pinning(service, owner, make_staged, fake_pinata, service_config, leftovers):
    staged = make_staged(b"\x00" * (service_config.upload.max_upload_bytes + 1), name="big.bin")

    with pytest.raises(PayloadTooLargeError, match="10MB"):
        await service.upload_file(staged, owner.id)

    assert fake_pinata.pins == {}
    assert leftovers() == []


async def test_empty_upload_is_rejected(service, owner, make_staged, fake_pinata, leftovers):
    staged = make_staged(b"", name="empty.txt")

    with pytest.raises(InvalidInputError):
        await service.upload_file(staged, owner.id)

    assert fake_pinata.pins == {}
    assert leftovers() == []


async def test_missing_staged_file_is_rejected(service, owner, make_staged):
    staged = make_staged(b"data")
    staged.path.unlink()

    with pytest.raises(InvalidInputError, match="No file uploaded"):
        await service.upload_file(staged, owner.id)


async def test_unknown_owner_is_rejected(service, make_staged, fake_pinata, leftovers):
    staged = make_staged(b"data")

    with pytest.raises(UserNotFoundError):
        await service.upload_file(staged, uuid.uuid4())

    assert fake_pinata.pins == {}
    assert leftovers() == []


async def test_unconfigured_gateway_fails_fast(service, owner, make_staged, service_config, leftovers):
    service.orchestrator._pin = PinataRepository(service_config.pinata.model_copy(update={"api_key": None}))
    staged = make_staged(b"data")

    with pytest.raises(PinServiceConfigError, match="Pinata configuration not available"):
        await service.upload_file(staged, owner.id)

    assert leftovers() == []
    await service.orchestrator._pin.aclose()


async def test_same_content_twice_yields_one_record(service, owner, other_user, make_staged, fake_pinata, leftovers):
    """
    Identical bytes get the same content address. The second upload is
    refused and does not unpin the content the first record points at.
    """
    # ARRANGE
    first = await service.upload_file(make_staged(b"same bytes", name="a.txt"), owner.id)

    # ACT
    with pytest.raises(DuplicateResourceError):
        await service.upload_file(make_staged(b"same bytes", name="b.txt"), other_user.id)

    # ASSERT
    assert (await service.file_repo.get_by_hash(first.ipfs_hash)).name == "a.txt"
    assert fake_pinata.unpinned == []
    assert await service.list_user_files(other_user.id) == []
    assert leftovers() == []


async def test_record_failure_unpins_content(service, owner, make_staged, fake_pinata, monkeypatch, leftovers):
    async def _fail(record):
        raise DatabaseError("disk full")

    monkeypatch.setattr(service.file_repo, "create", _fail)

    with pytest.raises(DatabaseError):
        await service.upload_file(make_staged(b"orphan"), owner.id)

    assert len(fake_pinata.unpinned) == 1
    assert fake_pinata.pins == {}
    assert leftovers() == []


async def test_owner_link_failure_does_not_fail_upload(service, owner, make_staged, monkeypatch, caplog):
    async def _fail(self, user_id, file_id):
        raise DatabaseError("link failed")

    monkeypatch.setattr(UserRepository, "append_file", _fail)

    with caplog.at_level(logging.ERROR, logger="pinshare.pipeline.orchestrator"):
        record = await service.upload_file(make_staged(b"content"), owner.id)

    assert await service.file_repo.get_by_hash(record.ipfs_hash) is not None
    assert "not linked to its owner" in caplog.text


async def test_cancelled_upload_cleans_up(service, owner, make_staged, monkeypatch, leftovers):
    async def _cancelled(path, metadata):
        raise asyncio.CancelledError()

    monkeypatch.setattr(service.pin, "submit", _cancelled)

    with pytest.raises(asyncio.CancelledError):
        await service.upload_file(make_staged(COMPRESSIBLE, name="lorem.txt"), owner.id)

    assert leftovers() == []
    assert await service.list_user_files(owner.id) == []


async def test_concurrent_uploads_are_independent(service, owner, make_staged, leftovers):
    staged = [make_staged(f"file number {i}".encode(), name=f"f{i}.txt") for i in range(5)]

    records = await asyncio.gather(*(service.upload_file(s, owner.id) for s in staged))

    assert len({r.ipfs_hash for r in records}) == 5
    assert len(await service.list_user_files(owner.id)) == 5
    assert leftovers() == []


async def test_concurrent_identical_uploads_yield_one_record(service, owner, other_user, make_staged, fake_pinata, leftovers):
    """
    Two simultaneous uploads of the same bytes race on the unique content
    address: one record is written, the loser gets DuplicateResourceError and
    the shared pin stays in place.
    """
    # ARRANGE
    first = make_staged(b"racing bytes", name="a.txt")
    second = make_staged(b"racing bytes", name="b.txt")

    # ACT
    results = await asyncio.gather(
        service.upload_file(first, owner.id),
        service.upload_file(second, other_user.id),
        return_exceptions=True,
    )

    # ASSERT
    records = [r for r in results if not isinstance(r, BaseException)]
    errors = [r for r in results if isinstance(r, BaseException)]
    assert len(records) == 1
    assert len(errors) == 1 and isinstance(errors[0], DuplicateResourceError)
    assert (await service.file_repo.get_by_hash(records[0].ipfs_hash)).id == records[0].id
    assert fake_pinata.unpinned == []
    assert leftovers() == []


async def test_unwrapped_store_error_unpins_content(service, owner, make_staged, fake_pinata, monkeypatch, leftovers):
    async def _dropped_connection(record):
        raise ConnectionRefusedError(111, "Connect call failed")

    monkeypatch.setattr(service.file_repo, "create", _dropped_connection)

    with pytest.raises(ConnectionRefusedError):
        await service.upload_file(make_staged(b"orphan after driver error"), owner.id)

    assert len(fake_pinata.unpinned) == 1
    assert fake_pinata.pins == {}
    assert leftovers() == []
