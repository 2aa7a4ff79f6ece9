import pytest

from pinshare import FileService
from pinshare.exceptions import AccessDeniedError, AuthenticationError, DuplicateAccountError, FileRecordNotFoundError
from pinshare.models import UserCreate

pytestmark = pytest.mark.asyncio


async def test_full_lifecycle(service: FileService, owner, other_user, make_staged, fake_pinata):
    """
    Checks the whole life of a file: upload, access, sharing, listing, deletion.
    """
    # --- ARRANGE ---
    staged = make_staged(b"This is a test file for the full lifecycle.", name="lifecycle.log")

    # 1. Upload
    # --- ACT ---
    saved = await service.upload_file(staged, owner.id, description="from pytest")

    # --- ASSERT ---
    assert saved.id is not None
    assert saved.name == "lifecycle.log"
    assert saved.owner_id == owner.id
    assert saved.uploader.username == "alice"
    assert saved.ipfs_hash in fake_pinata.pins

    # 2. Access before sharing
    # --- ACT / ASSERT ---
    assert (await service.get_file_for_user(saved.ipfs_hash, owner.id)).id == saved.id
    with pytest.raises(AccessDeniedError):
        await service.get_file_for_user(saved.ipfs_hash, other_user.id)

    # 3. Share
    # --- ACT ---
    access = await service.share_file(saved.ipfs_hash, owner.id, [other_user.id, owner.id])

    # --- ASSERT ---
    assert access == [other_user.id]
    url = await service.download_url_for_user(saved.ipfs_hash, other_user.id)
    assert url == f"https://gateway.test/ipfs/{saved.ipfs_hash}"
    assert [f.id for f in await service.list_user_files(other_user.id)] == [saved.id]

    # 4. Delete
    # --- ACT ---
    with pytest.raises(AccessDeniedError):
        await service.delete_file(saved.ipfs_hash, other_user.id)
    await service.delete_file(saved.ipfs_hash, owner.id)

    # --- ASSERT ---
    assert await service.list_user_files(owner.id) == []
    assert await service.list_user_files(other_user.id) == []
    assert (await service.get_profile(owner.id)).files == []
    assert fake_pinata.unpinned == [saved.ipfs_hash]
    with pytest.raises(FileRecordNotFoundError):
        await service.get_file_for_user(saved.ipfs_hash, owner.id)


async def test_delete_survives_unpin_failure(service: FileService, owner, make_staged, fake_pinata):
    saved = await service.upload_file(make_staged(b"stuck"), owner.id)
    fake_pinata.unpin_status = 500

    await service.delete_file(saved.ipfs_hash, owner.id)

    assert await service.file_repo.get_by_hash(saved.ipfs_hash) is None


async def test_public_listing_is_capped_and_newest_first(service: FileService, owner, make_staged):
    for i in range(4):
        await service.upload_file(make_staged(f"public {i}".encode(), name=f"p{i}.txt"), owner.id, is_public=True)
    await service.upload_file(make_staged(b"private"), owner.id)

    public = await service.list_public_files(limit=3)

    assert [f.name for f in public] == ["p3.txt", "p2.txt", "p1.txt"]


async def test_accounts(service: FileService, owner):
    with pytest.raises(DuplicateAccountError):
        await service.register_user(UserCreate(username="alice", email="other@example.com", password="secret1"))

    assert (await service.authenticate("alice@example.com", "secret1")).id == owner.id
    with pytest.raises(AuthenticationError):
        await service.authenticate("alice@example.com", "wrong")
    with pytest.raises(AuthenticationError):
        await service.authenticate("nobody@example.com", "secret1")


async def test_check_connections(service: FileService):
    statuses = await service.check_connections()

    assert statuses == {"database": "ok", "pinata": "ok"}
