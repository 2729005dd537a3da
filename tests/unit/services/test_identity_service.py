import bcrypt
import pytest

from portal.app.services.identity_service import IdentityService
from portal.domain.entities import Identity
from portal.domain.errors import IdentityAlreadyExistsError, StorageErrorCode


@pytest.mark.asyncio
async def test_create_principal_hashes_password(mock_uow):
    service = IdentityService(mock_uow)

    identity = await service.create_principal(" Olive@Example.com ", "SecurePass123!", "Olive")

    assert identity.email == "olive@example.com"
    assert identity.display_name == "Olive"
    assert identity.uid
    assert identity.password_hash.startswith("$2b$12$")
    assert bcrypt.checkpw(b"SecurePass123!", identity.password_hash.encode("utf-8"))
    mock_uow.identities.get_by_email.assert_awaited_once_with("olive@example.com")
    mock_uow.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_create_principal_rejects_duplicate_email(mock_uow):
    mock_uow.identities.get_by_email.return_value = Identity(
        email="olive@example.com", password_hash="x"
    )

    with pytest.raises(IdentityAlreadyExistsError) as exc_info:
        await IdentityService(mock_uow).create_principal("olive@example.com", "SecurePass123!")

    assert exc_info.value.code == StorageErrorCode.already_exists
    assert not exc_info.value.retryable
    mock_uow.identities.create.assert_not_called()


@pytest.mark.asyncio
async def test_delete_principal(mock_uow):
    mock_uow.identities.delete.return_value = False

    assert await IdentityService(mock_uow).delete_principal("gone") is False
    mock_uow.identities.delete.assert_awaited_once_with("gone")


@pytest.mark.asyncio
async def test_update_credential(mock_uow):
    assert await IdentityService(mock_uow).update_credential("u1", "NewPass456!") is True

    uid, password_hash = mock_uow.identities.update_password_hash.call_args.args
    assert uid == "u1"
    assert bcrypt.checkpw(b"NewPass456!", password_hash.encode("utf-8"))
