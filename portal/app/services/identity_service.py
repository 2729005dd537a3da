"""
Identity service.

Owns email/password principals. Each call is its own committed unit of work.
"""

import bcrypt

from portal.app.services.unit_of_work import UnitOfWork
from portal.domain.entities import Identity
from portal.domain.errors import IdentityAlreadyExistsError

BCRYPT_ROUNDS = 12
# bcrypt rejects passwords longer than this
MAX_PASSWORD_BYTES = 72


class IdentityService:
    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    async def create_principal(
        self, email: str, password: str, display_name: str = ""
    ) -> Identity:
        """
        Create an identity with a bcrypt-hashed password.

        Raises:
            IdentityAlreadyExistsError: email is already registered
            StorageError: storage failure
        """
        email = email.strip().lower()
        password_hash = bcrypt.hashpw(
            password.encode("utf-8"), bcrypt.gensalt(BCRYPT_ROUNDS)
        ).decode("utf-8")

        async with self.uow:
            existing = await self.uow.identities.get_by_email(email)
            if existing:
                raise IdentityAlreadyExistsError(email)

            identity = Identity(
                email=email, password_hash=password_hash, display_name=display_name
            )
            identity = await self.uow.identities.create(identity)
            await self.uow.commit()
            return identity

    async def delete_principal(self, uid: str) -> bool:
        async with self.uow:
            deleted = await self.uow.identities.delete(uid)
            await self.uow.commit()
            return deleted

    async def update_credential(self, uid: str, new_password: str) -> bool:
        password_hash = bcrypt.hashpw(
            new_password.encode("utf-8"), bcrypt.gensalt(BCRYPT_ROUNDS)
        ).decode("utf-8")
        async with self.uow:
            updated = await self.uow.identities.update_password_hash(uid, password_hash)
            await self.uow.commit()
            return updated
