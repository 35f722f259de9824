"""UserRepository - users scoped to tenants, unique by email."""

from typing import Any, List, Mapping, Optional, Union

import structlog

from ..db.session import ManagedTransaction
from ..exceptions import ValidationError
from ..models import NewUser, User, utc_now
from ..query import q
from .base import BaseRepository, new_id

logger = structlog.get_logger(__name__)

LABEL = User.label


class UserRepository(BaseRepository[User]):
    entity = User
    variable = "u"

    async def create(self, spec: Union[NewUser, Mapping[str, Any]]) -> User:
        """
        Create a user.

        Raises:
            ValidationError: If the input is invalid or the email is taken

        The email check runs before the write; the ``user_email_unique``
        constraint catches a concurrent registration of the same address.
        """
        data = self._validate(NewUser, spec)
        now = utc_now()
        user = User(
            id=new_id("user"),
            user_id=data.user_id,
            email=data.email,
            roles=data.roles,
            tenant_id=data.tenant_id,
            created_at=now,
            updated_at=now,
        )

        async def create_user(tx: ManagedTransaction) -> User:
            taken = await tx.run(
                q.match_node("u", LABEL, {"email": data.email}).ret("u.id").all
            )
            if taken:
                raise ValidationError(
                    f"Email {data.email} is already registered",
                    entity=LABEL,
                    validation_errors=["email: already registered"],
                )
            await self._create_unique(
                tx,
                q.create_node("u", LABEL, user.to_properties()).all,
                "email: already registered",
                f"Email {data.email} is already registered",
            )
            return user

        created = await self._tx.write(create_user)
        logger.info(f"Created user {created.id}", tenant_id=created.tenant_id)
        return created

    async def find_by_id(self, user_id: str) -> Optional[User]:
        return await self._read_one(q.match_node("u", LABEL, {"id": user_id}).ret("u").one)

    async def find_by_email(self, email: str) -> Optional[User]:
        return await self._read_one(
            q.match_node("u", LABEL, {"email": email.strip().lower()}).ret("u").one
        )

    async def list_by_tenant(self, tenant_id: str, limit: int = 100) -> List[User]:
        return await self._read_all(
            q.match_node("u", LABEL, {"tenantId": tenant_id})
            .ret("u")
            .order_by("u.email")
            .limit(limit)
            .all
        )


__all__ = ["UserRepository"]
