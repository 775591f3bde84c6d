"""
User directory: persistence access for users as consumed by access control.
"""
from typing import Any, Iterable, Mapping, Optional
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.base import utcnow
from app.core.errors import Conflict, NotFound
from app.features.users.models import User
from app.utils import get_logger, merge_refs


log = get_logger(__name__)

UPDATABLE_FIELDS = ("name", "email", "is_active")


class UserDirectory:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def find(self, user_ref: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.user_ref == user_ref))
        return result.scalar_one_or_none()

    async def get(self, user_ref: str) -> User:
        """Look up by user_ref, falling back to the storage id."""
        user = await self.find(user_ref)
        if user is None:
            user = await self.db.get(User, user_ref)
        if user is None:
            raise NotFound(f"User not found: {user_ref}")
        return user

    async def find_many(self, user_refs: Iterable[str]) -> dict[str, User]:
        user_refs = set(user_refs)
        if not user_refs:
            return {}
        result = await self.db.execute(select(User).where(User.user_ref.in_(user_refs)))
        return {user.user_ref: user for user in result.scalars().all()}

    async def find_by_appwrite_id(self, appwrite_id: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.appwrite_id == appwrite_id))
        return result.scalar_one_or_none()

    async def find_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def record_login(self, user: User, appwrite_id: Optional[str] = None) -> User:
        """Stamp last_login_at, linking the identity provider account if unlinked."""
        if appwrite_id and user.appwrite_id is None:
            log.info("Linking user %s to identity %s", user.user_ref, appwrite_id)
            user.appwrite_id = appwrite_id
        user.last_login_at = utcnow()
        await self.db.commit()
        return user

    async def list_all(self) -> list[User]:
        result = await self.db.execute(select(User))
        return list(result.scalars().all())

    async def search(
        self,
        active: Optional[bool] = None,
        role: Optional[str] = None,
        q: Optional[str] = None,
    ) -> list[User]:
        """
        Users ordered by username, optionally filtered.

        ``role`` matches direct roles only; ``q`` is a case-insensitive
        substring of username, name or email.
        """
        stmt = select(User).order_by(User.user_ref)
        if active is not None:
            stmt = stmt.where(User.is_active == active)
        if q:
            pattern = f"%{q}%"
            stmt = stmt.where(or_(
                User.user_ref.ilike(pattern),
                User.name.ilike(pattern),
                User.email.ilike(pattern),
            ))
        users = list((await self.db.execute(stmt)).scalars().all())
        if role:
            users = [user for user in users if role in (user.direct_role_names or ())]
        return users

    async def create(
        self,
        user_ref: str,
        email: str,
        name: str,
        role_names: Iterable[str] = (),
        appwrite_id: Optional[str] = None,
    ) -> User:
        """
        Create a user with direct roles only.

        Group memberships are added afterwards through the membership
        synchronizer so both sides are written.
        """
        result = await self.db.execute(
            select(User).where(or_(User.user_ref == user_ref, User.email == email))
        )
        existing = result.scalars().first()
        if existing is not None:
            if existing.user_ref == user_ref:
                raise Conflict(f"Username already exists: {user_ref}")
            raise Conflict(f"Email already exists: {email}")

        user = User(
            user_ref=user_ref,
            email=email,
            name=name,
            appwrite_id=appwrite_id,
            is_active=True,
            direct_role_names=merge_refs(role_names),
            group_refs=[],
        )
        self.db.add(user)
        await self.db.commit()
        log.info("Created user: %s", user_ref)
        return user

    async def update(self, user_ref: str, patch: Mapping[str, Any]) -> User:
        """Apply a partial profile update (name, email, is_active)."""
        user = await self.get(user_ref)
        changes = {
            key: value for key, value in patch.items()
            if key in UPDATABLE_FIELDS and value is not None
        }

        new_email = changes.get("email")
        if new_email and new_email != user.email:
            existing = await self.find_by_email(new_email)
            if existing is not None and existing.id != user.id:
                raise Conflict(f"Email already exists: {new_email}")

        for key, value in changes.items():
            setattr(user, key, value)
        await self.db.commit()
        log.info("Updated user %s: %s", user.user_ref, sorted(changes))
        return user

    async def set_roles(self, user_ref: str, role_names: Iterable[str]) -> User:
        user = await self.get(user_ref)
        user.direct_role_names = merge_refs(role_names)
        await self.db.commit()
        log.info("Updated roles for user %s: %s", user.user_ref, user.direct_role_names)
        return user

    async def delete(self, user_ref: str) -> User:
        user = await self.get(user_ref)
        await self.db.delete(user)
        await self.db.commit()
        log.info("Permanently deleted user: %s", user.user_ref)
        return user
