"""
Seed script to populate system roles and default users.

Run this script to create:
- Database tables
- The predefined SYSTEM roles
- Default users (admin, manager, responder, viewer)

Passwords live in Appwrite; the seeded users are linked to their Appwrite
account by email on first token exchange.

Usage:
    uv run python -m scripts.seed_access
"""
import asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db, init_db
from app.features.access.engine import AccessControlEngine
from app.features.roles.service import RoleRegistry
from app.utils import get_logger


log = get_logger(__name__)


DEFAULT_USERS = {
    "admin": {
        "email": "admin@respondnow.io",
        "name": "System Administrator",
        "roles": ["SYSTEM_ADMIN", "ADMIN"],
    },
    "manager": {
        "email": "manager@respondnow.io",
        "name": "Incident Manager",
        "roles": ["MANAGER"],
    },
    "responder": {
        "email": "responder@respondnow.io",
        "name": "Incident Responder",
        "roles": ["RESPONDER"],
    },
    "viewer": {
        "email": "viewer@respondnow.io",
        "name": "Read Only Viewer",
        "roles": ["VIEWER"],
    },
}


async def seed_users(db: AsyncSession) -> int:
    """
    Create default users that do not exist yet.

    Returns:
        Number of users created
    """
    log.info("Creating default users...")
    engine = AccessControlEngine(db)
    created = 0

    for user_ref, user_config in DEFAULT_USERS.items():
        if await engine.users.find_by_email(user_config["email"]) is not None:
            log.info("User already exists: %s (%s)", user_ref, user_config["email"])
            continue

        await engine.create_user(
            user_ref=user_ref,
            email=user_config["email"],
            name=user_config["name"],
            role_names=user_config["roles"],
        )
        log.info("Created default user: %s (%s) with roles: %s", user_ref, user_config["email"], user_config["roles"])
        created += 1

    return created


async def main():
    """Main function to seed roles and users."""
    log.info("Starting access seeding...")

    log.info("Initializing database tables...")
    await init_db()

    async for db in get_db():
        try:
            await RoleRegistry(db).bootstrap_system_roles()
            created = await seed_users(db)
            log.info("Access seeding completed successfully! %d user(s) created", created)
        except Exception as e:
            log.error("Error seeding access data: %s", e, exc_info=True)
            await db.rollback()
            raise

        break  # Only use first session


if __name__ == "__main__":
    asyncio.run(main())
