from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.access.engine import AccessControlEngine


async def get_access_engine(db: AsyncSession = Depends(get_db)) -> AccessControlEngine:
    return AccessControlEngine(db)
