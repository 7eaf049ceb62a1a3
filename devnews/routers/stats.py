from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from devnews.auth import require_admin
from devnews.database import get_session_factory
from devnews.errors import EnvelopeRoute, success
from devnews.services import stats_service

router = APIRouter(prefix="/api/stats", tags=["stats"], route_class=EnvelopeRoute)


@router.get("", dependencies=[Depends(require_admin)])
async def get_stats(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    return success(await stats_service.get_stats(session_factory))
