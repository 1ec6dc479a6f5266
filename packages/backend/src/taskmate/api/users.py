"""Users API — the assignee picker.

GET /api/users lists every user as {id, name, email, avatar}.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from taskmate.db.engine import get_db
from taskmate.schemas.user import UserSummary
from taskmate.services.user_service import UserService

router = APIRouter()


@router.get("/users", response_model=list[UserSummary])
async def list_users(db: AsyncSession = Depends(get_db)):
    return await UserService(db).list_all()
