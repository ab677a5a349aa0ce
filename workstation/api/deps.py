from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.database import get_db
from ..services.user_service import UserService
from ..services.auth_service import verify_session_token


async def require_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    token = request.cookies.get(settings.session_cookie_name)
    if not token:
        raise HTTPException(status_code=401, detail="No session")

    payload = verify_session_token(token)
    if not payload or not payload.get("sub"):
        raise HTTPException(status_code=401, detail="Invalid session")

    user = await UserService(db).get_user(str(payload["sub"]))
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user
