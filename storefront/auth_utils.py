# storefront/auth_utils.py
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.config import Settings
from storefront.db.database import get_db
from storefront.db.functions import get_user_by_id
from storefront.db.models import User
from storefront.errors import AuthenticationRequired, PermissionDenied

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/trpc/auth.login", auto_error=False)


def create_access_token(data: dict, settings: Settings) -> str:
    """Создает JWT токен с указанным временем истечения."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.access_token_expire_minutes)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str, settings: Settings) -> Optional[int]:
    """Возвращает id пользователя из токена или None, если токен не годится."""
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except jwt.ExpiredSignatureError:
        logger.info("rejected expired token")
        return None
    except jwt.InvalidTokenError as e:
        logger.warning("rejected invalid token: %s", e)
        return None
    user_id = payload.get("id")
    if not isinstance(user_id, int):
        return None
    return user_id


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


async def get_current_user(request: Request, token: Optional[str] = Depends(oauth2_scheme),
                           db: AsyncSession = Depends(get_db)) -> Optional[User]:
    """Определяет пользователя: сначала заголовок Bearer, потом cookie сессии."""
    settings = get_settings(request)
    token = token or request.cookies.get(settings.cookie_name)
    if not token:
        return None
    user_id = decode_access_token(token, settings)
    if user_id is None:
        return None
    return await get_user_by_id(db, user_id)


async def require_user(user: Optional[User] = Depends(get_current_user)) -> User:
    if user is None:
        raise AuthenticationRequired()
    return user


async def require_menu_creator(request: Request, user: User = Depends(require_user)) -> User:
    role = get_settings(request).menu_create_role
    if role and user.role.value != role:
        raise PermissionDenied(f"Creating menu items requires the {role} role")
    return user
