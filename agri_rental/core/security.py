from datetime import datetime, timezone, timedelta

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import jwt, JWTError
from passlib.context import CryptContext
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from agri_rental.core.config import settings
from agri_rental.core.enums import UserRole
from agri_rental.core.exceptions import ForbiddenError
from agri_rental.db.session import get_db
from agri_rental.models.user import User

JWT_ALGORITHM = "HS256"

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/login")
pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # unknown or malformed hash, e.g. a placeholder on a seeded account
        return False


def create_access_token(user: User, expires_minutes: int | None = None) -> str:
    expires = expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES
    claims = {
        "sub": str(user.id),
        "phone": user.phone,
        "role": str(user.role),
        "exp": datetime.now(timezone.utc) + timedelta(minutes=expires),
    }
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=JWT_ALGORITHM)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(token: str = Depends(oauth2_scheme), db: AsyncSession = Depends(get_db)) -> User:
    try:
        claims = jwt.decode(token, settings.SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except JWTError:
        raise _unauthorized("Invalid token")
    user_id = claims.get("sub")
    if user_id is None:
        raise _unauthorized("Invalid token")

    res = await db.execute(select(User).where(User.id == user_id))
    user = res.scalars().first()
    if not user:
        raise _unauthorized("User not found")
    # a token minted before a role change must not keep the old role
    if claims.get("role") != str(user.role):
        raise _unauthorized("Token role is stale, log in again")
    return user


def require_roles(*roles: UserRole):
    """Dependency admitting only users holding one of ``roles``"""
    allowed = {str(role) for role in roles}

    async def _guard(user: User = Depends(get_current_user)) -> User:
        if str(user.role) not in allowed:
            raise ForbiddenError(
                f"Requires role {' or '.join(sorted(allowed))}",
                {"role": str(user.role)},
            )
        return user

    return _guard


require_admin = require_roles(UserRole.ADMIN)
