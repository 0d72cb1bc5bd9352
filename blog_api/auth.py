from datetime import datetime, timedelta, timezone
from jose import JWTError, jwt, ExpiredSignatureError
from fastapi import Depends, HTTPException, status, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload
from typing import Callable, List, Optional
from blog_api.models.user import User
from blog_api.database import get_db
from blog_api.exceptions import AuthenticationError, InvalidTokenError, TokenExpiredError
from .constants import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES
import logging

# Initialize logging
logger = logging.getLogger(__name__)

# OAuth2 scheme for token validation; optional so anonymous viewers pass through
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/token", auto_error=False)


# Function to create an access token with an expiration time
def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({"exp": expire})

    if "sub" not in to_encode:
        raise ValueError("Missing 'sub' claim (email) in token data.")

    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


# Function to decode an access token
def decode_access_token(token: str) -> str:
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except ExpiredSignatureError:
        logger.info("Token expired")
        raise TokenExpiredError()
    except JWTError as e:
        logger.warning(f"JWT decoding failed: {str(e)}")
        raise InvalidTokenError()

    email: str = payload.get("sub")
    if email is None:
        logger.warning("Token is missing 'sub' claim")
        raise InvalidTokenError("Token does not contain 'sub' field.")
    return email


def _extract_token(request: Request, bearer_token: Optional[str]) -> Optional[str]:
    """Prefer the Authorization header, fall back to the access_token cookie."""
    return bearer_token or request.cookies.get("access_token")


async def _load_user(db: AsyncSession, email: str) -> Optional[User]:
    result = await db.execute(select(User).options(selectinload(User.role)).where(User.email == email))
    return result.scalars().first()


async def get_current_user(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    token = _extract_token(request, token)
    if not token:
        logger.debug("No bearer token or access_token cookie on request")
        raise credentials_exception

    try:
        email = decode_access_token(token)
    except AuthenticationError as e:
        logger.info(f"Rejecting token: {e.message}")
        raise credentials_exception

    user = await _load_user(db, email)
    if user is None:
        logger.warning(f"User with email '{email}' not found.")
        raise credentials_exception

    request.state.user = user
    return user


async def get_optional_user(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> Optional[User]:
    """Resolve the viewer if a valid token is present; anonymous otherwise."""
    token = _extract_token(request, token)
    if not token:
        return None

    try:
        email = decode_access_token(token)
    except AuthenticationError:
        return None

    try:
        user = await _load_user(db, email)
    except Exception as e:
        logger.warning(f"Could not load viewer '{email}', tracking anonymously: {e}")
        return None

    if user is not None:
        request.state.user = user
    return user


# Dependency factory that also enforces the user's role
def get_current_user_with_role(required_roles: List[str]) -> Callable[..., User]:
    async def _current_user_with_role(user: User = Depends(get_current_user)) -> User:
        """
        Verify the current user and ensure they have the required role(s).

        Raises:
            HTTPException: If the user's role is not in required_roles.
        """
        if not user.role or user.role.name not in required_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Role '{user.role.name if user.role else 'None'}' does not have access to this resource.",
            )
        return user

    return _current_user_with_role
