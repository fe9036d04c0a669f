import logging

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .config import JWT_ALGORITHM, SECRET_KEY
from .database import get_db
from .errors import ConflictError, ForbiddenError, UnauthenticatedError
from .models import ROLES, User

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def decode_access_token(token: str) -> dict:
    """
    Verify a bearer token issued by the identity provider.

    Tokens are HS256 JWTs signed with SECRET_KEY. The subject claim is the user id;
    ``role`` is required the first time a user is seen.
    """
    token_parts = token.split(".")
    if len(token_parts) != 3:
        logger.warning(f"⚠️ Malformed token received: {len(token_parts)} parts, token length: {len(token)}")
        raise UnauthenticatedError("Invalid token format. Expected a valid JWT token.")

    try:
        claims = jwt.decode(token, SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except JWTError as e:
        logger.warning(f"⚠️ Token verification failed: {e}")
        raise UnauthenticatedError("Invalid or expired token") from e

    if not claims.get("sub"):
        logger.error(f"❌ Token missing subject claim. Available claims: {list(claims.keys())}")
        raise UnauthenticatedError("Invalid token claims")

    return claims


def resolve_user(db: Session, claims: dict) -> User:
    """Find the user named by the token, creating the row on first sight"""
    user_id = str(claims["sub"])

    user = db.query(User).filter(User.id == user_id).first()
    if user:
        return user

    is_admin = bool(claims.get("isAdmin") or claims.get("is_admin"))
    role = claims.get("role") or ("admin" if is_admin else None)
    if role not in ROLES:
        logger.error(f"❌ Token for new user {user_id} carries invalid role: {role}")
        raise UnauthenticatedError("Invalid token claims")

    logger.info(f"🆕 Creating new {role} user: {user_id}")
    user = User(
        id=user_id,
        username=claims.get("username") or f"user-{user_id[:8]}",
        email=claims.get("email"),
        first_name=claims.get("firstName") or claims.get("given_name"),
        last_name=claims.get("lastName") or claims.get("family_name"),
        role=role,
        is_admin=is_admin or role == "admin",
    )
    db.add(user)
    try:
        db.commit()
        db.refresh(user)
        logger.info(f"✅ New user created: {user.username}")
    except IntegrityError as e:
        db.rollback()
        # Another request may have created the same user between check and insert
        existing = db.query(User).filter(User.id == user_id).first()
        if existing:
            return existing
        logger.error(f"❌ Username or email for {user_id} already registered to another account")
        raise ConflictError("This username or email is already registered") from e

    return user


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """Get current user from the bearer token"""
    if not credentials:
        raise UnauthenticatedError(
            "Not authenticated. Please provide a valid Bearer token in the Authorization header."
        )

    claims = decode_access_token(credentials.credentials)
    user = resolve_user(db, claims)
    logger.debug(f"✅ User authenticated: {user.id} ({user.role})")
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    if not (user.is_admin or user.role == "admin"):
        logger.warning(f"⚠️ Non-admin user {user.id} attempted an admin operation")
        raise ForbiddenError("Admin access required")
    return user
