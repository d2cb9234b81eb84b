"""
User service layer for account database operations.
"""

from typing import Optional, Dict
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from bailey.database.models import User
from bailey.utils.datetime_utils import isoformat_or_none
import logging

logger = logging.getLogger(__name__)


def _user_to_dict(user: User) -> Dict:
    return {
        "id": user.id,
        "email": user.email,
        "created_at": isoformat_or_none(user.created_at),
    }


async def create_user(session: AsyncSession, email: str, password_hash: str) -> int:
    """
    Create a new user account.

    Args:
        session: Database session
        email: Normalized email address
        password_hash: Hashed password

    Returns:
        User ID of the created user

    Raises:
        ValueError: If a user with this email already exists
    """
    result = await session.execute(select(User.id).where(User.email == email))
    if result.scalar_one_or_none():
        raise ValueError(f"Email {email} is already registered")

    new_user = User(email=email, password_hash=password_hash)
    session.add(new_user)
    await session.flush()
    user_id = new_user.id
    await session.commit()

    logger.info(f"Created user {user_id}")
    return user_id


async def get_user_by_id(session: AsyncSession, user_id: int) -> Optional[Dict]:
    """Get a user by ID, or None."""
    result = await session.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        return None
    return _user_to_dict(user)


async def get_user_by_email(session: AsyncSession, email: str) -> Optional[Dict]:
    """
    Get a user by email, including the password hash for login checks.

    Returns:
        User dictionary with password_hash, or None
    """
    result = await session.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    if not user:
        return None
    data = _user_to_dict(user)
    data["password_hash"] = user.password_hash
    return data
