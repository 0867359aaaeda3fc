"""Repository for User database operations."""

import logging
from typing import Optional
from sqlalchemy.orm import Session

from slotplan.models.user import User, UserProfile
from slotplan.database.models import UserDB

logger = logging.getLogger(__name__)


class UserRepository:
    """Repository for User database operations."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, user_id: str) -> Optional[User]:
        """Get user by ID."""
        user_db = self.db.query(UserDB).filter(UserDB.id == user_id).first()
        return user_db.to_pydantic() if user_db else None

    def get_profile(self, user_id: str) -> UserProfile:
        """Scheduling preferences for a user (defaults when the user is unknown)."""
        user = self.get(user_id)
        if user is None:
            return UserProfile()
        return UserProfile(timezone=user.timezone, first_day_of_week=user.first_day_of_week)

    def create_or_update(self, user: User) -> User:
        """Create or update user (upsert)."""
        user_db = self.db.query(UserDB).filter(UserDB.id == user.id).first()

        if user_db:
            user_db.email = user.email
            user_db.name = user.name
            user_db.timezone = user.timezone
            user_db.first_day_of_week = user.first_day_of_week
            user_db.updated_at = user.updated_at
            try:
                self.db.commit()
                self.db.refresh(user_db)
                logger.debug(f"Updated user {user.id}: {user.email}")
                return user_db.to_pydantic()
            except Exception as e:
                self.db.rollback()
                logger.error(f"Failed to update user {user.id}: {type(e).__name__}: {str(e)}")
                raise
        else:
            try:
                user_db = UserDB.from_pydantic(user)
                self.db.add(user_db)
                self.db.commit()
                self.db.refresh(user_db)
                logger.debug(f"Created user {user.id}: {user.email}")
                return user_db.to_pydantic()
            except Exception as e:
                self.db.rollback()
                logger.error(f"Failed to create user {user.id}: {type(e).__name__}: {str(e)}")
                raise
