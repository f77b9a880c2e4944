import logging
from typing import Any, List, Optional
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from app.core.errors import DuplicateEntry
from app.models.user import User, UserRole

logger = logging.getLogger(__name__)

# Columns callers may change through update(); id and timestamps are managed here
UPDATABLE_FIELDS = {
    "email",
    "name",
    "phone",
    "password_hash",
    "external_id",
    "role",
    "is_active",
    "wallet_address",
    "wallet_created_at",
}


class UserDirectory:
    """Lookup and write access to the users table"""

    @staticmethod
    def get_by_id(db: Session, user_id: str) -> Optional[User]:
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def get_by_email(db: Session, email: str) -> Optional[User]:
        return db.query(User).filter(User.email == email).first()

    @staticmethod
    def get_by_external_id(db: Session, external_id: str) -> Optional[User]:
        return db.query(User).filter(User.external_id == external_id).first()

    @staticmethod
    def find_by_external_id_or_email(db: Session, external_id: str, email: str) -> Optional[User]:
        """
        Single OR lookup on both identity keys.
        When one row holds the external id and another the email, the linked row wins.
        """
        matches: List[User] = db.query(User).filter(
            or_(User.external_id == external_id, User.email == email)
        ).all()
        if not matches:
            return None
        for user in matches:
            if user.external_id == external_id:
                return user
        return matches[0]

    @staticmethod
    def create(
        db: Session,
        *,
        email: str,
        name: str,
        password_hash: str = "",
        phone: Optional[str] = None,
        external_id: Optional[str] = None,
        role: UserRole = UserRole.MERCHANT,
    ) -> User:
        """
        Insert a user. A unique-constraint violation (email or external_id)
        rolls the session back and raises DuplicateEntry.
        """
        user = User(
            email=email,
            name=name,
            password_hash=password_hash,
            phone=phone,
            external_id=external_id,
            role=role,
            is_active=True,
            wallet_address=None,
            wallet_created_at=None,
        )
        db.add(user)
        try:
            db.commit()
        except IntegrityError as e:
            db.rollback()
            logger.info("User insert hit a unique constraint", extra={"email": email, "external_id": external_id})
            raise DuplicateEntry() from e
        db.refresh(user)
        return user

    @staticmethod
    def update(db: Session, user: User, **fields: Any) -> User:
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update user fields: {sorted(unknown)}")

        for key, value in fields.items():
            setattr(user, key, value)
        try:
            db.commit()
        except IntegrityError as e:
            db.rollback()
            logger.info("User update hit a unique constraint", extra={"user_id": user.id, "fields": sorted(fields)})
            raise DuplicateEntry() from e
        db.refresh(user)
        return user


user_directory = UserDirectory()
