import enum
import uuid
from sqlalchemy import Column, String, DateTime, Boolean, Enum
from sqlalchemy.sql import func
from app.core.database import Base


class UserRole(str, enum.Enum):
    MERCHANT = "MERCHANT"
    ADMIN = "ADMIN"


def _new_user_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    """
    Canonical merchant identity.

    A row is reachable by email or by the Clerk user id (external_id). Accounts
    provisioned through Clerk have an empty password_hash until a local password
    is set. Rows are never deleted; is_active=False is the soft delete.
    """
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_new_user_id)
    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    phone = Column(String, nullable=True)
    # bcrypt hash, "" for provider-provisioned accounts
    password_hash = Column(String, nullable=False, default="")
    # Clerk subject id; unique when present
    external_id = Column(String, unique=True, index=True, nullable=True)
    role = Column(Enum(UserRole, name="user_role"), nullable=False, default=UserRole.MERCHANT)
    is_active = Column(Boolean, nullable=False, default=True)
    # Written by the wallet issuance flow, which is not part of this service
    wallet_address = Column(String, nullable=True)
    wallet_created_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email} external_id={self.external_id}>"
