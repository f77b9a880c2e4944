"""Seed an admin and a sample merchant. Existing emails are left untouched."""

from app.core.database import Base, SessionLocal, engine
from app.core.security import get_password_hash
from app.models.user import UserRole
from app.services.user_directory import user_directory

SEED_USERS = [
    {"email": "admin@midatopay.com", "password": "admin123", "name": "Administrador", "phone": None, "role": UserRole.ADMIN},
    {"email": "barista@cafe.com", "password": "merchant123", "name": "Cafe del Barrio", "phone": "+5491123456789", "role": UserRole.MERCHANT},
]


def seed_users(db):
    users = []
    for entry in SEED_USERS:
        user = user_directory.get_by_email(db, entry["email"])
        if user is None:
            user = user_directory.create(
                db,
                email=entry["email"],
                name=entry["name"],
                phone=entry["phone"],
                password_hash=get_password_hash(entry["password"]),
                role=entry["role"],
            )
        users.append(user)
    return users


if __name__ == "__main__":
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        for user in seed_users(db):
            print(f"{user.role.value}: {user.email}")
    finally:
        db.close()
