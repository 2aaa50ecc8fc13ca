import os

from propertyhub.core.database import Base, SessionLocal, engine
from propertyhub.models.user import User, UserRole


def create_user(email: str, name: str, role: UserRole, user_name: str | None = None) -> None:
    email = email.strip().lower()
    db = SessionLocal()
    try:
        existing = db.query(User).filter(User.email == email).first()
        if existing:
            print(f"User already exists: {email}")
            return

        user = User(email=email, name=name, user_name=user_name, role=role, is_active=True)
        db.add(user)
        db.commit()
        print(f"Created {role.value}: {email}")
    finally:
        db.close()


if __name__ == "__main__":
    Base.metadata.create_all(bind=engine)
    # Sign-in is by emailed code, so an address is all an account needs.
    admin_email = os.getenv("BOOTSTRAP_ADMIN_EMAIL")
    if admin_email:
        create_user(
            admin_email,
            os.getenv("BOOTSTRAP_ADMIN_NAME", "Admin"),
            UserRole.admin,
            user_name=os.getenv("BOOTSTRAP_ADMIN_USERNAME"),
        )
    else:
        print("Bootstrap skipped. Set BOOTSTRAP_ADMIN_EMAIL to create an admin user.")
