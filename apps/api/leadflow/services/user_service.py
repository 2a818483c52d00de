"""User service - account lookup and creation."""

from sqlalchemy.orm import Session

from leadflow.db.models import User


def normalize_email(email: str) -> str:
    return email.strip().lower()


def get_user_by_email(db: Session, email: str) -> User | None:
    return db.query(User).filter(User.email == normalize_email(email)).first()


def create_user(db: Session, email: str, display_name: str = "") -> User:
    """
    Create a user.

    Raises:
        ValueError: if a user with this email already exists
    """
    normalized = normalize_email(email)
    if get_user_by_email(db, normalized):
        raise ValueError(f"User with email '{normalized}' already exists")
    user = User(email=normalized, display_name=display_name or normalized.split("@")[0])
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def revoke_sessions(db: Session, user: User) -> User:
    """Invalidate every session token issued so far."""
    user.token_version += 1
    db.commit()
    db.refresh(user)
    return user
