"""User repository - Database operations shared by users, admin and staff domains"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import User
from ...roles import Role


class UserRepository:
    """Repository for user database operations"""

    @staticmethod
    def get_by_id(db: Session, user_id: int) -> Optional[User]:
        return db.get(User, user_id)

    @staticmethod
    def get_by_email(db: Session, email: str) -> Optional[User]:
        return db.query(User).filter(User.email == email.strip().lower()).first()

    @staticmethod
    def list_by_role(db: Session, role: Role) -> list[User]:
        return db.query(User).filter(User.role_id == role.value).order_by(User.created_at.desc(), User.id.desc()).all()

    @staticmethod
    def count_by_role(db: Session, role: Role, active_only: bool = False) -> int:
        query = db.query(User).filter(User.role_id == role.value)
        if active_only:
            query = query.filter(User.active.is_(True))
        return query.count()

    @staticmethod
    def recent_by_role(db: Session, role: Role, limit: int = 5) -> list[User]:
        return (
            db.query(User)
            .filter(User.role_id == role.value)
            .order_by(User.created_at.desc(), User.id.desc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def create_user(db: Session, **fields) -> User:
        user = User(**fields)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    @staticmethod
    def save(db: Session, user: User) -> User:
        db.commit()
        db.refresh(user)
        return user
