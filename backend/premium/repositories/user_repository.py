from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from premium.core.errors import PersistenceError
from premium.models.user import User


class UserRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, user_id: str) -> User | None:
        try:
            return self.db.query(User).filter(User.id == user_id).first()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not load user {user_id}: {e}") from e

    def get_by_email(self, email: str) -> User | None:
        return self.db.query(User).filter(User.email == email).first()

    def create(
        self,
        user_id: str,
        email: str | None = None,
        first_name: str | None = None,
        last_name: str | None = None,
    ) -> User:
        user = User(id=user_id, email=email, first_name=first_name, last_name=last_name)
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return user
