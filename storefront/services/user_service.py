# storefront/services/user_service.py
from sqlalchemy.orm import Session

from storefront.data.models.user import UserModel
from storefront.domain.errors import NotFoundError, UnauthorizedError
from storefront.domain.identity import UserIdentity
from storefront.domain.schemas import UserCreate, UserRead
from storefront.repos.user_repo import UserRepo


class UserService:
    def __init__(self, db: Session):
        self.repo = UserRepo(db)

    def create_user(self, payload: UserCreate, created_by: UserIdentity | None = None) -> UserRead:
        if payload.is_admin and not (created_by and created_by.is_admin):
            raise UnauthorizedError("Only admins can create admins", user_id=payload.id)

        existing = self.repo.get_user(payload.id)
        if existing:
            return UserRead.model_validate(existing)

        user = UserModel(id=payload.id, name=payload.name, is_admin=payload.is_admin)
        return UserRead.model_validate(self.repo.create_user(user))

    def get_user(self, user_id: int) -> UserRead:
        user = self.repo.get_user(user_id)
        if not user:
            raise NotFoundError(f"User {user_id} not found", user_id=user_id)
        return UserRead.model_validate(user)

    def identify(self, user_id: int | None) -> UserIdentity | None:
        """Request identity for a claimed user id, None when nobody is logged in."""
        if user_id is None:
            return None
        user = self.repo.get_user(user_id)
        if not user:
            return None
        return UserIdentity(id=user.id, is_admin=bool(user.is_admin))
