# storefront/api/routers/users.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.api.deps import current_user, raise_error
from storefront.data.database import get_db
from storefront.domain.errors import NotFoundError, UnauthorizedError
from storefront.domain.identity import UserIdentity
from storefront.domain.schemas import UserCreate, UserRead
from storefront.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["users"])


@router.post("", response_model=UserRead, status_code=201)
def create_user(
    payload: UserCreate,
    db: Session = Depends(get_db),
    user: UserIdentity | None = Depends(current_user),
):
    """Open registration; only an admin may create another admin."""
    try:
        return UserService(db).create_user(payload, created_by=user)
    except UnauthorizedError as e:
        raise_error(e)


@router.get("/{user_id}", response_model=UserRead)
def get_user(user_id: int, db: Session = Depends(get_db)):
    try:
        return UserService(db).get_user(user_id)
    except NotFoundError as e:
        raise_error(e)
