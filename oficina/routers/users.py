from fastapi import APIRouter, HTTPException, status
from sqlalchemy import select

from oficina.dependencies import AdminUser, CurrentUser, DbSession
from oficina.models.user import User
from oficina.schemas.user import ProfileUpdate, UserRead, UserUpdate
from oficina.services import audit

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserRead)
def get_profile(user: CurrentUser):
    return user


@router.put("/me", response_model=UserRead)
def update_profile(updates: ProfileUpdate, user: CurrentUser, db: DbSession):
    for field, value in updates.model_dump(exclude_unset=True).items():
        setattr(user, field, value)

    db.flush()
    return user


@router.get("", response_model=list[UserRead])
def list_users(admin: AdminUser, db: DbSession):
    users = db.execute(select(User).order_by(User.email)).scalars().all()
    return users


@router.get("/{user_id}", response_model=UserRead)
def get_user(user_id: int, admin: AdminUser, db: DbSession):
    user = db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    return user


@router.put("/{user_id}", response_model=UserRead)
def update_user(user_id: int, updates: UserUpdate, admin: AdminUser, db: DbSession):
    user = db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)

    changes = updates.model_dump(exclude_unset=True)
    for field, value in changes.items():
        setattr(user, field, value)

    db.flush()
    if "role" in changes:
        audit.record(db, admin.id, f"Rol de {user.email} cambiado a {user.role}")
    return user


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(user_id: int, admin: AdminUser, db: DbSession):
    user = db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    db.delete(user)
    db.flush()
    audit.record(db, admin.id, f"Usuario eliminado: {user.email}")
