# backend/courtbook/routers/users.py
# PATCH = 405, DELETE = 405

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..context import require_admin
from ..database import get_db
from ..models.generated import Users as DBUsers
from ..schemas.users import (
    UserCreate,
    UserRead,
)

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/", response_model=list[UserRead])
def list_users(db: Session = Depends(get_db)):
    return (
        db.query(DBUsers)
        .filter(DBUsers.is_active == 1)
        .all()
    )


@router.get("/{id}", response_model=UserRead)
def get_user(id: int, db: Session = Depends(get_db)):
    obj = db.get(DBUsers, id)
    if not obj:
        raise HTTPException(status_code=404, detail="Not found")
    return obj


@router.post(
    "/",
    response_model=UserRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
def create_user(
    data: UserCreate,
    db: Session = Depends(get_db),
):
    obj = DBUsers(**data.model_dump())
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj
