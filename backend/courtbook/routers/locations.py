# backend/courtbook/routers/locations.py
# PATCH = display fields only, DELETE = soft-delete (is_deleted)

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..context import require_admin
from ..database import get_db
from ..models.generated import Locations as DBLocations
from ..schemas.locations import (
    LocationCreate,
    LocationUpdate,
    LocationRead,
)

router = APIRouter(prefix="/locations", tags=["locations"])


@router.get("/", response_model=list[LocationRead])
def list_locations(db: Session = Depends(get_db)):
    return (
        db.query(DBLocations)
        .filter(DBLocations.is_deleted == 0)
        .order_by(DBLocations.name)
        .all()
    )


@router.get("/{id}", response_model=LocationRead)
def get_location(id: int, db: Session = Depends(get_db)):
    obj = db.get(DBLocations, id)
    if not obj:
        raise HTTPException(status_code=404, detail="Not found")
    return obj


@router.post(
    "/",
    response_model=LocationRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
def create_location(
    data: LocationCreate,
    db: Session = Depends(get_db),
):
    obj = DBLocations(**data.model_dump())
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj


@router.patch("/{id}", response_model=LocationRead, dependencies=[Depends(require_admin)])
def update_location(
    id: int,
    data: LocationUpdate,
    db: Session = Depends(get_db),
):
    obj = db.get(DBLocations, id)
    if not obj or obj.is_deleted:
        raise HTTPException(status_code=404, detail="Not found")

    changes = data.model_dump(exclude_unset=True)
    for field, value in changes.items():
        setattr(obj, field, value)

    db.commit()
    db.refresh(obj)
    return obj


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[Depends(require_admin)])
def delete_location(id: int, db: Session = Depends(get_db)):
    obj = db.get(DBLocations, id)
    if not obj:
        raise HTTPException(status_code=404, detail="Not found")

    # Rows referencing the location keep pointing at it
    obj.is_deleted = 1
    db.commit()
