"""Equipment catalog: listing CRUD plus the availability primitives used by the request workflow."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from fastapi import UploadFile
from sqlalchemy import or_, update
from sqlalchemy.orm import Session, selectinload

from .errors import ConflictError, ForbiddenError, NotFoundError, ValidationFailed
from .models import Equipment, EquipmentCategory, EquipmentStatus, RentalRequest, RequestStatus, User
from .schemas import EquipmentCreate, EquipmentUpdate
from .storage import delete_images, save_images

logger = logging.getLogger(__name__)

OPEN_REQUEST_STATES = (RequestStatus.PENDING, RequestStatus.ACCEPTED)


def get_equipment(db: Session, equipment_id: int, lock: bool = False, include_deleted: bool = False) -> Equipment:
    query = db.query(Equipment).filter(Equipment.id == equipment_id)
    if not include_deleted:
        query = query.filter(Equipment.deleted_at.is_(None))
    if lock:
        query = query.with_for_update()
    equipment = query.first()
    if equipment is None:
        raise NotFoundError("Equipment not found")
    return equipment


def list_equipment(
    db: Session,
    city: Optional[str] = None,
    category: Optional[EquipmentCategory] = None,
    status: Optional[EquipmentStatus] = None,
    search: Optional[str] = None,
) -> List[Equipment]:
    query = db.query(Equipment).options(selectinload(Equipment.owner)).filter(Equipment.deleted_at.is_(None))
    if city:
        query = query.filter(Equipment.city == city)
    if category:
        query = query.filter(Equipment.category == category)
    if status:
        query = query.filter(Equipment.status == status)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(Equipment.title.ilike(pattern), Equipment.description.ilike(pattern)))
    return query.order_by(Equipment.created_at.desc(), Equipment.id.desc()).all()


def list_owner_equipment(db: Session, owner_id: int) -> List[Equipment]:
    return (
        db.query(Equipment)
        .filter(Equipment.owner_id == owner_id, Equipment.deleted_at.is_(None))
        .order_by(Equipment.created_at.desc(), Equipment.id.desc())
        .all()
    )


def _owned_equipment(db: Session, equipment_id: int, owner: User, action: str, lock: bool = False) -> Equipment:
    equipment = get_equipment(db, equipment_id, lock=lock)
    if equipment.owner_id != owner.id:
        raise ForbiddenError(f"You are not allowed to {action} this equipment")
    return equipment


def create_equipment(db: Session, owner: User, data: EquipmentCreate, uploads: Sequence[UploadFile] = ()) -> Equipment:
    images = save_images(uploads)
    equipment = Equipment(owner_id=owner.id, images=images, **data.model_dump())
    try:
        db.add(equipment)
        db.commit()
    except Exception:
        db.rollback()
        delete_images(images)
        raise
    db.refresh(equipment)
    logger.info("Owner %s listed equipment %s (%s)", owner.id, equipment.id, equipment.category.value)
    return equipment


def update_equipment(
    db: Session,
    equipment_id: int,
    owner: User,
    data: EquipmentUpdate,
    uploads: Sequence[UploadFile] = (),
) -> Equipment:
    """Apply a partial listing update.

    ``status`` may only be set back to ``available``. The value is recomputed
    from the accepted requests, so reopening fails while one still holds the
    equipment.
    """
    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    reopen = changes.pop("status", None)
    if reopen is not None and reopen != EquipmentStatus.AVAILABLE:
        raise ValidationFailed("Equipment becomes busy only when a request is accepted")

    equipment = _owned_equipment(db, equipment_id, owner, "update", lock=reopen is not None)
    new_images = save_images(uploads)
    try:
        for key, value in changes.items():
            setattr(equipment, key, value)
        if new_images:
            # Assign a new list so the JSON column is marked dirty.
            equipment.images = [*(equipment.images or []), *new_images]
        if reopen is not None and sync_equipment_status(db, equipment.id) != EquipmentStatus.AVAILABLE:
            raise ConflictError("Equipment is committed to an accepted request")
        db.commit()
    except Exception:
        db.rollback()
        delete_images(new_images)
        raise
    db.refresh(equipment)
    logger.info("Owner %s updated equipment %s", owner.id, equipment.id)
    return equipment


def delete_equipment(db: Session, equipment_id: int, owner: User) -> None:
    """Withdraw a listing and remove its image files.

    The row is kept, marked deleted, so closed requests keep their equipment.
    A listing with pending or accepted requests cannot be deleted.
    """
    try:
        equipment = _owned_equipment(db, equipment_id, owner, "delete", lock=True)
        open_request = (
            db.query(RentalRequest.id)
            .filter(RentalRequest.equipment_id == equipment.id, RentalRequest.status.in_(OPEN_REQUEST_STATES))
            .first()
        )
        if open_request is not None:
            raise ConflictError("Equipment has open requests and cannot be deleted")

        images = list(equipment.images or [])
        equipment.images = []
        equipment.deleted_at = datetime.now(timezone.utc)
        db.commit()
    except Exception:
        db.rollback()
        raise
    delete_images(images)
    logger.info("Owner %s deleted equipment %s", owner.id, equipment_id)


def reserve_equipment(db: Session, equipment_id: int) -> None:
    """Flip equipment to busy only if it is currently available.

    Runs as a single conditional UPDATE so two concurrent acceptances cannot
    both succeed.
    """
    result = db.execute(
        update(Equipment)
        .where(Equipment.id == equipment_id, Equipment.status == EquipmentStatus.AVAILABLE)
        .values(status=EquipmentStatus.BUSY)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise ConflictError("Equipment is already committed to another request")


def sync_equipment_status(db: Session, equipment_id: int) -> EquipmentStatus:
    """Recompute availability from the accepted requests against the equipment.

    Pending changes must be flushed first; the session does not autoflush.
    """
    still_accepted = (
        db.query(RentalRequest.id)
        .filter(RentalRequest.equipment_id == equipment_id, RentalRequest.status == RequestStatus.ACCEPTED)
        .first()
    )
    new_status = EquipmentStatus.BUSY if still_accepted is not None else EquipmentStatus.AVAILABLE
    db.execute(
        update(Equipment)
        .where(Equipment.id == equipment_id)
        .values(status=new_status)
        .execution_options(synchronize_session=False)
    )
    return new_status
