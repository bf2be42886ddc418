"""Rental request lifecycle and the equipment availability it drives.

A request starts ``pending``. The customer who filed it may only cancel it;
the owner of the requested equipment may accept or complete it. Every
transition that is applied also settles the equipment's availability in the
same transaction: accepting reserves the equipment (``busy``), completing or
cancelling releases it unless another accepted request still holds it.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import List

from sqlalchemy.orm import Session, selectinload

from common.catalog import get_equipment, reserve_equipment, sync_equipment_status
from common.config import get_settings
from common.errors import ConflictError, ForbiddenError, NotFoundError
from common.models import Equipment, EquipmentStatus, RentalRequest, RequestStatus, User
from common.schemas import RequestCreate

logger = logging.getLogger(__name__)


class ActorRole(str, Enum):
    """How the acting user relates to a particular request."""

    CUSTOMER = "customer"
    OWNER = "owner"


ALLOWED_TARGETS: dict[ActorRole, frozenset[RequestStatus]] = {
    ActorRole.CUSTOMER: frozenset({RequestStatus.CANCELLED}),
    ActorRole.OWNER: frozenset({RequestStatus.ACCEPTED, RequestStatus.COMPLETED}),
}

TERMINAL_STATES = frozenset({RequestStatus.COMPLETED, RequestStatus.CANCELLED})


def resolve_actor_role(rental_request: RentalRequest, equipment: Equipment, actor_id: int) -> ActorRole:
    if equipment.owner_id == actor_id:
        return ActorRole.OWNER
    if rental_request.customer_id == actor_id:
        return ActorRole.CUSTOMER
    raise ForbiddenError("You are not allowed to modify this request")


def check_transition(
    actor_role: ActorRole,
    current: RequestStatus,
    target: RequestStatus,
    allow_skip_acceptance: bool = True,
) -> bool:
    """Validate a transition. Returns ``False`` when it is a no-op re-application."""

    if target not in ALLOWED_TARGETS[actor_role]:
        if actor_role is ActorRole.CUSTOMER:
            raise ForbiddenError("Customers can only cancel their requests")
        raise ForbiddenError("Owners can only accept or complete requests")
    if current == target:
        return False
    if current in TERMINAL_STATES:
        raise ConflictError(f"Request is already {current.value}")
    if not allow_skip_acceptance and current == RequestStatus.PENDING and target == RequestStatus.COMPLETED:
        raise ConflictError("Request must be accepted before it can be completed")
    return True


def create_request(db: Session, customer: User, payload: RequestCreate) -> RentalRequest:
    try:
        # The row lock keeps the availability check and the insert together.
        equipment = get_equipment(db, payload.equipment_id, lock=True)
        if equipment.status != EquipmentStatus.AVAILABLE:
            raise ConflictError("Equipment is not available right now")

        rental_request = RentalRequest(
            customer_id=customer.id,
            equipment_id=equipment.id,
            latitude=payload.location.lat,
            longitude=payload.location.lng,
            customer_phone=payload.customer_phone,
            notes=payload.notes or None,
        )
        db.add(rental_request)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(rental_request)
    logger.info(
        "Customer %s requested equipment %s (request %s)", customer.id, rental_request.equipment_id, rental_request.id
    )
    return rental_request


def set_status(db: Session, request_id: int, actor: User, new_status: RequestStatus) -> RentalRequest:
    """Apply ``new_status`` to a request on behalf of ``actor``.

    The request update and the equipment availability sync are committed
    together; any failure rolls both back.
    """
    allow_skip = get_settings().allow_skip_acceptance
    try:
        rental_request = (
            db.query(RentalRequest).filter(RentalRequest.id == request_id).with_for_update().first()
        )
        if rental_request is None:
            raise NotFoundError("Request not found")
        equipment = get_equipment(db, rental_request.equipment_id, lock=True, include_deleted=True)
        actor_role = resolve_actor_role(rental_request, equipment, actor.id)
        previous = rental_request.status

        if not check_transition(actor_role, previous, new_status, allow_skip):
            db.rollback()
            logger.info("Request %s already %s; nothing to do", request_id, new_status.value)
            return rental_request

        if new_status == RequestStatus.ACCEPTED:
            reserve_equipment(db, equipment.id)
            rental_request.status = new_status
        else:
            rental_request.status = new_status
            db.flush()
            sync_equipment_status(db, equipment.id)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(rental_request)
    logger.info(
        "Request %s moved %s -> %s by %s %s; equipment %s is %s",
        rental_request.id,
        previous.value,
        new_status.value,
        actor_role.value,
        actor.id,
        rental_request.equipment_id,
        rental_request.equipment.status.value,
    )
    return rental_request


def list_customer_requests(db: Session, customer_id: int) -> List[RentalRequest]:
    return (
        db.query(RentalRequest)
        .options(selectinload(RentalRequest.equipment), selectinload(RentalRequest.customer))
        .filter(RentalRequest.customer_id == customer_id)
        .order_by(RentalRequest.created_at.desc(), RentalRequest.id.desc())
        .all()
    )


def list_owner_requests(db: Session, owner_id: int) -> List[RentalRequest]:
    return (
        db.query(RentalRequest)
        .join(Equipment, RentalRequest.equipment_id == Equipment.id)
        .options(selectinload(RentalRequest.equipment), selectinload(RentalRequest.customer))
        .filter(Equipment.owner_id == owner_id)
        .order_by(RentalRequest.created_at.desc(), RentalRequest.id.desc())
        .all()
    )
