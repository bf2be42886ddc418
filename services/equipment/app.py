from typing import List, Optional

from fastapi import Depends, File, Form, Query, Request, UploadFile, status
from fastapi.staticfiles import StaticFiles
from pydantic import ValidationError
from sqlalchemy.orm import Session

from common import catalog
from common.database import get_db
from common.dependencies import require_owner
from common.errors import ValidationFailed
from common.models import EquipmentCategory, EquipmentStatus, User
from common.rate_limit import limiter
from common.schemas import ApiResponse, EquipmentCreate, EquipmentDetail, EquipmentRead, EquipmentUpdate
from common.service import create_service_app
from common.storage import upload_root

app = create_service_app("Equipment Service", "equipment")
app.mount("/uploads", StaticFiles(directory=upload_root()), name="uploads")


def _validation_message(exc: ValidationError) -> str:
    first = exc.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ()))
    return f"{field}: {first.get('msg')}" if field else str(first.get("msg"))


def _provided(**fields: object) -> dict[str, object]:
    # Blank form fields keep the stored value.
    return {key: value for key, value in fields.items() if value is not None and value != ""}


@app.get("/api/equipment", response_model=ApiResponse[List[EquipmentRead]])
@limiter.limit("60/minute")
def list_equipment(
    request: Request,
    city: Optional[str] = None,
    category: Optional[EquipmentCategory] = None,
    status_filter: Optional[EquipmentStatus] = Query(None, alias="status"),
    search: Optional[str] = None,
    db: Session = Depends(get_db),
) -> ApiResponse[List[EquipmentRead]]:
    rows = catalog.list_equipment(db, city=city, category=category, status=status_filter, search=search)
    return ApiResponse(count=len(rows), data=[EquipmentRead.model_validate(row) for row in rows])


@app.get("/api/equipment/owner/{owner_id}", response_model=ApiResponse[List[EquipmentRead]])
@limiter.limit("60/minute")
def list_owner_equipment(request: Request, owner_id: int, db: Session = Depends(get_db)) -> ApiResponse[List[EquipmentRead]]:
    rows = catalog.list_owner_equipment(db, owner_id)
    return ApiResponse(count=len(rows), data=[EquipmentRead.model_validate(row) for row in rows])


@app.get("/api/equipment/{equipment_id}", response_model=ApiResponse[EquipmentDetail])
@limiter.limit("60/minute")
def get_equipment(request: Request, equipment_id: int, db: Session = Depends(get_db)) -> ApiResponse[EquipmentDetail]:
    equipment = catalog.get_equipment(db, equipment_id)
    return ApiResponse(data=EquipmentDetail.model_validate(equipment))


@app.post("/api/equipment", response_model=ApiResponse[EquipmentRead], status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
def create_equipment(
    request: Request,
    title: str = Form(...),
    category: str = Form(...),
    description: str = Form(...),
    price_per_day: float = Form(...),
    city: str = Form(...),
    phone_number: str = Form(...),
    price_per_hour: Optional[float] = Form(None),
    initial_status: Optional[str] = Form(None, alias="status"),
    images: List[UploadFile] = File(default=[]),
    current_user: User = Depends(require_owner),
    db: Session = Depends(get_db),
) -> ApiResponse[EquipmentRead]:
    fields = _provided(
        title=title,
        category=category,
        description=description,
        price_per_day=price_per_day,
        price_per_hour=price_per_hour,
        city=city,
        phone_number=phone_number,
        status=initial_status,
    )
    try:
        data = EquipmentCreate(**fields)
    except ValidationError as exc:
        raise ValidationFailed(_validation_message(exc)) from exc
    equipment = catalog.create_equipment(db, current_user, data, images)
    return ApiResponse(message="Equipment added successfully", data=EquipmentRead.model_validate(equipment))


@app.put("/api/equipment/{equipment_id}", response_model=ApiResponse[EquipmentRead])
@limiter.limit("15/minute")
def update_equipment(
    request: Request,
    equipment_id: int,
    title: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    price_per_day: Optional[float] = Form(None),
    price_per_hour: Optional[float] = Form(None),
    city: Optional[str] = Form(None),
    phone_number: Optional[str] = Form(None),
    requested_status: Optional[str] = Form(None, alias="status"),
    images: List[UploadFile] = File(default=[]),
    current_user: User = Depends(require_owner),
    db: Session = Depends(get_db),
) -> ApiResponse[EquipmentRead]:
    fields = _provided(
        title=title,
        category=category,
        description=description,
        price_per_day=price_per_day,
        price_per_hour=price_per_hour,
        city=city,
        phone_number=phone_number,
        status=requested_status,
    )
    try:
        data = EquipmentUpdate(**fields)
    except ValidationError as exc:
        raise ValidationFailed(_validation_message(exc)) from exc
    equipment = catalog.update_equipment(db, equipment_id, current_user, data, images)
    return ApiResponse(message="Equipment updated successfully", data=EquipmentRead.model_validate(equipment))


@app.delete("/api/equipment/{equipment_id}", response_model=ApiResponse[None])
@limiter.limit("15/minute")
def delete_equipment(
    request: Request,
    equipment_id: int,
    current_user: User = Depends(require_owner),
    db: Session = Depends(get_db),
) -> ApiResponse[None]:
    catalog.delete_equipment(db, equipment_id, current_user)
    return ApiResponse(message="Equipment deleted successfully")
