from typing import List

from fastapi import Depends, Request, status
from sqlalchemy.orm import Session

from common.database import get_db
from common.dependencies import get_current_user, require_customer, require_owner
from common.models import User
from common.rate_limit import limiter
from common.schemas import ApiResponse, RequestCreate, RequestRead, StatusUpdate
from common.service import create_service_app

from . import workflow

app = create_service_app("Requests Service", "requests")

_STATUS_MESSAGES = {
    "accepted": "Request accepted",
    "completed": "Request completed",
    "cancelled": "Request cancelled",
}


@app.post("/api/requests", response_model=ApiResponse[RequestRead], status_code=status.HTTP_201_CREATED)
@limiter.limit("20/minute")
def create_request(
    request: Request,
    request_in: RequestCreate,
    current_user: User = Depends(require_customer),
    db: Session = Depends(get_db),
) -> ApiResponse[RequestRead]:
    rental_request = workflow.create_request(db, current_user, request_in)
    return ApiResponse(message="Request sent successfully", data=RequestRead.model_validate(rental_request))


@app.get("/api/requests/customer", response_model=ApiResponse[List[RequestRead]])
@limiter.limit("60/minute")
def list_customer_requests(
    request: Request,
    current_user: User = Depends(require_customer),
    db: Session = Depends(get_db),
) -> ApiResponse[List[RequestRead]]:
    rows = workflow.list_customer_requests(db, current_user.id)
    return ApiResponse(count=len(rows), data=[RequestRead.model_validate(row) for row in rows])


@app.get("/api/requests/owner", response_model=ApiResponse[List[RequestRead]])
@limiter.limit("60/minute")
def list_owner_requests(
    request: Request,
    current_user: User = Depends(require_owner),
    db: Session = Depends(get_db),
) -> ApiResponse[List[RequestRead]]:
    rows = workflow.list_owner_requests(db, current_user.id)
    return ApiResponse(count=len(rows), data=[RequestRead.model_validate(row) for row in rows])


@app.put("/api/requests/{request_id}/status", response_model=ApiResponse[RequestRead])
@limiter.limit("30/minute")
def update_request_status(
    request: Request,
    request_id: int,
    status_in: StatusUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ApiResponse[RequestRead]:
    rental_request = workflow.set_status(db, request_id, current_user, status_in.status)
    return ApiResponse(
        message=_STATUS_MESSAGES.get(status_in.status.value, "Request status updated"),
        data=RequestRead.model_validate(rental_request),
    )
