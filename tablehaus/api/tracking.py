"""Public order tracking endpoint"""

from fastapi import APIRouter, Depends, HTTPException

from tablehaus.api.deps import get_reservation_store
from tablehaus.core.tracking import TrackingService
from tablehaus.schemas.reservation import TrackingResponse
from tablehaus.schemas.results import ErrorKind, Failure
from tablehaus.stores.sql import SqlReservationStore

router = APIRouter()

FAILURE_STATUS = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.TOKEN_EXPIRED: 410,
    ErrorKind.STORE_UNAVAILABLE: 503,
}


@router.get("/{token}", response_model=TrackingResponse)
async def track(
    token: str,
    store: SqlReservationStore = Depends(get_reservation_store),
):
    """Masked booking status for anyone holding the token"""
    result = await TrackingService(store).lookup(token)
    if isinstance(result, Failure):
        raise HTTPException(
            status_code=FAILURE_STATUS.get(result.error_kind, 400),
            detail={"code": result.error_kind.value, "message": result.message},
        )
    return result
