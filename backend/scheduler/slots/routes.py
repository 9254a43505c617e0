"""Slot routes: public availability and booking, staff slot management."""

from datetime import date

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session, sessionmaker

from ..audit.service import audit
from ..auth.models import User
from ..booking.service import book_slot, cancel_booking
from ..config import settings
from ..database.base import get_db
from ..dependencies import get_current_user, get_session_factory
from ..notifications.service import dispatch_pending_notifications
from ..rate_limit import limiter
from .schemas import (
    BookSlotRequest,
    BulkSlotCreateRequest,
    BulkSlotDeleteRequest,
    CancelBookingRequest,
    SlotCreateRequest,
)
from .service import (
    create_bulk_slots,
    create_slot,
    delete_bulk_slots,
    delete_slot,
    list_available_slots,
    list_slots,
    list_slots_by_interviewer,
    list_slots_in_range,
    slot_to_dict,
)

router = APIRouter(prefix="/slots", tags=["slots"])


# --- Public (token holders) ---


@router.get("/available")
def available_slots(db: Session = Depends(get_db)):
    return JSONResponse([slot_to_dict(s) for s in list_available_slots(db)])


@router.post("/book")
@limiter.limit(settings.rate_limit_public)
def book(
    request: Request,
    payload: BookSlotRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    session_factory: sessionmaker[Session] = Depends(get_session_factory),
):
    result = book_slot(db, payload.slot_id, payload.token, request=request)
    background_tasks.add_task(dispatch_pending_notifications, session_factory)
    return JSONResponse(result.to_dict())


# --- Staff ---


@router.get("")
def all_slots(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return JSONResponse([slot_to_dict(s) for s in list_slots(db)])


@router.post("")
def add_slot(
    request: Request,
    payload: SlotCreateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    slot = create_slot(db, payload.slot_at, payload.interviewer, payload.meeting_link)
    audit(db, request, "slot_create", f"at={slot.slot_at.isoformat()}, interviewer={slot.interviewer}", target_id=slot.id)
    db.commit()
    return JSONResponse({"message": "Slot created successfully", "slot": slot_to_dict(slot)}, status_code=201)


@router.post("/bulk")
def add_slots_bulk(
    request: Request,
    payload: BulkSlotCreateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    results = create_bulk_slots(db, [item.as_item() for item in payload.slots])
    audit(db, request, "slot_bulk_create", f"created={results['successful']}, total={results['total']}")
    db.commit()

    if results["successful"] == 0:
        return JSONResponse({"error": "No slots were created", "results": results}, status_code=400)
    if results["successful"] < results["total"]:
        return JSONResponse(
            {"message": f"{results['successful']} of {results['total']} slots created", "results": results},
            status_code=207,
        )
    return JSONResponse({"message": f"All {results['total']} slots created successfully", "results": results})


@router.delete("/bulk")
def remove_slots_bulk(
    request: Request,
    payload: BulkSlotDeleteRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    results = delete_bulk_slots(db, payload.slot_ids)
    audit(db, request, "slot_bulk_delete", f"deleted={results['successful']}, total={results['total']}")
    db.commit()
    return JSONResponse({"message": f"{results['successful']} of {results['total']} slots deleted", "results": results})


@router.get("/range")
def slots_in_range(
    start: date = Query(..., alias="startDate"),
    end: date = Query(..., alias="endDate"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return JSONResponse([slot_to_dict(s) for s in list_slots_in_range(db, start, end)])


@router.get("/interviewer")
def slots_by_interviewer(
    name: str = Query(..., max_length=255),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return JSONResponse([slot_to_dict(s) for s in list_slots_by_interviewer(db, name)])


@router.delete("/{slot_id}/cancel")
def cancel_slot_booking(
    request: Request,
    slot_id: str,
    payload: CancelBookingRequest | None = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return JSONResponse(cancel_booking(db, slot_id, payload.reason if payload else None, request=request))


@router.delete("/{slot_id}")
def remove_slot(
    request: Request,
    slot_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    slot = delete_slot(db, slot_id)
    deleted_id = slot.id
    audit(db, request, "slot_delete", f"at={slot.slot_at.isoformat()}", target_id=deleted_id)
    db.commit()
    return JSONResponse({"message": "Slot deleted successfully", "slotId": str(deleted_id)})
