import asyncio
import logging
from dataclasses import asdict
from datetime import date
from uuid import UUID

from fastapi import (
    APIRouter,
    BackgroundTasks,
    Depends,
    HTTPException,
    Query,
    WebSocket,
    WebSocketDisconnect,
    status,
)
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from ritual_booking.api.deps import get_optional_user
from ritual_booking.api.v1.slots import build_day_availability
from ritual_booking.core.config import settings
from ritual_booking.db.models import User
from ritual_booking.db.session import get_db
from ritual_booking.schemas.booking import (
    BookingConfirmedResponse,
    BookingCreatedResponse,
    BookingCreateRequest,
    BookingResponse,
    ExpireBookingsResponse,
)
from ritual_booking.schemas.slot import DayAvailabilityResponse
from ritual_booking.services.booking_events import BookingChangeEvent, event_broker
from ritual_booking.services.booking_service import (
    confirm_booking,
    create_pending_booking,
    decline_booking,
    get_booking,
)
from ritual_booking.services.notification_service import (
    build_booking_confirmed_whatsapp_url,
    build_booking_request_whatsapp_url,
    build_confirmation_link,
    send_pending_whatsapp_message,
)
from ritual_booking.services.settings_service import load_system_settings
from ritual_booking.tasks.expirations import expire_pending_bookings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post("", response_model=BookingCreatedResponse, status_code=status.HTTP_201_CREATED)
def create_booking(
    payload: BookingCreateRequest,
    background_tasks: BackgroundTasks,
    current_user: User | None = Depends(get_optional_user),
    db: Session = Depends(get_db),
) -> BookingCreatedResponse:
    if settings.booking_requires_auth and current_user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Sign in to book a slot",
            headers={"WWW-Authenticate": "Bearer"},
        )

    booking = create_pending_booking(
        db=db,
        payload=payload,
        system_settings=load_system_settings(db),
        owner_user_id=current_user.id if current_user else None,
    )
    created = BookingResponse.model_validate(booking)
    background_tasks.add_task(send_pending_whatsapp_message, created)
    return BookingCreatedResponse(
        booking=created,
        confirm_url=build_confirmation_link(booking.id),
        whatsapp_url=build_booking_request_whatsapp_url(booking),
    )


@router.post("/expire", response_model=ExpireBookingsResponse, status_code=status.HTTP_200_OK)
def expire_bookings(db: Session = Depends(get_db)) -> ExpireBookingsResponse:
    return ExpireBookingsResponse(expired_count=expire_pending_bookings(db=db))


def _load_snapshot(db: Session, booking_date: date) -> DayAvailabilityResponse:
    try:
        return build_day_availability(db, booking_date)
    finally:
        # The socket may stay open for hours, so the pooled connection goes back now.
        db.close()


@router.websocket("/changes")
async def booking_changes(
    websocket: WebSocket,
    booking_date: date = Query(alias="date"),
    db: Session = Depends(get_db),
) -> None:
    await websocket.accept()
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue[BookingChangeEvent] = asyncio.Queue()
    unsubscribe = event_broker.subscribe(
        booking_date,
        lambda event: loop.call_soon_threadsafe(queue.put_nowait, event),
    )

    async def forward_changes() -> None:
        while True:
            event = await queue.get()
            await websocket.send_json({"type": "change", "data": asdict(event)})

    async def wait_for_disconnect() -> None:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                return

    tasks: set[asyncio.Task] = set()
    try:
        snapshot = await run_in_threadpool(_load_snapshot, db, booking_date)
        await websocket.send_json({"type": "snapshot", "data": snapshot.model_dump(mode="json")})

        tasks = {asyncio.create_task(forward_changes()), asyncio.create_task(wait_for_disconnect())}
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            exc = task.exception()
            if exc is not None and not isinstance(exc, WebSocketDisconnect):
                raise exc
    except WebSocketDisconnect:
        pass
    finally:
        unsubscribe()
        for task in tasks:
            task.cancel()
        logger.debug("booking_changes_closed date=%s", booking_date)


@router.get("/{booking_id}", response_model=BookingResponse, status_code=status.HTTP_200_OK)
def get_booking_by_id(booking_id: UUID, db: Session = Depends(get_db)) -> BookingResponse:
    return BookingResponse.model_validate(get_booking(db, booking_id))


@router.post("/{booking_id}/confirm", response_model=BookingConfirmedResponse, status_code=status.HTTP_200_OK)
def confirm_existing_booking(booking_id: UUID, db: Session = Depends(get_db)) -> BookingConfirmedResponse:
    booking = confirm_booking(db=db, booking_id=booking_id)
    return BookingConfirmedResponse(
        booking=BookingResponse.model_validate(booking),
        whatsapp_url=build_booking_confirmed_whatsapp_url(booking),
    )


@router.post("/{booking_id}/decline", response_model=BookingResponse, status_code=status.HTTP_200_OK)
def decline_existing_booking(booking_id: UUID, db: Session = Depends(get_db)) -> BookingResponse:
    return BookingResponse.model_validate(decline_booking(db=db, booking_id=booking_id))
